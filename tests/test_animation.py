"""Tests for Remotion animation primitives and easings."""

from __future__ import annotations

import math

import pytest

from remotion_sandbox_mcp.framework import animation
from remotion_sandbox_mcp.framework.animation import (
    interpolate,
    interpolate_colors,
    measure_spring,
    parse_color,
    random,
    repair_ranges,
    spring,
    spring_steps,
)
from remotion_sandbox_mcp.framework.easing import build_easing, cubic_bezier
from remotion_sandbox_mcp.interpreter import ExecutionBudget, ExecutionLimitExceeded


class TestInterpolate:
    def test_linear_midpoint(self):
        assert interpolate(15, [0, 30], [0, 1]) == 0.5

    def test_extends_by_default(self):
        assert interpolate(60, [0, 30], [0, 1]) == 2

    def test_clamp(self):
        options = {"extrapolateLeft": "clamp", "extrapolateRight": "clamp"}
        assert interpolate(-10, [0, 30], [0, 1], options) == 0
        assert interpolate(60, [0, 30], [0, 1], options) == 1

    def test_identity(self):
        assert interpolate(42, [0, 30], [0, 1], {"extrapolateRight": "identity"}) == 42

    def test_multi_segment(self):
        assert interpolate(15, [0, 10, 20], [0, 100, 0]) == 50

    def test_easing_applied(self):
        easing = build_easing()["quad"]
        assert interpolate(5, [0, 10], [0, 100], {"easing": easing}) == 25

    def test_flat_output(self):
        assert interpolate(3, [0, 10], [7, 7]) == 7

    @pytest.mark.parametrize("input_range, output_range, message", [
        ([0, 10, 5], [0, 1, 2], "strictly monotonically increasing"),
        ([0, 10], [0, 1, 2], "must have the same length"),
        ([0], [1], "at least 2 elements"),
    ])
    def test_invalid_ranges(self, input_range, output_range, message):
        with pytest.raises(ValueError, match=message):
            interpolate(1, input_range, output_range)

    def test_unknown_extrapolation(self):
        with pytest.raises(ValueError, match="extrapolation must be one of"):
            interpolate(1, [0, 2], [0, 1], {"extrapolateLeft": "bounce"})


class TestRepairRanges:
    def test_spreads_non_increasing_input(self):
        assert repair_ranges([0, 30, 30, 60], [0, 1, 1, 0]) == ([0, 20, 40, 60], [0, 1, 1, 0])

    def test_flat_input_becomes_indices(self):
        assert repair_ranges([5, 5, 5], [1, 2, 3]) == ([0, 1, 2], [1, 2, 3])

    def test_truncates_mismatched_lengths(self):
        assert repair_ranges([0, 10, 20], [0, 1]) == ([0, 10], [0, 1])

    def test_valid_ranges_untouched(self):
        assert repair_ranges([0, 10], [1, 2]) == ([0, 10], [1, 2])


class TestColors:
    @pytest.mark.parametrize("text, expected", [
        ("#ff0000", (255, 0, 0, 1.0)),
        ("#0f0", (0, 255, 0, 1.0)),
        ("white", (255, 255, 255, 1.0)),
        ("rgba(10, 20, 30, 0.5)", (10, 20, 30, 0.5)),
        ("hsl(0, 100%, 50%)", (255, 0, 0, 1.0)),
    ])
    def test_parse_color(self, text, expected):
        assert parse_color(text) == expected

    def test_parse_color_rejects_garbage(self):
        with pytest.raises(ValueError, match="invalid color"):
            parse_color("not-a-color")

    def test_interpolate_colors_midpoint(self):
        assert interpolate_colors(0.5, [0, 1], ["#000000", "#ffffff"]) == "rgba(128, 128, 128, 1)"

    def test_interpolate_colors_clamps(self):
        assert interpolate_colors(5, [0, 1], ["red", "blue"]) == "rgba(0, 0, 255, 1)"

    def test_interpolate_colors_alpha(self):
        assert interpolate_colors(0.5, [0, 1], ["transparent", "black"]) == "rgba(0, 0, 0, 0.5)"


class TestSpring:
    def test_starts_at_zero(self):
        assert spring({"frame": 0, "fps": 30}) == 0

    def test_settles_at_one(self):
        assert spring({"frame": 300, "fps": 30}) == pytest.approx(1, abs=1e-3)

    def test_from_to(self):
        assert spring({"frame": 300, "fps": 30, "from": 10, "to": 20}) == pytest.approx(20, abs=1e-2)

    def test_overshoot_clamping(self):
        config = {"damping": 3, "overshootClamping": True}
        values = [spring({"frame": f, "fps": 30, "config": config}) for f in range(60)]
        assert max(values) <= 1

    def test_underdamped_overshoots(self):
        values = [spring({"frame": f, "fps": 30, "config": {"damping": 3}}) for f in range(60)]
        assert max(values) > 1

    def test_duration_past_end_returns_target(self):
        assert spring({"frame": 100, "fps": 30, "durationInFrames": 30, "to": 4}) == 4

    def test_delay_holds_at_start(self):
        assert spring({"frame": 5, "fps": 30, "delay": 10}) == 0

    @pytest.mark.parametrize("options, error", [
        ({"fps": 30}, TypeError),
        ({"frame": 1, "fps": 0}, ValueError),
        ({"frame": 1, "fps": 30, "config": {"damping": 0}}, ValueError),
    ])
    def test_invalid_options(self, options, error):
        with pytest.raises(error):
            spring(options)

    def test_measure_spring(self):
        frames = measure_spring(30)
        assert isinstance(frames, int)
        assert 0 < frames < 300
        assert measure_spring(30, threshold=0) == math.inf

    def test_spring_calculation_is_cached(self):
        animation.spring_calculation.cache_clear()
        spring({"frame": 12, "fps": 30})
        spring({"frame": 12, "fps": 30})
        assert animation.spring_calculation.cache_info().hits >= 1

    def test_steps_follow_frame(self):
        assert spring_steps(0) == 1
        assert spring_steps(12.5) == 13
        assert spring_steps(-4) == 1

    def test_budget_charged_per_step(self):
        budget = ExecutionBudget(1_000)
        spring({"frame": 40, "fps": 30}, budget=budget)
        assert budget.used == spring_steps(40)

    def test_huge_frame_exhausts_budget(self):
        """GIVEN frame 1e308 THEN the budget fails before any simulation runs."""
        with pytest.raises(ExecutionLimitExceeded):
            spring({"frame": 1e308, "fps": 30}, budget=ExecutionBudget(1_000))

    def test_measure_spring_charges_budget(self):
        with pytest.raises(ExecutionLimitExceeded):
            measure_spring(30, budget=ExecutionBudget(5))

    def test_infinite_frame_is_rejected(self):
        with pytest.raises(ValueError, match="finite"):
            spring({"frame": math.inf, "fps": 30})


class TestRandom:
    def test_deterministic_per_seed(self):
        assert random("seed") == random("seed")
        assert random(1) == random(1)
        assert random("a") != random("b")

    def test_in_unit_interval(self):
        for seed in ["x", "y", 1, 2.5, 0]:
            assert 0 <= random(seed) < 1

    def test_null_seed_is_random(self):
        assert 0 <= random(None) < 1

    def test_rejects_other_types(self):
        with pytest.raises(TypeError):
            random([1])


class TestEasing:
    def test_endpoints(self):
        easing = build_easing()
        for name in ("linear", "ease", "quad", "cubic", "sin", "circle", "bounce"):
            assert easing[name](0) == pytest.approx(0, abs=1e-3), name
            assert easing[name](1) == pytest.approx(1, abs=1e-3), name

    def test_symmetric_bezier_midpoint(self):
        assert cubic_bezier(0.42, 0, 0.58, 1)(0.5) == pytest.approx(0.5, abs=1e-4)

    def test_linear_bezier_is_identity(self):
        assert cubic_bezier(0.3, 0.3, 0.7, 0.7)(0.25) == 0.25

    def test_bezier_x_out_of_range(self):
        with pytest.raises(ValueError):
            cubic_bezier(1.5, 0, 0.5, 1)

    def test_out_and_in_out(self):
        easing = build_easing()
        quad = easing["quad"]
        assert easing["out"](quad)(0.5) == pytest.approx(0.75)
        assert easing["inOut"](quad)(0.25) == pytest.approx(0.125)
        assert easing["in"](quad) is quad

    def test_poly(self):
        assert build_easing()["poly"](3)(0.5) == pytest.approx(0.125)

    def test_namespace_is_read_only(self):
        with pytest.raises(TypeError):
            build_easing()["linear"] = None
