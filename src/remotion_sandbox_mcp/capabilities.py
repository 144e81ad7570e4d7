"""The capability set injected into every execution.

Mirrors ``allowlist.ALLOWED_GLOBALS``: each name generated code may
reference is bound here to a value built fresh for one execution, so no
state leaks from one run into the next. High-frequency animation
primitives are wrapped to charge the execution budget.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Any

from .framework import animation
from .framework.context import HOOKS, use_current_frame, use_video_config
from .framework.components import build_components
from .framework.easing import build_easing
from .framework.elements import Fragment, clone_element, create_element, is_valid_element
from .interpreter.budget import ExecutionBudget
from .interpreter.builtins import build_globals
from .interpreter.values import UNDEFINED, NativeFunction


def _safe_interpolate(budget: ExecutionBudget) -> NativeFunction:
    def interpolate(value: Any = UNDEFINED, input_range: Any = UNDEFINED, output_range: Any = UNDEFINED,
                    options: Any = UNDEFINED, *_: Any) -> float:
        budget.charge()
        input_range, output_range = animation.repair_ranges(input_range, output_range)
        return animation.interpolate(value, input_range, output_range, options)

    return NativeFunction(interpolate, "interpolate")


def _budgeted_spring(budget: ExecutionBudget) -> NativeFunction:
    def spring(options: Any = UNDEFINED, *_: Any) -> float:
        budget.charge()
        return animation.spring(options, budget=budget)

    return NativeFunction(spring, "spring")


def _counted(budget: ExecutionBudget, fn: Any, name: str) -> NativeFunction:
    def counted(*args: Any) -> Any:
        budget.charge()
        return fn(*args)

    return NativeFunction(counted, name)


def _react() -> MappingProxyType:
    return MappingProxyType({
        "createElement": NativeFunction(create_element, "createElement"),
        "cloneElement": NativeFunction(clone_element, "cloneElement"),
        "isValidElement": NativeFunction(is_valid_element, "isValidElement"),
        "Fragment": Fragment,
        **HOOKS,
        "useLayoutEffect": HOOKS["useEffect"],
    })


def build_capabilities(budget: ExecutionBudget) -> list[tuple[str, Any]]:
    """Return the ordered ``(name, value)`` pairs bound for one execution.

    Args:
        budget: Budget the wrapped primitives charge; the same one the
            interpreter charges.
    """
    components = build_components()
    capabilities: list[tuple[str, Any]] = [
        # React
        ("React", _react()),
        *HOOKS.items(),
        ("Fragment", Fragment),
        # Remotion core, budgeted where called per element or per frame
        ("AbsoluteFill", components["AbsoluteFill"]),
        ("useCurrentFrame", NativeFunction(use_current_frame, "useCurrentFrame")),
        ("useVideoConfig", NativeFunction(use_video_config, "useVideoConfig")),
        ("interpolate", _safe_interpolate(budget)),
        ("spring", _budgeted_spring(budget)),
        ("random", _counted(budget, animation.random, "random")),
        ("interpolateColors", _counted(budget, animation.interpolate_colors, "interpolateColors")),
        ("measureSpring", _measure_spring(budget)),
        ("Easing", build_easing()),
        ("Sequence", components["Sequence"]),
        # Media
        ("Audio", components["Audio"]),
        ("Img", components["Img"]),
        ("Video", components["Video"]),
        ("OffthreadVideo", components["OffthreadVideo"]),
        ("staticFile", components["staticFile"]),
        # Composition helpers
        ("Series", components["Series"]),
        ("Loop", components["Loop"]),
        ("Freeze", components["Freeze"]),
        # Utilities
        ("delayRender", components["delayRender"]),
        ("continueRender", components["continueRender"]),
        ("getInputProps", components["getInputProps"]),
        ("useCurrentScale", components["useCurrentScale"]),
        ("getRemotionEnvironment", components["getRemotionEnvironment"]),
    ]
    capabilities.extend(build_globals(budget))
    return capabilities


def _measure_spring(budget: ExecutionBudget) -> NativeFunction:
    def measure_spring(options: Any = UNDEFINED, *_: Any) -> int | float:
        budget.charge()
        if not isinstance(options, (dict, MappingProxyType)):
            raise TypeError("measureSpring() expects an options object")
        return animation.measure_spring(
            options.get("fps", UNDEFINED),
            options.get("config", UNDEFINED),
            options.get("threshold", 0.005),
            budget=budget,
        )

    return NativeFunction(measure_spring, "measureSpring")
