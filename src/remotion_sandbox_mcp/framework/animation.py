"""Remotion animation primitives: interpolate, interpolateColors, spring, random.

These follow Remotion's own arithmetic so a composition previewed in the
browser and rendered here lands on the same values frame for frame.
"""

from __future__ import annotations

import functools
import math
import random as _random
import re
from collections.abc import Callable, Mapping
from typing import Any

from ..interpreter.budget import ExecutionBudget
from ..interpreter.properties import call, to_fixed
from ..interpreter.values import UNDEFINED, is_callable, is_number, number_to_string, to_int32, to_number, to_uint32

_EXTRAPOLATIONS = ("extend", "clamp", "identity", "wrap")

SPRING_DEFAULTS = {"damping": 10.0, "mass": 1.0, "stiffness": 100.0}
MAX_SPRING_FRAMES = 100_000


def _option(options: Any, key: str, default: Any) -> Any:
    if isinstance(options, Mapping):
        value = options.get(key, UNDEFINED)
        return default if value is UNDEFINED or value is None else value
    return default


def _numbers(values: Any, name: str) -> list[float]:
    if not isinstance(values, list):
        raise TypeError(f"{name} must be an array")
    out = []
    for value in values:
        if not is_number(value):
            raise TypeError(f"{name} must contain only numbers")
        out.append(value)
    return out


# ── interpolate ─────────────────────────────────────────────────────────────


def _interpolate_segment(
    value: float,
    input_range: tuple[float, float],
    output_range: tuple[float, float],
    easing: Callable[[float], float],
    left: str,
    right: str,
) -> float:
    result = value
    input_min, input_max = input_range
    output_min, output_max = output_range

    if result < input_min:
        if left == "identity":
            return result
        if left == "clamp":
            result = input_min
        elif left == "wrap":
            span = input_max - input_min
            result = math.fmod(math.fmod(result - input_min, span) + span, span) + input_min
    if result > input_max:
        if right == "identity":
            return result
        if right == "clamp":
            result = input_max
        elif right == "wrap":
            span = input_max - input_min
            result = math.fmod(math.fmod(result - input_min, span) + span, span) + input_min

    if output_min == output_max:
        return output_min
    result = (result - input_min) / (input_max - input_min)
    result = easing(result)
    return result * (output_max - output_min) + output_min


def interpolate(value: Any, input_range: Any, output_range: Any, options: Any = UNDEFINED) -> float:
    """Map *value* from *input_range* onto *output_range*, Remotion style.

    Raises:
        ValueError: On mismatched lengths or a non-increasing input range.
        TypeError: When inputs are not numbers.
    """
    if value is UNDEFINED:
        raise ValueError("input can not be undefined")
    if not is_number(value):
        raise TypeError("Cannot interpolate an input which is not a number")
    inputs = _numbers(input_range, "inputRange")
    outputs = _numbers(output_range, "outputRange")
    if len(inputs) != len(outputs):
        raise ValueError(
            f"inputRange ({len(inputs)}) and outputRange ({len(outputs)}) must have the same length"
        )
    if len(inputs) < 2:
        raise ValueError("inputRange must have at least 2 elements")
    for i in range(1, len(inputs)):
        if not inputs[i] > inputs[i - 1]:
            raise ValueError(f"inputRange must be strictly monotonically increasing but got {inputs}")

    left = _option(options, "extrapolateLeft", "extend")
    right = _option(options, "extrapolateRight", "extend")
    for side in (left, right):
        if side not in _EXTRAPOLATIONS:
            raise ValueError(f"extrapolation must be one of {', '.join(_EXTRAPOLATIONS)}")
    easing_option = _option(options, "easing", None)
    if easing_option is None:
        easing: Callable[[float], float] = lambda t: t
    elif is_callable(easing_option):
        easing = lambda t: to_number(call(easing_option, t))
    else:
        raise TypeError("easing must be a function")

    segment = 1
    while segment < len(inputs) - 1 and not inputs[segment] >= value:
        segment += 1
    segment -= 1
    return _interpolate_segment(
        value,
        (inputs[segment], inputs[segment + 1]),
        (outputs[segment], outputs[segment + 1]),
        easing,
        left,
        right,
    )


def repair_ranges(input_range: Any, output_range: Any) -> tuple[Any, Any]:
    """Make generated ranges usable instead of throwing.

    A non-increasing input range is spread evenly between its min and max
    (or becomes ``0..n-1`` when flat); mismatched lengths are truncated
    to the shorter of the two.
    """
    if not isinstance(input_range, list) or not isinstance(output_range, list):
        return input_range, output_range
    if len(input_range) > 1 and all(is_number(v) for v in input_range):
        increasing = all(input_range[i] > input_range[i - 1] for i in range(1, len(input_range)))
        if not increasing:
            low, high = min(input_range), max(input_range)
            if low == high:
                input_range = list(range(len(input_range)))
            else:
                step = (high - low) / (len(input_range) - 1)
                input_range = [low + step * i for i in range(len(input_range))]
    if len(input_range) != len(output_range):
        size = min(len(input_range), len(output_range))
        input_range, output_range = input_range[:size], output_range[:size]
    return input_range, output_range


# ── colors ──────────────────────────────────────────────────────────────────

_NAMED_COLORS = {
    "transparent": (0, 0, 0, 0.0),
    "black": (0, 0, 0, 1.0),
    "white": (255, 255, 255, 1.0),
    "red": (255, 0, 0, 1.0),
    "green": (0, 128, 0, 1.0),
    "lime": (0, 255, 0, 1.0),
    "blue": (0, 0, 255, 1.0),
    "yellow": (255, 255, 0, 1.0),
    "cyan": (0, 255, 255, 1.0),
    "magenta": (255, 0, 255, 1.0),
    "orange": (255, 165, 0, 1.0),
    "purple": (128, 0, 128, 1.0),
    "pink": (255, 192, 203, 1.0),
    "gray": (128, 128, 128, 1.0),
    "grey": (128, 128, 128, 1.0),
}

_FUNCTIONAL = re.compile(r"^(rgba?|hsla?)\(\s*([^)]*)\)$")


def _hsl_to_rgb(h: float, s: float, lightness: float) -> tuple[float, float, float]:
    h = (h % 360) / 360
    if s == 0:
        return (lightness * 255,) * 3

    def hue(p: float, q: float, t: float) -> float:
        t %= 1
        if t < 1 / 6:
            return p + (q - p) * 6 * t
        if t < 1 / 2:
            return q
        if t < 2 / 3:
            return p + (q - p) * (2 / 3 - t) * 6
        return p

    q = lightness * (1 + s) if lightness < 0.5 else lightness + s - lightness * s
    p = 2 * lightness - q
    return tuple(round(hue(p, q, h + off) * 255) for off in (1 / 3, 0, -1 / 3))


def parse_color(color: str) -> tuple[float, float, float, float]:
    """Parse a CSS color into ``(r, g, b, alpha)`` with alpha in ``[0, 1]``."""
    text = color.strip().lower()
    if text in _NAMED_COLORS:
        return _NAMED_COLORS[text]
    if text.startswith("#"):
        digits = text[1:]
        if len(digits) in (3, 4):
            digits = "".join(ch * 2 for ch in digits)
        if len(digits) in (6, 8) and all(ch in "0123456789abcdef" for ch in digits):
            r, g, b = (int(digits[i:i + 2], 16) for i in (0, 2, 4))
            alpha = int(digits[6:8], 16) / 255 if len(digits) == 8 else 1.0
            return (r, g, b, alpha)
    match = _FUNCTIONAL.match(text)
    if match:
        kind, body = match.groups()
        parts = [p for p in re.split(r"[\s,/]+", body.strip()) if p]
        if len(parts) in (3, 4):
            alpha = float(parts[3].rstrip("%")) / (100 if parts[3].endswith("%") else 1) if len(parts) == 4 else 1.0
            if kind.startswith("rgb"):
                r, g, b = (float(p.rstrip("%")) * (2.55 if p.endswith("%") else 1) for p in parts[:3])
            else:
                h = float(parts[0].rstrip("deg"))
                s, lightness = (float(p.rstrip("%")) / 100 for p in parts[1:3])
                r, g, b = _hsl_to_rgb(h, s, lightness)
            return (r, g, b, alpha)
    raise ValueError(f"invalid color: {color}")


def interpolate_colors(value: Any, input_range: Any, output_range: Any) -> str:
    """Interpolate CSS colors channel by channel, clamped, as ``rgba(r, g, b, a)``."""
    if not isinstance(output_range, list) or not all(isinstance(c, str) for c in output_range):
        raise TypeError("outputRange must be an array of color strings")
    colors = [parse_color(c) for c in output_range]
    clamp = {"extrapolateLeft": "clamp", "extrapolateRight": "clamp"}
    channels = []
    for index in range(4):
        unrounded = interpolate(value, input_range, [c[index] for c in colors], clamp)
        if index == 3:
            channels.append(to_number(to_fixed(unrounded, 3)))
        else:
            channels.append(math.floor(unrounded + 0.5))
    r, g, b, a = channels
    return f"rgba({r}, {g}, {b}, {number_to_string(a)})"


# ── spring ──────────────────────────────────────────────────────────────────


def _advance(
    current: float,
    velocity: float,
    last_timestamp: float,
    now: float,
    damping: float,
    mass: float,
    stiffness: float,
    to_value: float = 1.0,
) -> tuple[float, float]:
    delta_time = min(now - last_timestamp, 64)
    if damping <= 0:
        raise ValueError("Spring damping must be greater than 0, otherwise the spring() animation will never end")
    v0 = -velocity
    x0 = to_value - current
    zeta = damping / (2 * math.sqrt(stiffness * mass))
    omega0 = math.sqrt(stiffness / mass)
    t = delta_time / 1000

    if zeta < 1:
        omega1 = omega0 * math.sqrt(1 - zeta**2)
        sin1 = math.sin(omega1 * t)
        cos1 = math.cos(omega1 * t)
        envelope = math.exp(-zeta * omega0 * t)
        frag = envelope * (sin1 * ((v0 + zeta * omega0 * x0) / omega1) + x0 * cos1)
        position = to_value - frag
        new_velocity = zeta * omega0 * frag - envelope * (
            cos1 * (v0 + zeta * omega0 * x0) - omega1 * x0 * sin1
        )
        return position, new_velocity

    envelope = math.exp(-omega0 * t)
    position = to_value - envelope * (x0 + (v0 + omega0 * x0) * t)
    new_velocity = envelope * (v0 * (t * omega0 - 1) + t * x0 * omega0 * omega0)
    return position, new_velocity


def spring_steps(frame: float) -> int:
    """Simulation steps ``spring_calculation`` takes to reach *frame*."""
    if not math.isfinite(frame):
        raise ValueError(f"frame must be a finite number, but got {number_to_string(frame)}")
    return math.floor(max(0.0, frame)) + 1


@functools.lru_cache(maxsize=4096)
def spring_calculation(frame: float, fps: float, damping: float, mass: float, stiffness: float) -> tuple[float, float]:
    """Position and velocity of a unit spring (0 to 1) at *frame*."""
    current, velocity, last = 0.0, 0.0, 0.0
    whole = spring_steps(frame) - 1
    uneven = max(0.0, frame) % 1
    for f in range(whole + 1):
        step = f + uneven if f == whole else f
        now = step / fps * 1000
        current, velocity = _advance(current, velocity, last, now, damping, mass, stiffness)
        last = now
    return current, velocity


def _spring_config(config: Any) -> tuple[float, float, float, bool]:
    merged = dict(SPRING_DEFAULTS)
    overshoot = False
    if isinstance(config, Mapping):
        for key in SPRING_DEFAULTS:
            value = config.get(key, UNDEFINED)
            if value is not UNDEFINED:
                merged[key] = float(to_number(value))
        overshoot = bool(config.get("overshootClamping", False) is True)
    return merged["damping"], merged["mass"], merged["stiffness"], overshoot


def _validate_fps(fps: Any) -> float:
    if not is_number(fps) or not math.isfinite(fps) or fps <= 0:
        raise ValueError(f"fps must be a positive number, but got {fps}")
    return float(fps)


def measure_spring(
    fps: Any,
    config: Any = UNDEFINED,
    threshold: Any = 0.005,
    *,
    budget: ExecutionBudget | None = None,
) -> int | float:
    """Frames until the spring settles within *threshold* and stays there for 20 frames.

    When *budget* is given, every simulated step is charged to it.
    """
    if not is_number(threshold):
        raise TypeError("threshold must be a number")
    if threshold == 0:
        return math.inf
    if threshold == 1:
        return 0
    rate = _validate_fps(fps)
    damping, mass, stiffness, _ = _spring_config(config)

    states: list[float] = []
    current, velocity, last = 0.0, 0.0, 0.0

    def difference(frame: int) -> float:
        nonlocal current, velocity, last
        while len(states) <= frame:
            if len(states) >= MAX_SPRING_FRAMES:
                raise ValueError("spring never settles; check damping, mass and stiffness")
            if budget is not None:
                budget.charge()
            now = len(states) / rate * 1000
            current, velocity = _advance(current, velocity, last, now, damping, mass, stiffness)
            last = now
            states.append(abs(current - 1.0))
        return states[frame]

    frame = 0
    while difference(frame) >= threshold:
        frame += 1
    finished = frame
    i = 0
    while i < 20:
        frame += 1
        if difference(frame) >= threshold:
            i = 0
            finished = frame + 1
        i += 1
    return finished


def spring(options: Any = UNDEFINED, *_: Any, budget: ExecutionBudget | None = None) -> float:
    """Remotion ``spring({frame, fps, config, from, to, durationInFrames, delay, reverse})``.

    When *budget* is given, it is charged one operation per simulated step
    before any simulation runs, so a huge ``frame`` fails fast instead of
    stalling the render.
    """
    if not isinstance(options, Mapping):
        raise TypeError("spring() expects an options object")
    frame = options.get("frame", UNDEFINED)
    if not is_number(frame):
        raise TypeError(f"frame must be a number, but got {frame}")
    fps = _validate_fps(options.get("fps", UNDEFINED))
    config = options.get("config", UNDEFINED)
    start = to_number(_option(options, "from", 0))
    end = to_number(_option(options, "to", 1))
    delay = to_number(_option(options, "delay", 0))
    reverse = _option(options, "reverse", False) is True
    duration = _option(options, "durationInFrames", None)
    if duration is not None and (not is_number(duration) or duration <= 0):
        raise ValueError("durationInFrames must be a positive number")
    threshold = _option(options, "durationRestThreshold", 0.005)

    natural = measure_spring(fps, config, threshold, budget=budget) if reverse or duration is not None else None
    processed = ((duration if duration is not None else natural) - frame) if reverse else frame
    processed = processed + delay if reverse else processed - delay
    if duration is not None and processed > duration:
        return end
    stretched = processed if duration is None else processed / (duration / natural)

    damping, mass, stiffness, overshoot = _spring_config(config)
    if budget is not None:
        budget.charge(spring_steps(float(stretched)))
    current, _ = spring_calculation(float(stretched), fps, damping, mass, stiffness)
    if overshoot:
        current = min(current, 1.0) if end >= start else max(current, 1.0)
    if start == 0 and end == 1:
        return current
    return interpolate(current, [0, 1], [start, end])


# ── random ──────────────────────────────────────────────────────────────────


def _imul(a: int, b: int) -> int:
    return to_int32((to_uint32(a) * to_uint32(b)) & 0xFFFFFFFF)


def mulberry32(seed: int | float) -> float:
    t = seed + 0x6D2B79F5
    t = _imul(to_int32(t) ^ (to_uint32(t) >> 15), to_int32(t) | 1)
    t = t ^ to_int32(t + _imul(t ^ (to_uint32(t) >> 7), t | 61))
    return to_uint32(t ^ (to_uint32(t) >> 14)) / 4294967296


def hash_code(text: str) -> int:
    value = 0
    for ch in text:
        value = to_int32(to_int32(value << 5) - value + ord(ch))
    return value


def random(seed: Any = UNDEFINED, *_: Any) -> float:
    """Deterministic pseudo-random number in ``[0, 1)`` for *seed*; ``null`` is truly random."""
    if seed is None:
        return _random.random()
    if isinstance(seed, str):
        return mulberry32(hash_code(seed))
    if is_number(seed):
        return mulberry32(seed * 10000000000)
    raise TypeError("random() argument must be a number or a string")
