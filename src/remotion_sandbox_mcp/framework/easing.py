"""Remotion ``Easing`` namespace.

Every easing is a ``NativeFunction`` of one number; the factories
(``poly``, ``bezier``, ``in``...) return new easings and accept either
native or sandboxed functions as input.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Mapping
from types import MappingProxyType
from typing import Any

from ..interpreter.operators import js_pow
from ..interpreter.properties import call
from ..interpreter.values import UNDEFINED, NativeFunction, to_number

EasingFn = Callable[[float], float]

_NEWTON_ITERATIONS = 4
_NEWTON_MIN_SLOPE = 0.001
_SUBDIVISION_PRECISION = 0.0000001
_SUBDIVISION_MAX_ITERATIONS = 10
_SPLINE_TABLE_SIZE = 11
_SAMPLE_STEP = 1.0 / (_SPLINE_TABLE_SIZE - 1)


def _a(a1: float, a2: float) -> float:
    return 1.0 - 3.0 * a2 + 3.0 * a1


def _b(a1: float, a2: float) -> float:
    return 3.0 * a2 - 6.0 * a1


def _c(a1: float) -> float:
    return 3.0 * a1


def _calc_bezier(t: float, a1: float, a2: float) -> float:
    return ((_a(a1, a2) * t + _b(a1, a2)) * t + _c(a1)) * t


def _slope(t: float, a1: float, a2: float) -> float:
    return 3.0 * _a(a1, a2) * t * t + 2.0 * _b(a1, a2) * t + _c(a1)


def cubic_bezier(x1: float, y1: float, x2: float, y2: float) -> EasingFn:
    """Cubic Bézier easing through ``(0,0)``, ``(x1,y1)``, ``(x2,y2)``, ``(1,1)``."""
    if not (0 <= x1 <= 1 and 0 <= x2 <= 1):
        raise ValueError("bezier x values must be in [0, 1] range")
    if x1 == y1 and x2 == y2:
        return lambda t: t

    samples = [_calc_bezier(i * _SAMPLE_STEP, x1, x2) for i in range(_SPLINE_TABLE_SIZE)]

    def newton_raphson(x: float, guess: float) -> float:
        for _ in range(_NEWTON_ITERATIONS):
            slope = _slope(guess, x1, x2)
            if slope == 0.0:
                return guess
            guess -= (_calc_bezier(guess, x1, x2) - x) / slope
        return guess

    def binary_subdivide(x: float, a: float, b: float) -> float:
        current_t = 0.0
        for _ in range(_SUBDIVISION_MAX_ITERATIONS):
            current_t = a + (b - a) / 2.0
            current_x = _calc_bezier(current_t, x1, x2) - x
            if current_x > 0.0:
                b = current_t
            else:
                a = current_t
            if abs(current_x) <= _SUBDIVISION_PRECISION:
                break
        return current_t

    def t_for_x(x: float) -> float:
        interval_start = 0.0
        sample = 1
        last = _SPLINE_TABLE_SIZE - 1
        while sample != last and samples[sample] <= x:
            interval_start += _SAMPLE_STEP
            sample += 1
        sample -= 1
        dist = (x - samples[sample]) / (samples[sample + 1] - samples[sample])
        guess = interval_start + dist * _SAMPLE_STEP
        initial_slope = _slope(guess, x1, x2)
        if initial_slope >= _NEWTON_MIN_SLOPE:
            return newton_raphson(x, guess)
        if initial_slope == 0.0:
            return guess
        return binary_subdivide(x, interval_start, interval_start + _SAMPLE_STEP)

    def ease(x: float) -> float:
        if x == 0 or x == 1:
            return x
        return _calc_bezier(t_for_x(x), y1, y2)

    return ease


def _bounce(t: float) -> float:
    if t < 1 / 2.75:
        return 7.5625 * t * t
    if t < 2 / 2.75:
        t2 = t - 1.5 / 2.75
        return 7.5625 * t2 * t2 + 0.75
    if t < 2.5 / 2.75:
        t2 = t - 2.25 / 2.75
        return 7.5625 * t2 * t2 + 0.9375
    t2 = t - 2.625 / 2.75
    return 7.5625 * t2 * t2 + 0.984375


def _as_python(easing: Any) -> EasingFn:
    if isinstance(easing, NativeFunction):
        return lambda t: to_number(easing.fn(t))
    return lambda t: to_number(call(easing, t))


def _native(fn: EasingFn, name: str) -> NativeFunction:
    return NativeFunction(lambda t=UNDEFINED, *_: fn(to_number(t)), name)


def _poly(n: Any = UNDEFINED, *_: Any) -> NativeFunction:
    exponent = to_number(n)
    return _native(lambda t: js_pow(t, exponent), "poly")


def _elastic(bounciness: Any = 1, *_: Any) -> NativeFunction:
    p = to_number(bounciness) * math.pi
    return _native(lambda t: 1 - math.cos(t * math.pi / 2) ** 3 * math.cos(t * p), "elastic")


def _back(s: Any = 1.70158, *_: Any) -> NativeFunction:
    overshoot = to_number(s)
    return _native(lambda t: t * t * ((overshoot + 1) * t - overshoot), "back")


def _bezier(x1: Any = UNDEFINED, y1: Any = UNDEFINED, x2: Any = UNDEFINED, y2: Any = UNDEFINED, *_: Any) -> NativeFunction:
    return _native(cubic_bezier(*(float(to_number(v)) for v in (x1, y1, x2, y2))), "bezier")


def _in(easing: Any = UNDEFINED, *_: Any) -> Any:
    return easing


def _out(easing: Any = UNDEFINED, *_: Any) -> NativeFunction:
    fn = _as_python(easing)
    return _native(lambda t: 1 - fn(1 - t), "out")


def _in_out(easing: Any = UNDEFINED, *_: Any) -> NativeFunction:
    fn = _as_python(easing)

    def in_out(t: float) -> float:
        if t < 0.5:
            return fn(t * 2) / 2
        return 1 - fn((1 - t) * 2) / 2

    return _native(in_out, "inOut")


_ease = cubic_bezier(0.42, 0, 1, 1)


def build_easing() -> Mapping[str, Any]:
    """The read-only ``Easing`` namespace."""
    return MappingProxyType({
        "step0": _native(lambda t: 1 if t > 0 else 0, "step0"),
        "step1": _native(lambda t: 1 if t >= 1 else 0, "step1"),
        "linear": _native(lambda t: t, "linear"),
        "ease": _native(_ease, "ease"),
        "quad": _native(lambda t: t * t, "quad"),
        "cubic": _native(lambda t: t * t * t, "cubic"),
        "poly": NativeFunction(_poly, "poly"),
        "sin": _native(lambda t: 1 - math.cos(t * math.pi / 2), "sin"),
        "circle": _native(lambda t: 1 - math.sqrt(max(1 - t * t, 0.0)), "circle"),
        "exp": _native(lambda t: 2 ** (10 * (t - 1)), "exp"),
        "elastic": NativeFunction(_elastic, "elastic"),
        "back": NativeFunction(_back, "back"),
        "bounce": _native(_bounce, "bounce"),
        "bezier": NativeFunction(_bezier, "bezier"),
        "in": NativeFunction(_in, "in"),
        "out": NativeFunction(_out, "out"),
        "inOut": NativeFunction(_in_out, "inOut"),
    })
