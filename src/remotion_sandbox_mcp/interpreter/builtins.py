"""Safe JavaScript globals: Math, JSON, Object, Array, and friends.

Built fresh for every execution so nothing sandboxed code does to one
run's objects is visible in the next. Namespaces are read-only mappings.
"""

from __future__ import annotations

import json
import logging
import math
import random as _random
import re
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any
from urllib.parse import quote, unquote

from .budget import ExecutionBudget
from .operators import js_pow
from .properties import call, check_array_length, own_keys
from .values import (
    MAX_SAFE_INTEGER,
    UNDEFINED,
    JSFunction,
    JSRuntimeError,
    NativeFunction,
    is_callable,
    is_number,
    normalize_number,
    range_error,
    to_integer,
    to_number,
    to_property_key,
    to_string,
    truthy,
    type_error,
)

logger = logging.getLogger("remotion_sandbox_mcp.sandbox.console")

_FLOAT_PREFIX = re.compile(r"^[+-]?(Infinity|(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?)")
_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


def _frozen(members: dict[str, Any]) -> Mapping[str, Any]:
    return MappingProxyType(members)


# ── Math ────────────────────────────────────────────────────────────────────


def _number_args(args: tuple) -> list[int | float]:
    return [to_number(a) for a in args]


def _float_fn(fn):
    def wrapped(x=UNDEFINED, *_):
        number = to_number(x)
        try:
            return fn(float(number))
        except ValueError:
            return math.nan
        except OverflowError:
            return math.inf
    return wrapped


def _integral(fn):
    def wrapped(x=UNDEFINED, *_):
        number = to_number(x)
        if isinstance(number, int):
            return number
        if math.isnan(number) or math.isinf(number):
            return number
        return normalize_number(fn(number))
    return wrapped


def _round(x: float) -> int:
    return math.floor(x + 0.5)


def _min(*args):
    numbers = _number_args(args)
    if any(isinstance(n, float) and math.isnan(n) for n in numbers):
        return math.nan
    return min(numbers, default=math.inf)


def _max(*args):
    numbers = _number_args(args)
    if any(isinstance(n, float) and math.isnan(n) for n in numbers):
        return math.nan
    return max(numbers, default=-math.inf)


def _abs(x=UNDEFINED, *_):
    return abs(to_number(x))


def _sign(x=UNDEFINED, *_):
    n = to_number(x)
    if isinstance(n, float) and math.isnan(n):
        return n
    return (n > 0) - (n < 0)


def _atan2(y=UNDEFINED, x=UNDEFINED, *_):
    return math.atan2(float(to_number(y)), float(to_number(x)))


def _hypot(*args):
    return math.hypot(*(float(n) for n in _number_args(args)))


def _cbrt(x: float) -> float:
    return math.copysign(abs(x) ** (1 / 3), x)


def _log(x: float) -> float:
    if x == 0:
        return -math.inf
    return math.log(x)


def _log_base(base_fn):
    def wrapped(x: float) -> float:
        return -math.inf if x == 0 else base_fn(x)
    return wrapped


def _math_namespace() -> Mapping[str, Any]:
    fns = {
        "abs": _abs,
        "floor": _integral(math.floor),
        "ceil": _integral(math.ceil),
        "round": _integral(_round),
        "trunc": _integral(math.trunc),
        "sign": _sign,
        "sqrt": _float_fn(math.sqrt),
        "cbrt": _float_fn(_cbrt),
        "exp": _float_fn(math.exp),
        "expm1": _float_fn(math.expm1),
        "log": _float_fn(_log),
        "log2": _float_fn(_log_base(math.log2)),
        "log10": _float_fn(_log_base(math.log10)),
        "log1p": _float_fn(math.log1p),
        "sin": _float_fn(math.sin),
        "cos": _float_fn(math.cos),
        "tan": _float_fn(math.tan),
        "asin": _float_fn(math.asin),
        "acos": _float_fn(math.acos),
        "atan": _float_fn(math.atan),
        "sinh": _float_fn(math.sinh),
        "cosh": _float_fn(math.cosh),
        "tanh": _float_fn(math.tanh),
        "atan2": _atan2,
        "hypot": _hypot,
        "pow": lambda x=UNDEFINED, y=UNDEFINED, *_: js_pow(x, y),
        "min": _min,
        "max": _max,
        "random": lambda *_: _random.random(),
    }
    members: dict[str, Any] = {name: NativeFunction(fn, name) for name, fn in fns.items()}
    members.update({
        "PI": math.pi,
        "E": math.e,
        "LN2": math.log(2),
        "LN10": math.log(10),
        "LOG2E": 1 / math.log(2),
        "LOG10E": 1 / math.log(10),
        "SQRT2": math.sqrt(2),
        "SQRT1_2": math.sqrt(0.5),
    })
    return _frozen(members)


# ── JSON ────────────────────────────────────────────────────────────────────


def _to_json_data(value: Any, depth: int = 0) -> Any:
    if depth > 100:
        raise type_error("Converting circular structure to JSON")
    if value is None or isinstance(value, (bool, str)):
        return value
    if is_number(value):
        if isinstance(value, float):
            if math.isnan(value) or math.isinf(value):
                return None
            if value.is_integer():
                return int(value)
        return value
    if isinstance(value, list):
        return [
            None if item is UNDEFINED or is_callable(item) else _to_json_data(item, depth + 1)
            for item in value
        ]
    if isinstance(value, Mapping):
        return {
            to_property_key(k): _to_json_data(v, depth + 1)
            for k, v in value.items()
            if v is not UNDEFINED and not is_callable(v)
        }
    return None


def _stringify(value=UNDEFINED, replacer=UNDEFINED, space=UNDEFINED, *_):
    if value is UNDEFINED or is_callable(value):
        return UNDEFINED
    data = _to_json_data(value)
    if is_number(space) and space > 0:
        return json.dumps(data, indent=min(int(space), 10), separators=(",", ": "), ensure_ascii=False)
    if isinstance(space, str) and space:
        return json.dumps(data, indent=space[:10], separators=(",", ": "), ensure_ascii=False)
    return json.dumps(data, separators=(",", ":"), ensure_ascii=False)


def _reject_constant(name: str) -> Any:
    raise ValueError(f"Unexpected token {name} in JSON")


def _parse_json(text=UNDEFINED, *_):
    try:
        return json.loads(to_string(text), parse_constant=_reject_constant)
    except (ValueError, RecursionError) as exc:
        raise JSRuntimeError("SyntaxError", f"JSON.parse: {exc}") from exc


def _json_namespace() -> Mapping[str, Any]:
    return _frozen({
        "stringify": NativeFunction(_stringify, "stringify"),
        "parse": NativeFunction(_parse_json, "parse"),
    })


# ── Object ──────────────────────────────────────────────────────────────────


def _object_values(obj: Any) -> list:
    if isinstance(obj, Mapping):
        return list(obj.values())
    if isinstance(obj, (list, str)):
        return list(obj)
    if isinstance(obj, JSFunction):
        return list(obj.properties.values())
    own_keys(obj)
    return []


def _object_assign(target=UNDEFINED, *sources):
    if not isinstance(target, dict):
        raise type_error("Object.assign target must be a plain object")
    for source in sources:
        if isinstance(source, Mapping):
            target.update({to_property_key(k): v for k, v in source.items()})
        elif isinstance(source, list):
            target.update({str(i): v for i, v in enumerate(source)})
    return target


def _from_entries(entries=UNDEFINED, *_):
    if not isinstance(entries, list):
        raise type_error("Object.fromEntries requires an array of entries")
    result = {}
    for entry in entries:
        if not isinstance(entry, list) or not entry:
            raise type_error("Iterator value is not an entry object")
        result[to_property_key(entry[0])] = entry[1] if len(entry) > 1 else UNDEFINED
    return result


def _object_ctor(value=UNDEFINED, *_):
    if value is UNDEFINED or value is None:
        return {}
    return value


def _object() -> NativeFunction:
    members = {
        "keys": NativeFunction(lambda obj=UNDEFINED, *_: own_keys(obj), "keys"),
        "values": NativeFunction(lambda obj=UNDEFINED, *_: _object_values(obj), "values"),
        "entries": NativeFunction(
            lambda obj=UNDEFINED, *_: [[k, v] for k, v in zip(own_keys(obj), _object_values(obj))],
            "entries",
        ),
        "assign": NativeFunction(_object_assign, "assign"),
        "freeze": NativeFunction(lambda obj=UNDEFINED, *_: obj, "freeze"),
        "fromEntries": NativeFunction(_from_entries, "fromEntries"),
    }
    return NativeFunction(_object_ctor, "Object", construct=_object_ctor, members=_frozen(members))


# ── Array ───────────────────────────────────────────────────────────────────


def _array_ctor(*args):
    if len(args) == 1 and is_number(args[0]):
        length = args[0]
        if length < 0 or (isinstance(length, float) and not length.is_integer()):
            raise range_error("Invalid array length")
        check_array_length(int(length))
        return [UNDEFINED] * int(length)
    return list(args)


def _array_from(budget: ExecutionBudget):
    def array_from(source=UNDEFINED, map_fn=UNDEFINED, *_):
        if isinstance(source, (list, str)):
            items = list(source)
        elif isinstance(source, Mapping):
            length = to_integer(source.get("length", 0))
            check_array_length(length)
            items = [source.get(str(i), UNDEFINED) for i in range(max(length, 0))]
        else:
            raise type_error(f"{to_string(source)} is not iterable")
        if map_fn is UNDEFINED:
            return items
        out = []
        for i, item in enumerate(items):
            budget.charge()
            out.append(call(map_fn, item, i))
        return out
    return array_from


def _array(budget: ExecutionBudget) -> NativeFunction:
    members = {
        "isArray": NativeFunction(lambda value=UNDEFINED, *_: isinstance(value, list), "isArray"),
        "from": NativeFunction(_array_from(budget), "from"),
        "of": NativeFunction(lambda *items: list(items), "of"),
    }
    return NativeFunction(_array_ctor, "Array", construct=_array_ctor, members=_frozen(members))


# ── String / Number / Boolean ───────────────────────────────────────────────


def _string() -> NativeFunction:
    def string_ctor(value="", *_):
        return to_string(value)

    def from_char_code(*codes):
        return "".join(chr(to_integer(c) & 0xFFFF) for c in codes)

    members = {"fromCharCode": NativeFunction(from_char_code, "fromCharCode")}
    return NativeFunction(string_ctor, "String", construct=string_ctor, members=_frozen(members))


def parse_int(text=UNDEFINED, radix=UNDEFINED, *_) -> int | float:
    s = to_string(text).strip()
    base = 0 if radix is UNDEFINED else to_integer(radix)
    sign = -1 if s.startswith("-") else 1
    if s[:1] in ("+", "-"):
        s = s[1:]
    if base == 0:
        base = 10
        if s[:2].lower() == "0x":
            base, s = 16, s[2:]
    elif base == 16 and s[:2].lower() == "0x":
        s = s[2:]
    if not 2 <= base <= 36:
        return math.nan
    valid = _DIGITS[:base]
    end = 0
    while end < len(s) and s[end].lower() in valid:
        end += 1
    if end == 0:
        return math.nan
    return normalize_number(sign * int(s[:end], base))


def parse_float(text=UNDEFINED, *_) -> int | float:
    s = to_string(text).strip()
    match = _FLOAT_PREFIX.match(s)
    if not match:
        return math.nan
    literal = match.group(0)
    if "Infinity" in literal:
        return -math.inf if literal.startswith("-") else math.inf
    number = float(literal)
    return int(number) if number.is_integer() and abs(number) <= MAX_SAFE_INTEGER else number


def _is_nan(value=UNDEFINED, *_) -> bool:
    number = to_number(value)
    return isinstance(number, float) and math.isnan(number)


def _is_finite(value=UNDEFINED, *_) -> bool:
    number = to_number(value)
    return not (isinstance(number, float) and (math.isnan(number) or math.isinf(number)))


def _number_is_integer(value=UNDEFINED, *_) -> bool:
    if not is_number(value):
        return False
    return isinstance(value, int) or (math.isfinite(value) and value.is_integer())


def _number() -> NativeFunction:
    def number_ctor(*args):
        return to_number(args[0]) if args else 0

    members = {
        "isFinite": NativeFunction(lambda v=UNDEFINED, *_: is_number(v) and _is_finite(v), "isFinite"),
        "isInteger": NativeFunction(_number_is_integer, "isInteger"),
        "isSafeInteger": NativeFunction(
            lambda v=UNDEFINED, *_: _number_is_integer(v) and abs(v) <= MAX_SAFE_INTEGER, "isSafeInteger"
        ),
        "isNaN": NativeFunction(lambda v=UNDEFINED, *_: is_number(v) and _is_nan(v), "isNaN"),
        "parseFloat": NativeFunction(parse_float, "parseFloat"),
        "parseInt": NativeFunction(parse_int, "parseInt"),
        "MAX_SAFE_INTEGER": MAX_SAFE_INTEGER,
        "MIN_SAFE_INTEGER": -MAX_SAFE_INTEGER,
        "EPSILON": 2.0**-52,
        "MAX_VALUE": 1.7976931348623157e308,
        "MIN_VALUE": 5e-324,
        "POSITIVE_INFINITY": math.inf,
        "NEGATIVE_INFINITY": -math.inf,
        "NaN": math.nan,
    }
    return NativeFunction(number_ctor, "Number", construct=number_ctor, members=_frozen(members))


def _boolean() -> NativeFunction:
    def boolean_ctor(value=UNDEFINED, *_):
        return truthy(value)

    return NativeFunction(boolean_ctor, "Boolean", construct=boolean_ctor)


# ── console ─────────────────────────────────────────────────────────────────


def _console() -> Mapping[str, Any]:
    def make(level: int, name: str) -> NativeFunction:
        def log(*args):
            if logger.isEnabledFor(level):
                logger.log(level, "console.%s: %s", name, " ".join(to_string(a) for a in args))
            return UNDEFINED
        return NativeFunction(log, name)

    return _frozen({
        "log": make(logging.DEBUG, "log"),
        "info": make(logging.INFO, "info"),
        "debug": make(logging.DEBUG, "debug"),
        "warn": make(logging.WARNING, "warn"),
        "error": make(logging.WARNING, "error"),
    })


# ── assembly ────────────────────────────────────────────────────────────────


def _encode_uri_component(value=UNDEFINED, *_):
    return quote(to_string(value), safe="-_.!~*'()")


def _decode_uri_component(value=UNDEFINED, *_):
    return unquote(to_string(value), errors="strict")


def build_globals(budget: ExecutionBudget) -> list[tuple[str, Any]]:
    """Return the safe JS globals as ``(name, value)`` pairs, freshly built."""
    return [
        ("Math", _math_namespace()),
        ("JSON", _json_namespace()),
        ("Object", _object()),
        ("Array", _array(budget)),
        ("String", _string()),
        ("Number", _number()),
        ("Boolean", _boolean()),
        ("parseInt", NativeFunction(parse_int, "parseInt")),
        ("parseFloat", NativeFunction(parse_float, "parseFloat")),
        ("isNaN", NativeFunction(_is_nan, "isNaN")),
        ("isFinite", NativeFunction(_is_finite, "isFinite")),
        ("encodeURIComponent", NativeFunction(_encode_uri_component, "encodeURIComponent")),
        ("decodeURIComponent", NativeFunction(_decode_uri_component, "decodeURIComponent")),
        ("console", _console()),
        ("NaN", math.nan),
        ("Infinity", math.inf),
        ("undefined", UNDEFINED),
    ]

