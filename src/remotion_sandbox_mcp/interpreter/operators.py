"""Unary and binary operator semantics."""

from __future__ import annotations

import math
from collections.abc import Mapping
from typing import Any

from .values import (
    MAX_SAFE_INTEGER,
    UNDEFINED,
    is_callable,
    is_number,
    loose_equals,
    normalize_number,
    range_error,
    strict_equals,
    to_int32,
    to_number,
    to_property_key,
    to_string,
    to_uint32,
    truthy,
    type_error,
    typeof,
)

MAX_STRING_LENGTH = 1_000_000


def _to_primitive(value: Any) -> Any:
    if isinstance(value, (list, Mapping)) or is_callable(value):
        return to_string(value)
    return value


def _check_length(text: str) -> str:
    if len(text) > MAX_STRING_LENGTH:
        raise range_error("Invalid string length")
    return text


def js_add(a: Any, b: Any) -> Any:
    a, b = _to_primitive(a), _to_primitive(b)
    if isinstance(a, str) or isinstance(b, str):
        return _check_length(to_string(a) + to_string(b))
    return normalize_number(to_number(a) + to_number(b))


def js_div(a: Any, b: Any) -> int | float:
    x, y = to_number(a), to_number(b)
    if y == 0:
        if x == 0 or math.isnan(x):
            return math.nan
        divisor_sign = math.copysign(1.0, y) if isinstance(y, float) else 1.0
        return math.copysign(math.inf, x) * divisor_sign
    return x / y


def js_mod(a: Any, b: Any) -> int | float:
    x, y = to_number(a), to_number(b)
    if y == 0 or math.isnan(x) or math.isnan(y) or math.isinf(x):
        return math.nan
    if math.isinf(y):
        return x
    result = math.fmod(x, y)
    if isinstance(x, int) and isinstance(y, int):
        return int(result)
    return result


def js_pow(a: Any, b: Any) -> int | float:
    x, y = to_number(a), to_number(b)
    if math.isnan(y):
        return math.nan
    if y == 0:
        return 1
    try:
        result = math.pow(float(x), float(y))
    except OverflowError:
        return math.inf if x > 0 or float(y).is_integer() and int(y) % 2 == 0 else -math.inf
    except ValueError:
        return math.nan
    if isinstance(x, int) and isinstance(y, int) and y >= 0 and abs(result) <= MAX_SAFE_INTEGER:
        return int(result)
    return result


def _compare(a: Any, b: Any) -> bool | None:
    """Abstract relational comparison ``a < b``; None means undefined (NaN)."""
    a, b = _to_primitive(a), _to_primitive(b)
    if isinstance(a, str) and isinstance(b, str):
        return a < b
    x, y = to_number(a), to_number(b)
    if math.isnan(x) or math.isnan(y):
        return None
    return x < y


def js_in(key: Any, target: Any) -> bool:
    name = to_property_key(key)
    if isinstance(target, Mapping):
        return name in target
    if isinstance(target, list):
        return name == "length" or (name.isascii() and name.isdigit() and int(name) < len(target))
    raise type_error(f"Cannot use 'in' operator to search for '{name}' in {to_string(target)}")


def _sub(a: Any, b: Any) -> int | float:
    return normalize_number(to_number(a) - to_number(b))


def _mul(a: Any, b: Any) -> int | float:
    return normalize_number(to_number(a) * to_number(b))


def _lt(a: Any, b: Any) -> bool:
    return _compare(a, b) is True


def _gt(a: Any, b: Any) -> bool:
    return _compare(b, a) is True


def _le(a: Any, b: Any) -> bool:
    result = _compare(b, a)
    return result is False


def _ge(a: Any, b: Any) -> bool:
    result = _compare(a, b)
    return result is False


def _instanceof(a: Any, b: Any) -> bool:
    raise type_error("instanceof is not supported")


BINARY_OPERATORS = {
    "+": js_add,
    "-": _sub,
    "*": _mul,
    "/": js_div,
    "%": js_mod,
    "**": js_pow,
    "==": loose_equals,
    "!=": lambda a, b: not loose_equals(a, b),
    "===": strict_equals,
    "!==": lambda a, b: not strict_equals(a, b),
    "<": _lt,
    ">": _gt,
    "<=": _le,
    ">=": _ge,
    "&": lambda a, b: to_int32(to_int32(a) & to_int32(b)),
    "|": lambda a, b: to_int32(to_int32(a) | to_int32(b)),
    "^": lambda a, b: to_int32(to_int32(a) ^ to_int32(b)),
    "<<": lambda a, b: to_int32(to_int32(a) << (to_uint32(b) & 31)),
    ">>": lambda a, b: to_int32(a) >> (to_uint32(b) & 31),
    ">>>": lambda a, b: to_uint32(a) >> (to_uint32(b) & 31),
    "in": js_in,
    "instanceof": _instanceof,
}


def binary(operator: str, a: Any, b: Any) -> Any:
    try:
        fn = BINARY_OPERATORS[operator]
    except KeyError:
        raise type_error(f"Unsupported operator {operator}") from None
    return fn(a, b)


def unary(operator: str, value: Any) -> Any:
    if operator == "-":
        number = to_number(value)
        return normalize_number(-number) if number != 0 or isinstance(number, int) else -number
    if operator == "+":
        return to_number(value)
    if operator == "!":
        return not truthy(value)
    if operator == "~":
        return to_int32(~to_int32(value))
    if operator == "typeof":
        return typeof(value)
    if operator == "void":
        return UNDEFINED
    raise type_error(f"Unsupported operator {operator}")


def is_nan(value: Any) -> bool:
    return is_number(value) and isinstance(value, float) and math.isnan(value)
