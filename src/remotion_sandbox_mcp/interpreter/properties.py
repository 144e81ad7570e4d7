"""Property access for sandboxed code.

Every ``a.b`` and ``a[b]`` in sandboxed code goes through ``get_property``
and ``set_property``. Lookup dispatches on the JS type and consults
explicit method tables; Python attributes are never reachable, so there
is no path from sandboxed code to ``__class__`` or ``__globals__``.
"""

from __future__ import annotations

import functools
import math
from collections.abc import Callable, Mapping
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from .budget import ExecutionBudget
from .operators import MAX_STRING_LENGTH
from .values import (
    UNDEFINED,
    HostValue,
    JSFunction,
    NativeFunction,
    is_callable,
    is_number,
    number_to_string,
    range_error,
    same_value_zero,
    strict_equals,
    to_integer,
    to_number,
    to_property_key,
    to_string,
    truthy,
    type_error,
)

MAX_ARRAY_LENGTH = 100_000

Method = Callable[..., Any]


def call(fn: Any, *args: Any) -> Any:
    if not is_callable(fn):
        raise type_error(f"{to_string(fn)} is not a function")
    return fn(*args)


def check_array_length(length: int) -> None:
    if length > MAX_ARRAY_LENGTH:
        raise range_error("Invalid array length")


def _array_index(key: Any) -> int | None:
    if is_number(key):
        if isinstance(key, float):
            if not key.is_integer():
                return None
            key = int(key)
        return key if key >= 0 else None
    if isinstance(key, str) and key.isascii() and key.isdigit():
        return int(key)
    return None


def _relative(index: Any, length: int, default: int = 0) -> int:
    if index is UNDEFINED:
        return default
    n = to_integer(index)
    if n < 0:
        return max(length + n, 0)
    return min(n, length)


# ── arrays ──────────────────────────────────────────────────────────────────


def _map(arr, budget, fn=UNDEFINED, *_):
    out = []
    for i, item in enumerate(list(arr)):
        budget.charge()
        out.append(call(fn, item, i, arr))
    return out


def _for_each(arr, budget, fn=UNDEFINED, *_):
    for i, item in enumerate(list(arr)):
        budget.charge()
        call(fn, item, i, arr)
    return UNDEFINED


def _filter(arr, budget, fn=UNDEFINED, *_):
    out = []
    for i, item in enumerate(list(arr)):
        budget.charge()
        if truthy(call(fn, item, i, arr)):
            out.append(item)
    return out


def _reduce_items(arr, budget, fn, initial, indices):
    if initial:
        acc = initial[0]
    else:
        if not indices:
            raise type_error("Reduce of empty array with no initial value")
        acc, indices = arr[indices[0]], indices[1:]
    for i in indices:
        budget.charge()
        acc = call(fn, acc, arr[i], i, arr)
    return acc


def _reduce(arr, budget, fn=UNDEFINED, *initial):
    return _reduce_items(arr, budget, fn, initial[:1], list(range(len(arr))))


def _reduce_right(arr, budget, fn=UNDEFINED, *initial):
    return _reduce_items(arr, budget, fn, initial[:1], list(reversed(range(len(arr)))))


def _find_index(arr, budget, fn, reverse=False):
    indices = reversed(range(len(arr))) if reverse else range(len(arr))
    for i in indices:
        budget.charge()
        if truthy(call(fn, arr[i], i, arr)):
            return i
    return -1


def _find(arr, budget, fn=UNDEFINED, *_):
    i = _find_index(arr, budget, fn)
    return arr[i] if i >= 0 else UNDEFINED


def _find_last(arr, budget, fn=UNDEFINED, *_):
    i = _find_index(arr, budget, fn, reverse=True)
    return arr[i] if i >= 0 else UNDEFINED


def _some(arr, budget, fn=UNDEFINED, *_):
    return _find_index(arr, budget, fn) >= 0


def _every(arr, budget, fn=UNDEFINED, *_):
    for i, item in enumerate(list(arr)):
        budget.charge()
        if not truthy(call(fn, item, i, arr)):
            return False
    return True


def _includes(arr, budget, value=UNDEFINED, start=UNDEFINED, *_):
    budget.charge(len(arr) // 64)
    return any(same_value_zero(item, value) for item in arr[_relative(start, len(arr)):])


def _index_of(arr, budget, value=UNDEFINED, start=UNDEFINED, *_):
    budget.charge(len(arr) // 64)
    begin = _relative(start, len(arr))
    for i in range(begin, len(arr)):
        if strict_equals(arr[i], value):
            return i
    return -1


def _last_index_of(arr, budget, value=UNDEFINED, *_):
    budget.charge(len(arr) // 64)
    for i in reversed(range(len(arr))):
        if strict_equals(arr[i], value):
            return i
    return -1


def _join(arr, budget, separator=UNDEFINED, *_):
    sep = "," if separator is UNDEFINED else to_string(separator)
    text = sep.join("" if item is UNDEFINED or item is None else to_string(item) for item in arr)
    if len(text) > MAX_STRING_LENGTH:
        raise range_error("Invalid string length")
    return text


def _slice(arr, budget, start=UNDEFINED, end=UNDEFINED, *_):
    length = len(arr)
    return arr[_relative(start, length):_relative(end, length, length)]


def _concat(arr, budget, *items):
    out = list(arr)
    for item in items:
        if isinstance(item, list):
            out.extend(item)
        else:
            out.append(item)
        check_array_length(len(out))
    return out


def _push(arr, budget, *items):
    check_array_length(len(arr) + len(items))
    arr.extend(items)
    return len(arr)


def _pop(arr, budget, *_):
    return arr.pop() if arr else UNDEFINED


def _shift(arr, budget, *_):
    return arr.pop(0) if arr else UNDEFINED


def _unshift(arr, budget, *items):
    check_array_length(len(arr) + len(items))
    arr[:0] = items
    return len(arr)


def _splice(arr, budget, start=UNDEFINED, delete_count=UNDEFINED, *items):
    length = len(arr)
    begin = _relative(start, length)
    count = length - begin if delete_count is UNDEFINED else min(max(to_integer(delete_count), 0), length - begin)
    check_array_length(length - count + len(items))
    removed = arr[begin:begin + count]
    arr[begin:begin + count] = items
    return removed


def _reverse(arr, budget, *_):
    arr.reverse()
    return arr


def _default_compare(a, b):
    # Undefined sorts last; everything else compares as strings.
    if a is UNDEFINED or b is UNDEFINED:
        return (a is UNDEFINED) - (b is UNDEFINED)
    x, y = to_string(a), to_string(b)
    return (x > y) - (x < y)


def _sort(arr, budget, compare=UNDEFINED, *_):
    budget.charge(len(arr))
    if compare is UNDEFINED:
        key = functools.cmp_to_key(_default_compare)
    else:
        def user_compare(a, b):
            budget.charge()
            result = to_number(call(compare, a, b))
            if isinstance(result, float) and math.isnan(result):
                return 0
            return (result > 0) - (result < 0)

        key = functools.cmp_to_key(user_compare)
    arr.sort(key=key)
    return arr


def _fill(arr, budget, value=UNDEFINED, start=UNDEFINED, end=UNDEFINED, *_):
    length = len(arr)
    for i in range(_relative(start, length), _relative(end, length, length)):
        arr[i] = value
    return arr


def _flatten(items, depth, out):
    for item in items:
        if isinstance(item, list) and depth > 0:
            _flatten(item, depth - 1, out)
        else:
            out.append(item)
        check_array_length(len(out))
    return out


def _flat(arr, budget, depth=UNDEFINED, *_):
    budget.charge(len(arr) // 64)
    return _flatten(arr, 1 if depth is UNDEFINED else to_integer(depth), [])


def _flat_map(arr, budget, fn=UNDEFINED, *_):
    return _flatten(_map(arr, budget, fn), 1, [])


def _at(arr, budget, index=UNDEFINED, *_):
    n = to_integer(index)
    if n < 0:
        n += len(arr)
    return arr[n] if 0 <= n < len(arr) else UNDEFINED


def _keys(arr, budget, *_):
    return list(range(len(arr)))


def _values(arr, budget, *_):
    return list(arr)


def _entries(arr, budget, *_):
    return [[i, item] for i, item in enumerate(arr)]


def _array_to_string(arr, budget, *_):
    return to_string(arr)


_ARRAY_METHODS: dict[str, Method] = {
    "map": _map,
    "forEach": _for_each,
    "filter": _filter,
    "reduce": _reduce,
    "reduceRight": _reduce_right,
    "find": _find,
    "findIndex": lambda arr, budget, fn=UNDEFINED, *_: _find_index(arr, budget, fn),
    "findLast": _find_last,
    "findLastIndex": lambda arr, budget, fn=UNDEFINED, *_: _find_index(arr, budget, fn, reverse=True),
    "some": _some,
    "every": _every,
    "includes": _includes,
    "indexOf": _index_of,
    "lastIndexOf": _last_index_of,
    "join": _join,
    "slice": _slice,
    "concat": _concat,
    "push": _push,
    "pop": _pop,
    "shift": _shift,
    "unshift": _unshift,
    "splice": _splice,
    "reverse": _reverse,
    "sort": _sort,
    "fill": _fill,
    "flat": _flat,
    "flatMap": _flat_map,
    "at": _at,
    "keys": _keys,
    "values": _values,
    "entries": _entries,
    "toString": _array_to_string,
}


def _array_get(arr: list, key: Any, budget: ExecutionBudget) -> Any:
    index = _array_index(key)
    if index is not None:
        return arr[index] if index < len(arr) else UNDEFINED
    name = to_property_key(key)
    if name == "length":
        return len(arr)
    method = _ARRAY_METHODS.get(name)
    if method is None:
        return UNDEFINED
    return NativeFunction(functools.partial(method, arr, budget), name)


# ── strings ─────────────────────────────────────────────────────────────────


def _check_string(text: str) -> str:
    if len(text) > MAX_STRING_LENGTH:
        raise range_error("Invalid string length")
    return text


def _str_slice(s, start=UNDEFINED, end=UNDEFINED, *_):
    return s[_relative(start, len(s)):_relative(end, len(s), len(s))]


def _str_substring(s, start=UNDEFINED, end=UNDEFINED, *_):
    length = len(s)
    a = min(max(to_integer(start), 0), length) if start is not UNDEFINED else 0
    b = min(max(to_integer(end), 0), length) if end is not UNDEFINED else length
    return s[min(a, b):max(a, b)]


def _str_substr(s, start=UNDEFINED, length=UNDEFINED, *_):
    begin = _relative(start, len(s))
    count = len(s) - begin if length is UNDEFINED else max(to_integer(length), 0)
    return s[begin:begin + count]


def _pad(s, target, fill, at_start):
    width = to_integer(target)
    filler = " " if fill is UNDEFINED else to_string(fill)
    if width <= len(s) or not filler:
        return s
    _check_string(" " * width)
    padding = (filler * ((width - len(s)) // len(filler) + 1))[: width - len(s)]
    return padding + s if at_start else s + padding


def _str_repeat(s, count=UNDEFINED, *_):
    n = to_integer(count)
    if n < 0:
        raise range_error(f"Invalid count value: {n}")
    if len(s) * n > MAX_STRING_LENGTH:
        raise range_error("Invalid string length")
    return s * n


def _str_split(s, separator=UNDEFINED, limit=UNDEFINED, *_):
    if separator is UNDEFINED:
        parts = [s]
    else:
        sep = to_string(separator)
        parts = list(s) if sep == "" else s.split(sep)
    if limit is not UNDEFINED:
        parts = parts[: max(to_integer(limit), 0)]
    check_array_length(len(parts))
    return parts


def _replacement(match, replacement, position, s):
    if is_callable(replacement):
        return to_string(call(replacement, match, position, s))
    return to_string(replacement).replace("$&", match)


def _str_replace(s, pattern=UNDEFINED, replacement=UNDEFINED, *_):
    needle = to_string(pattern)
    position = s.find(needle)
    if position < 0:
        return s
    new = _replacement(needle, replacement, position, s)
    return _check_string(s[:position] + new + s[position + len(needle):])


def _str_replace_all(s, pattern=UNDEFINED, replacement=UNDEFINED, *_):
    needle = to_string(pattern)
    if needle == "":
        return s
    pieces = []
    cursor = 0
    position = s.find(needle)
    while position >= 0:
        pieces.append(s[cursor:position])
        pieces.append(_replacement(needle, replacement, position, s))
        cursor = position + len(needle)
        position = s.find(needle, cursor)
    pieces.append(s[cursor:])
    return _check_string("".join(pieces))


def _str_index_of(s, needle=UNDEFINED, start=UNDEFINED, *_):
    return s.find(to_string(needle), _relative(start, len(s)))


def _str_last_index_of(s, needle=UNDEFINED, *_):
    return s.rfind(to_string(needle))


def _str_char_at(s, index=UNDEFINED, *_):
    n = to_integer(index)
    return s[n] if 0 <= n < len(s) else ""


def _str_char_code_at(s, index=UNDEFINED, *_):
    n = to_integer(index)
    return ord(s[n]) if 0 <= n < len(s) else math.nan


def _str_at(s, index=UNDEFINED, *_):
    n = to_integer(index)
    if n < 0:
        n += len(s)
    return s[n] if 0 <= n < len(s) else UNDEFINED


def _str_locale_compare(s, other=UNDEFINED, *_):
    o = to_string(other)
    return (s > o) - (s < o)


_STRING_METHODS: dict[str, Method] = {
    "toUpperCase": lambda s, *_: s.upper(),
    "toLowerCase": lambda s, *_: s.lower(),
    "trim": lambda s, *_: s.strip(),
    "trimStart": lambda s, *_: s.lstrip(),
    "trimEnd": lambda s, *_: s.rstrip(),
    "slice": _str_slice,
    "substring": _str_substring,
    "substr": _str_substr,
    "padStart": lambda s, target=UNDEFINED, fill=UNDEFINED, *_: _pad(s, target, fill, True),
    "padEnd": lambda s, target=UNDEFINED, fill=UNDEFINED, *_: _pad(s, target, fill, False),
    "repeat": _str_repeat,
    "split": _str_split,
    "replace": _str_replace,
    "replaceAll": _str_replace_all,
    "includes": lambda s, needle=UNDEFINED, *_: to_string(needle) in s,
    "startsWith": lambda s, needle=UNDEFINED, *_: s.startswith(to_string(needle)),
    "endsWith": lambda s, needle=UNDEFINED, *_: s.endswith(to_string(needle)),
    "indexOf": _str_index_of,
    "lastIndexOf": _str_last_index_of,
    "charAt": _str_char_at,
    "charCodeAt": _str_char_code_at,
    "at": _str_at,
    "concat": lambda s, *parts: _check_string(s + "".join(to_string(p) for p in parts)),
    "localeCompare": _str_locale_compare,
    "toString": lambda s, *_: s,
}


def _string_get(s: str, key: Any) -> Any:
    index = _array_index(key)
    if index is not None:
        return s[index] if index < len(s) else UNDEFINED
    name = to_property_key(key)
    if name == "length":
        return len(s)
    method = _STRING_METHODS.get(name)
    if method is None:
        return UNDEFINED
    return NativeFunction(functools.partial(method, s), name)


# ── numbers ─────────────────────────────────────────────────────────────────


def to_fixed(value: int | float, digits: Any = UNDEFINED) -> str:
    places = 0 if digits is UNDEFINED else to_integer(digits)
    if not 0 <= places <= 100:
        raise range_error("toFixed() digits argument must be between 0 and 100")
    if isinstance(value, float) and (math.isnan(value) or math.isinf(value)) or abs(value) >= 1e21:
        return number_to_string(value)
    if value == 0:
        value = 0
    quantum = Decimal(1).scaleb(-places)
    return format(Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP), "f")


def _to_string_radix(value: int | float, radix: Any = UNDEFINED) -> str:
    base = 10 if radix is UNDEFINED else to_integer(radix)
    if not 2 <= base <= 36:
        raise range_error("toString() radix must be between 2 and 36")
    if base == 10 or not isinstance(value, int):
        return number_to_string(value)
    digits = "0123456789abcdefghijklmnopqrstuvwxyz"
    n, out = abs(value), ""
    while True:
        n, rem = divmod(n, base)
        out = digits[rem] + out
        if n == 0:
            break
    return "-" + out if value < 0 else out


def to_locale_string(value: int | float, *_: Any) -> str:
    """en-US grouping with at most three fraction digits."""
    if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
        return number_to_string(value).replace("Infinity", "∞")
    rounded = Decimal(value).quantize(Decimal("0.001"), rounding=ROUND_HALF_UP)
    text = f"{rounded:,f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return "0" if text in ("-0", "") else text


def _to_precision(value: int | float, precision: Any = UNDEFINED) -> str:
    if precision is UNDEFINED:
        return number_to_string(value)
    p = to_integer(precision)
    if not 1 <= p <= 100:
        raise range_error("toPrecision() argument must be between 1 and 100")
    if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
        return number_to_string(value)
    return format(Decimal(value), f".{p}g") if value else to_fixed(0, p - 1)


_NUMBER_METHODS: dict[str, Method] = {
    "toFixed": to_fixed,
    "toString": _to_string_radix,
    "toLocaleString": to_locale_string,
    "toPrecision": _to_precision,
}


def _number_get(value: int | float, name: str) -> Any:
    method = _NUMBER_METHODS.get(name)
    if method is None:
        return UNDEFINED
    return NativeFunction(functools.partial(method, value), name)


# ── objects ─────────────────────────────────────────────────────────────────


def _object_get(obj: Mapping, name: str) -> Any:
    if name in obj:
        return obj[name]
    if name == "hasOwnProperty":
        return NativeFunction(lambda key=UNDEFINED, *_: to_property_key(key) in obj, name)
    if name == "toString":
        return NativeFunction(lambda *_: "[object Object]", name)
    return UNDEFINED


def _describe(value: Any) -> str:
    return "undefined" if value is UNDEFINED else "null"


def get_property(obj: Any, key: Any, budget: ExecutionBudget) -> Any:
    """Read ``obj[key]`` with JS semantics over the interpreter's value model."""
    if obj is UNDEFINED or obj is None:
        raise type_error(f"Cannot read properties of {_describe(obj)} (reading '{to_property_key(key)}')")
    if isinstance(obj, list):
        return _array_get(obj, key, budget)
    if isinstance(obj, str):
        return _string_get(obj, key)
    name = to_property_key(key)
    if isinstance(obj, Mapping):
        return _object_get(obj, name)
    if isinstance(obj, bool):
        if name == "toString":
            return NativeFunction(lambda *_: to_string(obj), name)
        return UNDEFINED
    if is_number(obj):
        return _number_get(obj, name)
    if isinstance(obj, JSFunction):
        if name == "name":
            return obj.name
        if name == "length":
            return len(obj.node.get("params", []))
        return obj.properties.get(name, UNDEFINED)
    if isinstance(obj, NativeFunction):
        if name == "name":
            return obj.name
        return obj.members.get(name, UNDEFINED)
    if isinstance(obj, HostValue):
        return obj.get_member(name)
    return UNDEFINED


def set_property(obj: Any, key: Any, value: Any) -> None:
    """Write ``obj[key] = value``; only plain objects, arrays, and user functions are writable."""
    if obj is UNDEFINED or obj is None:
        raise type_error(f"Cannot set properties of {_describe(obj)} (setting '{to_property_key(key)}')")
    if isinstance(obj, list):
        index = _array_index(key)
        if index is not None:
            check_array_length(index + 1)
            if index >= len(obj):
                obj.extend([UNDEFINED] * (index + 1 - len(obj)))
            obj[index] = value
            return
        if to_property_key(key) == "length":
            length = to_integer(value)
            if length < 0:
                raise range_error("Invalid array length")
            check_array_length(length)
            del obj[length:]
            obj.extend([UNDEFINED] * (length - len(obj)))
            return
        raise type_error(f"Cannot add property {to_property_key(key)} to an array")
    if isinstance(obj, dict):
        obj[to_property_key(key)] = value
        return
    if isinstance(obj, JSFunction):
        obj.properties[to_property_key(key)] = value
        return
    raise type_error(f"Cannot assign to read only property '{to_property_key(key)}' of {to_string(obj)}")


def delete_property(obj: Any, key: Any) -> bool:
    if isinstance(obj, dict):
        obj.pop(to_property_key(key), None)
        return True
    if isinstance(obj, list):
        index = _array_index(key)
        if index is not None and index < len(obj):
            obj[index] = UNDEFINED
        return True
    raise type_error(f"Cannot delete property '{to_property_key(key)}' of {to_string(obj)}")


def own_keys(obj: Any) -> list[str]:
    """Enumerable own keys, in insertion order, as ``Object.keys`` sees them."""
    if isinstance(obj, Mapping):
        return [str(k) for k in obj]
    if isinstance(obj, (list, str)):
        return [str(i) for i in range(len(obj))]
    if isinstance(obj, JSFunction):
        return list(obj.properties)
    if obj is UNDEFINED or obj is None:
        raise type_error("Cannot convert undefined or null to object")
    return []
