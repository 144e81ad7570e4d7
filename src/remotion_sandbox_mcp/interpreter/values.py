"""JavaScript value model and conversions for the sandbox interpreter.

Mapping used throughout:

    undefined -> ``UNDEFINED``        null     -> ``None``
    boolean   -> ``bool``             number   -> ``int`` / ``float``
    string    -> ``str``              array    -> ``list``
    object    -> ``dict`` (read-only ``Mapping`` for injected namespaces)
    function  -> ``JSFunction`` / ``NativeFunction``
    framework -> ``HostValue`` subclasses (components, elements)
"""

from __future__ import annotations

import math
from collections.abc import Callable, Mapping
from decimal import Decimal
from typing import Any

from ..errors import ErrorCategory, SandboxError

MAX_SAFE_INTEGER = 2**53 - 1


class _Undefined:
    __slots__ = ()

    def __repr__(self) -> str:
        return "undefined"

    def __bool__(self) -> bool:
        return False


UNDEFINED = _Undefined()


# ── errors ──────────────────────────────────────────────────────────────────


class JSError(SandboxError):
    """Base for errors raised by sandboxed code or its runtime."""

    category = ErrorCategory.RUNTIME_FAILED


class JSRuntimeError(JSError):
    """A runtime error such as ``TypeError`` or ``ReferenceError``."""

    def __init__(self, name: str, message: str) -> None:
        super().__init__(f"{name}: {message}")
        self.name = name
        self.message = message

    def to_value(self) -> dict:
        return {"name": self.name, "message": self.message}


class JSThrow(JSError):
    """A value thrown by a ``throw`` statement."""

    def __init__(self, value: Any) -> None:
        super().__init__(describe_thrown(value))
        self.value = value


def type_error(message: str) -> JSRuntimeError:
    return JSRuntimeError("TypeError", message)


def reference_error(message: str) -> JSRuntimeError:
    return JSRuntimeError("ReferenceError", message)


def range_error(message: str) -> JSRuntimeError:
    return JSRuntimeError("RangeError", message)


def describe_thrown(value: Any) -> str:
    if isinstance(value, Mapping) and "message" in value:
        name = value.get("name")
        message = to_string(value["message"])
        return f"{to_string(name)}: {message}" if isinstance(name, str) else message
    return to_string(value)


# ── callables and host objects ──────────────────────────────────────────────


class HostValue:
    """Framework object exposed to sandboxed code.

    Only names returned by ``get_member`` are reachable; Python
    attributes never are.
    """

    js_typeof = "object"

    def get_member(self, key: str) -> Any:
        return UNDEFINED


class NativeFunction:
    """A host-implemented function callable from sandboxed code.

    Args:
        fn: Python callable receiving positional JS arguments.
        name: Name reported to sandboxed code.
        construct: Callable used for ``new``; ``None`` means not a constructor.
        members: Read-only static members (``Number.isFinite`` and friends).
    """

    __slots__ = ("fn", "name", "construct", "members")

    def __init__(
        self,
        fn: Callable[..., Any],
        name: str = "",
        *,
        construct: Callable[..., Any] | None = None,
        members: Mapping[str, Any] | None = None,
    ) -> None:
        self.fn = fn
        self.name = name or getattr(fn, "__name__", "")
        self.construct = construct
        self.members = members or {}

    def __call__(self, *args: Any) -> Any:
        try:
            return self.fn(*args)
        except (TypeError, ValueError, ArithmeticError, LookupError) as exc:
            raise type_error(f"{self.name}: {exc}") from exc

    def __repr__(self) -> str:
        return f"NativeFunction({self.name})"


def native(name: str = "", **kwargs: Any) -> Callable[[Callable[..., Any]], NativeFunction]:
    """Decorator turning a Python function into a ``NativeFunction``."""

    def wrap(fn: Callable[..., Any]) -> NativeFunction:
        return NativeFunction(fn, name or fn.__name__, **kwargs)

    return wrap


class JSFunction:
    """A closure created from sandboxed source.

    Calling it from Python (array callbacks, the renderer) re-enters the
    interpreter that created it.
    """

    __slots__ = ("node", "scope", "interpreter", "name", "is_arrow", "this", "properties")

    def __init__(self, node: dict, scope: Any, interpreter: Any, name: str = "", this: Any = UNDEFINED) -> None:
        self.node = node
        self.scope = scope
        self.interpreter = interpreter
        self.name = name
        self.is_arrow = node["type"] == "ArrowFunctionExpression"
        self.this = this
        self.properties: dict[str, Any] = {}

    def __call__(self, *args: Any) -> Any:
        return self.interpreter.call_function(self, list(args), UNDEFINED)

    def __repr__(self) -> str:
        return f"JSFunction({self.name or 'anonymous'})"


def is_callable(value: Any) -> bool:
    return isinstance(value, (JSFunction, NativeFunction))


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


# ── conversions ─────────────────────────────────────────────────────────────


def typeof(value: Any) -> str:
    if value is UNDEFINED:
        return "undefined"
    if value is None:
        return "object"
    if isinstance(value, bool):
        return "boolean"
    if is_number(value):
        return "number"
    if isinstance(value, str):
        return "string"
    if is_callable(value):
        return "function"
    if isinstance(value, HostValue):
        return value.js_typeof
    return "object"


def truthy(value: Any) -> bool:
    if value is UNDEFINED or value is None:
        return False
    if isinstance(value, bool):
        return value
    if is_number(value):
        return not (value == 0 or (isinstance(value, float) and math.isnan(value)))
    if isinstance(value, str):
        return value != ""
    return True


def normalize_number(value: int | float) -> int | float:
    """Keep integers inside the exactly-representable range; beyond it use floats."""
    if isinstance(value, int) and not isinstance(value, bool) and abs(value) > MAX_SAFE_INTEGER:
        try:
            return float(value)
        except OverflowError:
            return math.inf if value > 0 else -math.inf
    return value


def _parse_numeric_string(text: str) -> int | float:
    stripped = text.strip()
    if stripped == "":
        return 0
    if "_" in stripped:
        return math.nan
    lowered = stripped.lower()
    try:
        if lowered.startswith(("0x", "0o", "0b")):
            return int(stripped, 0)
        if lowered in ("infinity", "+infinity"):
            return math.inf if stripped[0] != "-" else -math.inf
        if lowered == "-infinity":
            return -math.inf
        if lowered in ("inf", "+inf", "-inf", "nan", "+nan", "-nan"):
            return math.nan
        number = float(stripped)
    except ValueError:
        return math.nan
    return int(number) if number.is_integer() and abs(number) <= MAX_SAFE_INTEGER else number


def to_number(value: Any) -> int | float:
    if isinstance(value, bool):
        return 1 if value else 0
    if is_number(value):
        return value
    if value is UNDEFINED:
        return math.nan
    if value is None:
        return 0
    if isinstance(value, str):
        return _parse_numeric_string(value)
    if isinstance(value, list):
        if not value:
            return 0
        if len(value) == 1:
            return to_number(to_string(value[0]))
    return math.nan


def number_to_string(value: int | float) -> str:
    if isinstance(value, int):
        return str(value)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value == 0:
        return "0"
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    text = repr(value)
    if "e" not in text:
        return text
    mantissa, exponent = text.split("e")
    power = int(exponent)
    if -7 < power < 21:
        return format(Decimal(text), "f")
    sign = "-" if power < 0 else "+"
    return f"{mantissa}e{sign}{abs(power)}"


def to_string(value: Any) -> str:
    if isinstance(value, str):
        return value
    if value is UNDEFINED:
        return "undefined"
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if is_number(value):
        return number_to_string(value)
    if isinstance(value, list):
        return ",".join("" if item is UNDEFINED or item is None else to_string(item) for item in value)
    if is_callable(value):
        return f"function {getattr(value, 'name', '')}() {{ [native code] }}"
    return "[object Object]"


def to_property_key(value: Any) -> str:
    return value if isinstance(value, str) else to_string(value)


def to_integer(value: Any) -> int:
    number = to_number(value)
    if isinstance(number, float):
        if math.isnan(number):
            return 0
        if math.isinf(number):
            return MAX_SAFE_INTEGER if number > 0 else -MAX_SAFE_INTEGER
    return int(number)


def to_int32(value: Any) -> int:
    number = to_number(value)
    if isinstance(number, float) and (math.isnan(number) or math.isinf(number)):
        return 0
    result = int(number) & 0xFFFFFFFF
    return result - 0x100000000 if result >= 0x80000000 else result


def to_uint32(value: Any) -> int:
    return to_int32(value) & 0xFFFFFFFF


def _category(value: Any) -> str:
    kind = typeof(value)
    return "null" if value is None else kind


def strict_equals(a: Any, b: Any) -> bool:
    kind = _category(a)
    if kind != _category(b):
        return False
    if kind in ("undefined", "null"):
        return True
    if kind in ("number", "string", "boolean"):
        return a == b
    return a is b


def loose_equals(a: Any, b: Any) -> bool:
    a_kind, b_kind = _category(a), _category(b)
    if a_kind == b_kind:
        return strict_equals(a, b)
    nullish = ("undefined", "null")
    if a_kind in nullish or b_kind in nullish:
        return a_kind in nullish and b_kind in nullish
    if a_kind in ("number", "string", "boolean") and b_kind in ("number", "string", "boolean"):
        return to_number(a) == to_number(b)
    if a_kind == "boolean":
        return loose_equals(to_number(a), b)
    if b_kind == "boolean":
        return loose_equals(a, to_number(b))
    if a_kind == "object" and b_kind in ("number", "string"):
        return loose_equals(to_string(a), b)
    if b_kind == "object" and a_kind in ("number", "string"):
        return loose_equals(a, to_string(b))
    return False


def same_value_zero(a: Any, b: Any) -> bool:
    """Equality used by ``includes``: like ``===`` but NaN equals NaN."""
    if is_number(a) and is_number(b) and math.isnan(a) and math.isnan(b):
        return True
    return strict_equals(a, b)
