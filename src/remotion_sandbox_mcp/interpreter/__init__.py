"""Sandboxed JavaScript interpreter for lowered component code."""

from .budget import DEFAULT_MAX_OPERATIONS, ExecutionBudget, ExecutionLimitExceeded
from .evaluator import DEFAULT_MAX_CALL_DEPTH, CompiledUnit, compile_unit
from .values import UNDEFINED, HostValue, JSError, JSFunction, JSRuntimeError, JSThrow, NativeFunction

__all__ = [
    "DEFAULT_MAX_CALL_DEPTH",
    "DEFAULT_MAX_OPERATIONS",
    "UNDEFINED",
    "CompiledUnit",
    "ExecutionBudget",
    "ExecutionLimitExceeded",
    "HostValue",
    "JSError",
    "JSFunction",
    "JSRuntimeError",
    "JSThrow",
    "NativeFunction",
    "compile_unit",
]
