"""Structured error handling: categories, classification, and the tool error model."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class ErrorCategory(str, Enum):
    """Categories of errors for diagnostics."""

    SYNTAX_ERROR = "SYNTAX_ERROR"
    POLICY_VIOLATION = "POLICY_VIOLATION"
    LOWERING_FAILED = "LOWERING_FAILED"
    RUNTIME_FAILED = "RUNTIME_FAILED"
    EXECUTION_LIMIT = "EXECUTION_LIMIT"
    CODE_EXTRACTION_FAILED = "CODE_EXTRACTION_FAILED"
    INVALID_REQUEST = "INVALID_REQUEST"
    CONFIG_ERROR = "CONFIG_ERROR"
    UNKNOWN = "UNKNOWN"


class SandboxError(Exception):
    """Base class for failures raised by the code pipeline."""

    category: ErrorCategory = ErrorCategory.UNKNOWN


class CodeRejectedError(SandboxError):
    """Generated code failed validation, lowering, or execution.

    Carries the generic message only; never the rule that fired.
    """

    def __init__(self, category: ErrorCategory, message: str, *, line: int | None = None) -> None:
        super().__init__(message)
        self.category = category
        self.line = line


class InvalidRequestError(SandboxError):
    """Tool arguments outside what the server accepts."""

    category = ErrorCategory.INVALID_REQUEST


class ToolError(BaseModel):
    """Structured error returned from any tool."""

    error: str
    category: str
    hint: str
    retryable: bool = False


_HINTS: dict[ErrorCategory, str] = {
    ErrorCategory.SYNTAX_ERROR: "Check for missing brackets, quotes, or unbalanced tags near the reported line",
    ErrorCategory.POLICY_VIOLATION: "Use only the pre-injected Remotion and React APIs",
    ErrorCategory.LOWERING_FAILED: "The JSX could not be lowered; simplify the markup near the reported line",
    ErrorCategory.RUNTIME_FAILED: "The code threw while running; make sure it defines a component named MyComposition",
    ErrorCategory.EXECUTION_LIMIT: "The code did too much work per frame; reduce loop sizes",
    ErrorCategory.CODE_EXTRACTION_FAILED: "The response contained no code",
    ErrorCategory.INVALID_REQUEST: "Check the tool arguments against their documented limits",
}


# A fresh generation may pass where this one failed.
_REGENERATE_CATEGORIES = {
    ErrorCategory.SYNTAX_ERROR,
    ErrorCategory.POLICY_VIOLATION,
    ErrorCategory.LOWERING_FAILED,
    ErrorCategory.CODE_EXTRACTION_FAILED,
}


def categorize_error(error: Exception) -> tuple[ErrorCategory, str]:
    """Map an exception to an ErrorCategory + human-readable hint."""
    if isinstance(error, SandboxError):
        cat = error.category
        return (cat, _HINTS.get(cat, str(error)))

    s = str(error).lower()
    if "execution limit" in s:
        return (ErrorCategory.EXECUTION_LIMIT, _HINTS[ErrorCategory.EXECUTION_LIMIT])
    if isinstance(error, ValueError) and ("config" in s or "must be" in s):
        return (
            ErrorCategory.CONFIG_ERROR,
            "Invalid configuration value; check SANDBOX_* environment variables",
        )
    return (ErrorCategory.UNKNOWN, str(error))


def make_tool_error(error: Exception) -> dict:
    """Create a serialisable ToolError dict from an exception."""
    cat, hint = categorize_error(error)
    return ToolError(
        error=str(error),
        category=cat.value,
        hint=hint,
        retryable=cat in _REGENERATE_CATEGORIES,
    ).model_dump(mode="json")
