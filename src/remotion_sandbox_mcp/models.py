"""Pipeline result models for validation, lowering, execution, and editor state.

Validation and transform results are pydantic models because they cross
the tool boundary as JSON. Execution results carry live interpreter
objects and stay plain dataclasses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

if TYPE_CHECKING:
    from .interpreter.budget import ExecutionBudget

SYNTAX_ERROR_MESSAGE = "code contains syntax errors"
UNSAFE_PATTERN_MESSAGE = "code contains unsafe patterns"


class ValidationError(BaseModel):
    """A single rejected location in the source.

    ``message`` is one of two generic strings; the rule that fired is
    deliberately not reported.
    """

    model_config = ConfigDict(frozen=True)

    line: int = Field(ge=1, description="1-based line number")
    column: int = Field(ge=0, description="0-based column number")
    message: str


class ValidationResult(BaseModel):
    """Verdict of the static validator. ``valid`` is True iff ``errors`` is empty."""

    model_config = ConfigDict(frozen=True)

    valid: bool
    errors: list[ValidationError] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_consistency(self) -> ValidationResult:
        if self.valid != (len(self.errors) == 0):
            raise ValueError("valid must be True exactly when errors is empty")
        return self

    @classmethod
    def from_errors(cls, errors: list[ValidationError]) -> ValidationResult:
        return cls(valid=not errors, errors=list(errors))


class TransformResult(BaseModel):
    """Outcome of lowering. Exactly one of ``code``/``error`` is set."""

    model_config = ConfigDict(frozen=True)

    success: bool
    code: str | None = None
    error: str | None = None
    line: int | None = Field(default=None, description="Best-effort line of a lowering failure")

    @model_validator(mode="after")
    def _check_payload(self) -> TransformResult:
        if self.success and (self.code is None or self.error is not None):
            raise ValueError("a successful transform carries code and no error")
        if not self.success and (self.error is None or self.code is not None):
            raise ValueError("a failed transform carries an error and no code")
        return self


@dataclass(frozen=True)
class ExecutionSuccess:
    """The entry component plus the budget the render loop resets per frame."""

    component: Any
    budget: ExecutionBudget
    success: bool = True


@dataclass(frozen=True)
class ExecutionFailure:
    """Construction or invocation failed; ``error`` is shown in the fallback panel."""

    error: str
    success: bool = False


ExecutionResult = ExecutionSuccess | ExecutionFailure


class ValidationState(BaseModel):
    """Snapshot an editing surface reads after every validation pass."""

    model_config = ConfigDict(frozen=True)

    is_valid: bool = True
    errors: list[ValidationError] = Field(default_factory=list)
    transformed_code: str | None = None


class PreparedCode(BaseModel):
    """Fresh model output that passed validation and lowering."""

    raw_code: str = Field(description="Source as the editor shows it")
    code: str = Field(description="Lowered source handed to the executor")
    duration_in_frames: int
    fps: int
