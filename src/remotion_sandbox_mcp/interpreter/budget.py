"""Per-frame execution budget.

Owned by whoever drives rendering: the executor charges it while code
runs, and the render loop resets it before every frame. Nothing inside
compiled code can reset or inspect it.
"""

from __future__ import annotations

from ..errors import ErrorCategory, SandboxError

DEFAULT_MAX_OPERATIONS = 250_000


class ExecutionLimitExceeded(SandboxError):
    """Raised when a budget runs out. Sandboxed ``try/catch`` cannot intercept it."""

    category = ErrorCategory.EXECUTION_LIMIT

    def __init__(self) -> None:
        super().__init__("Execution limit exceeded")


class ExecutionBudget:
    """Operation counter with a hard ceiling.

    One operation is charged per executed statement, loop iteration, and
    function call, plus one per call of the wrapped animation primitives.
    """

    __slots__ = ("max_operations", "_used")

    def __init__(self, max_operations: int = DEFAULT_MAX_OPERATIONS) -> None:
        if max_operations < 1:
            raise ValueError("max_operations must be >= 1")
        self.max_operations = max_operations
        self._used = 0

    def charge(self, operations: int = 1) -> None:
        self._used += operations
        if self._used > self.max_operations:
            raise ExecutionLimitExceeded()

    def reset(self) -> None:
        self._used = 0

    @property
    def used(self) -> int:
        return self._used

    @property
    def remaining(self) -> int:
        return max(self.max_operations - self._used, 0)

    def __repr__(self) -> str:
        return f"ExecutionBudget(used={self._used}, max_operations={self.max_operations})"
