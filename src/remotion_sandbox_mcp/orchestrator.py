"""Debounced validation for one editing session.

Every edit cancels the pending timer and schedules a new one, so only the
latest source is ever validated. A pass runs the validator first and only
lowers source that passed it; transform errors are never computed for
rejected code.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from enum import Enum

from .config import get_config
from .models import TransformResult, ValidationError, ValidationResult, ValidationState
from .transformer import transform as default_transform
from .validator import validate as default_validate

logger = logging.getLogger(__name__)

Listener = Callable[[ValidationState], None]


class SessionState(str, Enum):
    """Where a session is in its edit/validate cycle."""

    IDLE = "idle"
    PENDING_DEBOUNCE = "pending_debounce"
    VALIDATING = "validating"
    VALID = "valid"
    INVALID = "invalid"


class ValidationSession:
    """Debounced validate-then-lower loop for a single editor.

    Must be driven from a running asyncio event loop. Sessions share no
    state; give each editing surface its own.

    Args:
        delay: Debounce delay in seconds. Defaults to ``ServerConfig.debounce_ms``.
        validate: Validator used for each pass.
        transform: Transformer used for sources that validated.
    """

    def __init__(
        self,
        delay: float | None = None,
        *,
        validate: Callable[[str], ValidationResult] = default_validate,
        transform: Callable[[str], TransformResult] = default_transform,
    ) -> None:
        self.delay = get_config().debounce_seconds if delay is None else delay
        self._validate = validate
        self._transform = transform
        self._timer: asyncio.TimerHandle | None = None
        self._pending: str | None = None
        self._listeners: list[Listener] = []
        self._state = SessionState.IDLE
        self._snapshot = ValidationState()
        self._closed = False

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def snapshot(self) -> ValidationState:
        return self._snapshot

    @property
    def pending(self) -> bool:
        return self._timer is not None

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call *listener* with every published snapshot. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def edit(self, source: str) -> None:
        """Record an edit and restart the debounce timer."""
        self._check_open()
        self._cancel_timer()
        self._pending = source
        self._state = SessionState.PENDING_DEBOUNCE
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.delay, self._on_timer)

    def apply_generated(self, source: str) -> None:
        """Accept *source* without validating it (trust mode).

        For fresh model output that already passed the server-side gate.
        No lowered code is cached; callers use the lowered form stored
        alongside the generation.
        """
        self._check_open()
        logger.debug("Trusting generated source (%d chars)", len(source))
        self.reset_to_valid()

    def reset_to_valid(self) -> None:
        """Drop any pending pass and publish a clean valid state."""
        self._cancel_timer()
        self._pending = None
        self._publish(SessionState.VALID, ValidationState())

    def flush(self) -> ValidationState:
        """Run the pending pass now instead of waiting for its timer."""
        if self._timer is not None:
            self._cancel_timer()
            self._run_pending()
        return self._snapshot

    def close(self) -> None:
        self._cancel_timer()
        self._pending = None
        self._listeners.clear()
        self._closed = True

    # ── internals ──────────────────────────────────────────────────────────

    def _check_open(self) -> None:
        if self._closed:
            raise RuntimeError("ValidationSession is closed")

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_timer(self) -> None:
        self._timer = None
        self._run_pending()

    def _run_pending(self) -> None:
        source, self._pending = self._pending, None
        if source is None:
            return
        self._state = SessionState.VALIDATING

        result = self._validate(source)
        if not result.valid:
            logger.debug("Validation pass rejected source (%d error(s))", len(result.errors))
            self._publish(SessionState.INVALID, ValidationState(is_valid=False, errors=result.errors))
            return

        lowered = self._transform(source)
        if not lowered.success:
            error = ValidationError(
                line=lowered.line or 1,
                column=0,
                message=lowered.error,
            )
            self._publish(SessionState.INVALID, ValidationState(is_valid=False, errors=[error]))
            return

        self._publish(SessionState.VALID, ValidationState(is_valid=True, transformed_code=lowered.code))

    def _publish(self, state: SessionState, snapshot: ValidationState) -> None:
        self._state = state
        self._snapshot = snapshot
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Validation listener failed")
