"""Tests for the debounced validation session."""

from __future__ import annotations

import asyncio
from unittest.mock import MagicMock

import pytest

from remotion_sandbox_mcp.models import SYNTAX_ERROR_MESSAGE, TransformResult, ValidationState
from remotion_sandbox_mcp.orchestrator import SessionState, ValidationSession
from remotion_sandbox_mcp.transformer import transform
from remotion_sandbox_mcp.validator import validate

DELAY = 0.02
GOOD = "const MyComposition = () => <div>ok</div>;"
BAD = "const MyComposition = () => { fetch('/x'); return null; };"


async def settle():
    await asyncio.sleep(DELAY * 5)


class TestDebounce:
    @pytest.mark.asyncio
    async def test_valid_source_is_lowered(self):
        session = ValidationSession(DELAY)
        session.edit(GOOD)
        assert session.state is SessionState.PENDING_DEBOUNCE
        assert session.pending

        await settle()
        assert session.state is SessionState.VALID
        assert session.snapshot.is_valid
        assert session.snapshot.transformed_code == transform(GOOD).code
        assert not session.pending

    @pytest.mark.asyncio
    async def test_only_latest_edit_is_validated(self):
        """GIVEN several quick edits WHEN the delay passes THEN only the last is validated."""
        validator = MagicMock(side_effect=validate)
        session = ValidationSession(DELAY, validate=validator)
        session.edit("const a = 1;")
        session.edit("const a = 2;")
        session.edit(GOOD)

        await settle()
        validator.assert_called_once_with(GOOD)

    @pytest.mark.asyncio
    async def test_edit_restarts_timer(self):
        validator = MagicMock(side_effect=validate)
        session = ValidationSession(DELAY * 4, validate=validator)
        session.edit(GOOD)
        await asyncio.sleep(DELAY * 2)
        session.edit(GOOD)
        await asyncio.sleep(DELAY * 2)
        validator.assert_not_called()

        await asyncio.sleep(DELAY * 4)
        validator.assert_called_once()

    @pytest.mark.asyncio
    async def test_default_delay_from_config(self, monkeypatch):
        monkeypatch.setenv("SANDBOX_DEBOUNCE_MS", "250")
        assert ValidationSession().delay == 0.25

    def test_edit_requires_running_loop(self):
        with pytest.raises(RuntimeError):
            ValidationSession(DELAY).edit(GOOD)


class TestPassOutcome:
    @pytest.mark.asyncio
    async def test_invalid_source_skips_transform(self):
        transformer = MagicMock(side_effect=transform)
        session = ValidationSession(DELAY, transform=transformer)
        session.edit(BAD)

        await settle()
        assert session.state is SessionState.INVALID
        assert session.snapshot.is_valid is False
        assert session.snapshot.errors == validate(BAD).errors
        assert session.snapshot.transformed_code is None
        transformer.assert_not_called()

    @pytest.mark.asyncio
    async def test_syntax_error(self):
        session = ValidationSession(DELAY)
        session.edit("const = ;")
        await settle()
        assert session.snapshot.errors[0].message == SYNTAX_ERROR_MESSAGE

    @pytest.mark.asyncio
    async def test_transform_failure_becomes_single_error(self):
        transformer = MagicMock(return_value=TransformResult(success=False, error="boom", line=3))
        session = ValidationSession(DELAY, transform=transformer)
        session.edit(GOOD)

        await settle()
        assert session.state is SessionState.INVALID
        [error] = session.snapshot.errors
        assert (error.line, error.column, error.message) == (3, 0, "boom")

    @pytest.mark.asyncio
    async def test_transform_failure_without_line(self):
        """GIVEN a lowering error with no position THEN it is reported on line 1."""
        failed = TransformResult(success=False, error="JSX transformation failed: Invalid syntax")
        assert failed.line is None
        session = ValidationSession(DELAY, transform=MagicMock(return_value=failed))
        session.edit(GOOD)

        await settle()
        [error] = session.snapshot.errors
        assert (error.line, error.column) == (1, 0)
        assert error.message == "JSX transformation failed: Invalid syntax"

    @pytest.mark.asyncio
    async def test_invalid_then_fixed(self):
        session = ValidationSession(DELAY)
        session.edit(BAD)
        await settle()
        session.edit(GOOD)
        await settle()
        assert session.state is SessionState.VALID
        assert session.snapshot.errors == []


class TestTrustAndReset:
    @pytest.mark.asyncio
    async def test_apply_generated_cancels_pending(self):
        validator = MagicMock(side_effect=validate)
        session = ValidationSession(DELAY, validate=validator)
        session.edit(BAD)
        session.apply_generated(GOOD)

        await settle()
        validator.assert_not_called()
        assert session.state is SessionState.VALID
        assert session.snapshot == ValidationState()

    @pytest.mark.asyncio
    async def test_reset_to_valid_clears_errors(self):
        session = ValidationSession(DELAY)
        session.edit(BAD)
        await settle()
        assert session.state is SessionState.INVALID

        session.reset_to_valid()
        assert session.state is SessionState.VALID
        assert session.snapshot.errors == []
        assert session.snapshot.transformed_code is None

    @pytest.mark.asyncio
    async def test_flush_runs_pending_now(self):
        session = ValidationSession(60)
        session.edit(GOOD)
        snapshot = session.flush()
        assert snapshot.is_valid
        assert snapshot.transformed_code is not None
        assert not session.pending

    def test_flush_without_pending_returns_snapshot(self):
        session = ValidationSession(DELAY)
        assert session.flush() == ValidationState()
        assert session.state is SessionState.IDLE


class TestListeners:
    @pytest.mark.asyncio
    async def test_subscribe_and_unsubscribe(self):
        seen: list[ValidationState] = []
        session = ValidationSession(DELAY)
        unsubscribe = session.subscribe(seen.append)
        session.edit(GOOD)
        await settle()
        assert len(seen) == 1 and seen[0].is_valid

        unsubscribe()
        session.edit(BAD)
        await settle()
        assert len(seen) == 1

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_block_others(self):
        seen: list[ValidationState] = []
        session = ValidationSession(DELAY)
        session.subscribe(MagicMock(side_effect=RuntimeError("listener bug")))
        session.subscribe(seen.append)
        session.edit(GOOD)
        await settle()
        assert len(seen) == 1
        assert session.state is SessionState.VALID

    @pytest.mark.asyncio
    async def test_sessions_are_independent(self):
        first, second = ValidationSession(DELAY), ValidationSession(DELAY)
        first.edit(BAD)
        second.edit(GOOD)
        await settle()
        assert first.state is SessionState.INVALID
        assert second.state is SessionState.VALID


class TestClose:
    @pytest.mark.asyncio
    async def test_close_cancels_pending_and_rejects_edits(self):
        validator = MagicMock(side_effect=validate)
        session = ValidationSession(DELAY, validate=validator)
        session.edit(GOOD)
        session.close()

        await settle()
        validator.assert_not_called()
        with pytest.raises(RuntimeError, match="closed"):
            session.edit(GOOD)
        with pytest.raises(RuntimeError, match="closed"):
            session.apply_generated(GOOD)
