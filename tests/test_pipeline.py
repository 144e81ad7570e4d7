"""Tests for the generated-code gate."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from remotion_sandbox_mcp.errors import CodeRejectedError, ErrorCategory
from remotion_sandbox_mcp.models import PreparedCode, TransformResult
from remotion_sandbox_mcp.pipeline import prepare_generated_code, validate_and_lower

GOOD = "const MyComposition = () => <AbsoluteFill>hi</AbsoluteFill>;"


class TestValidateAndLower:
    def test_returns_lowered_code(self):
        code = validate_and_lower(GOOD)
        assert "React.createElement(AbsoluteFill" in code
        assert "<" not in code

    def test_policy_violation(self):
        with pytest.raises(CodeRejectedError) as exc_info:
            validate_and_lower("const MyComposition = () => { eval('1'); return null; };")
        err = exc_info.value
        assert err.category == ErrorCategory.POLICY_VIOLATION
        assert str(err) == "Code validation failed: code contains unsafe patterns"
        assert err.line == 1

    def test_syntax_error(self):
        with pytest.raises(CodeRejectedError) as exc_info:
            validate_and_lower("const MyComposition = () => <div>;\n")
        assert exc_info.value.category == ErrorCategory.SYNTAX_ERROR
        assert str(exc_info.value) == "Code validation failed: code contains syntax errors"

    def test_lowering_failure(self):
        failed = TransformResult(success=False, error="JSX transformation failed at line 2: bad", line=2)
        with patch("remotion_sandbox_mcp.pipeline.transform", return_value=failed):
            with pytest.raises(CodeRejectedError) as exc_info:
                validate_and_lower(GOOD)
        assert exc_info.value.category == ErrorCategory.LOWERING_FAILED
        assert exc_info.value.line == 2

    def test_rejected_code_is_never_lowered(self):
        with patch("remotion_sandbox_mcp.pipeline.transform") as mock_transform:
            with pytest.raises(CodeRejectedError):
                validate_and_lower("const MyComposition = () => window.location;")
        mock_transform.assert_not_called()


class TestPrepareGeneratedCode:
    def test_fenced_response(self):
        response = f"```tsx\n// DURATION: 120\n// FPS: 24\n{GOOD}\n```"
        prepared = prepare_generated_code(response)
        assert isinstance(prepared, PreparedCode)
        assert prepared.raw_code == f"// DURATION: 120\n// FPS: 24\n{GOOD}"
        assert prepared.code == validate_and_lower(prepared.raw_code)
        assert (prepared.duration_in_frames, prepared.fps) == (120, 24)

    def test_empty_response(self):
        with pytest.raises(CodeRejectedError) as exc_info:
            prepare_generated_code("```jsx\n```")
        assert exc_info.value.category == ErrorCategory.CODE_EXTRACTION_FAILED
        assert str(exc_info.value) == "No code found in response"

    def test_unsafe_response(self):
        with pytest.raises(CodeRejectedError) as exc_info:
            prepare_generated_code("const MyComposition = () => { fetch('/x'); return null; };")
        assert exc_info.value.category == ErrorCategory.POLICY_VIOLATION
