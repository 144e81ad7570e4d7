"""Server-side gate for fresh model output.

Generated code is only stored, and only ever trusted by an editor
session, after it has passed validation and lowering here.
"""

from __future__ import annotations

import logging

from .errors import CodeRejectedError, ErrorCategory
from .metadata import extract_code, extract_metadata
from .models import SYNTAX_ERROR_MESSAGE, PreparedCode
from .tracing import annotate, stage
from .transformer import transform
from .validator import validate

logger = logging.getLogger(__name__)


def validate_and_lower(source: str) -> str:
    """Validate *source*, then lower it. Returns the lowered code.

    Raises:
        CodeRejectedError: Validation failed (carrying the generic message
            of the first error) or lowering failed.
    """
    with stage("validate", span_type="PARSER", source_chars=len(source)) as span:
        result = validate(source)
        annotate(span, valid=result.valid, errors=len(result.errors))
    if not result.valid:
        first = result.errors[0]
        category = (
            ErrorCategory.SYNTAX_ERROR if first.message == SYNTAX_ERROR_MESSAGE
            else ErrorCategory.POLICY_VIOLATION
        )
        logger.info("Code rejected (%d error(s))", len(result.errors))
        raise CodeRejectedError(category, f"Code validation failed: {first.message}", line=first.line)

    with stage("transform", span_type="PARSER") as span:
        lowered = transform(source)
        annotate(span, success=lowered.success)
    if not lowered.success or lowered.code is None:
        raise CodeRejectedError(
            ErrorCategory.LOWERING_FAILED,
            lowered.error or "Code transformation failed",
            line=lowered.line,
        )
    return lowered.code


def prepare_generated_code(response: str) -> PreparedCode:
    """Extract, validate, and lower the code in a model response.

    Raises:
        CodeRejectedError: No code was found, or the code failed
            ``validate_and_lower``.
    """
    code = extract_code(response)
    if not code:
        raise CodeRejectedError(ErrorCategory.CODE_EXTRACTION_FAILED, "No code found in response")

    meta = extract_metadata(code)
    lowered = validate_and_lower(code)

    logger.info(
        "Prepared generated code (%d chars, %d frames @ %d fps)",
        len(code), meta.duration_in_frames, meta.fps,
    )
    return PreparedCode(
        raw_code=code,
        code=lowered,
        duration_in_frames=meta.duration_in_frames,
        fps=meta.fps,
    )
