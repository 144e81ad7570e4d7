"""Code and timing metadata extraction from model responses."""

from __future__ import annotations

import re

from pydantic import BaseModel

DEFAULT_DURATION_FRAMES = 90
DEFAULT_FPS = 30
MIN_DURATION_FRAMES, MAX_DURATION_FRAMES = 30, 600
MIN_FPS, MAX_FPS = 15, 60

_OPEN_FENCE = re.compile(r"^```(?:jsx|tsx|javascript|typescript)?\s*\n?")
_CLOSE_FENCE = re.compile(r"\n?```\s*$")
_DURATION = re.compile(r"//\s*DURATION:\s*(\d+)")
_FPS = re.compile(r"//\s*FPS:\s*(\d+)")


class CodeMetadata(BaseModel):
    """Timing read from the ``// DURATION:`` and ``// FPS:`` header comments."""

    duration_in_frames: int = DEFAULT_DURATION_FRAMES
    fps: int = DEFAULT_FPS


def extract_code(response: str) -> str:
    """Strip surrounding whitespace and a Markdown code fence, if present."""
    code = response.strip()
    if code.startswith("```"):
        code = _CLOSE_FENCE.sub("", _OPEN_FENCE.sub("", code, count=1), count=1).strip()
    return code


def _clamp(value: int, low: int, high: int) -> int:
    return min(max(value, low), high)


def extract_metadata(source: str) -> CodeMetadata:
    """Read duration and frame rate, falling back to defaults and clamping to safe ranges."""
    duration = _DURATION.search(source)
    fps = _FPS.search(source)
    raw_duration = int(duration.group(1)) if duration else DEFAULT_DURATION_FRAMES
    raw_fps = int(fps.group(1)) if fps else DEFAULT_FPS
    return CodeMetadata(
        duration_in_frames=_clamp(raw_duration, MIN_DURATION_FRAMES, MAX_DURATION_FRAMES),
        fps=_clamp(raw_fps, MIN_FPS, MAX_FPS),
    )
