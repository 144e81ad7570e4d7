"""Shared type aliases and helpers for tool parameters."""

from __future__ import annotations

import json
from typing import Annotated

from pydantic import Field

from .errors import InvalidRequestError


def parse_frame_list(value: list | str) -> list[int]:
    """Normalise the ``frames`` tool argument to a list of frame numbers.

    MCP transports may deliver a list as its JSON text; a plain
    comma-separated string such as ``"0, 15, 30"`` is accepted too.

    Raises:
        InvalidRequestError: The value is not a list of non-negative integers.
    """
    if isinstance(value, str):
        text = value.strip()
        try:
            value = json.loads(text) if text.startswith("[") else [int(p) for p in text.split(",") if p.strip()]
        except ValueError as exc:
            raise InvalidRequestError(f"frames could not be parsed: {exc}") from exc
    if not isinstance(value, list) or not all(
        isinstance(f, int) and not isinstance(f, bool) and f >= 0 for f in value
    ):
        raise InvalidRequestError("frames must be a list of non-negative integers")
    return value


# ── Annotated aliases ────────────────────────────────────────────────────────

SourceParam = Annotated[str, Field(
    min_length=1,
    max_length=200_000,
    description="Component source in JSX/TSX as the editor shows it",
)]
ResponseParam = Annotated[str, Field(
    min_length=1,
    max_length=200_000,
    description="Raw model response, optionally wrapped in a Markdown code fence",
)]
FrameList = Annotated[list[int] | str, Field(
    description="Frame numbers to render: a list, a JSON array string, or \"0, 15, 30\"",
)]
DimensionParam = Annotated[int, Field(ge=16, le=7680, description="Frame width or height in pixels")]
FpsParam = Annotated[int, Field(ge=1, le=120, description="Frames per second")]
DurationParam = Annotated[int, Field(ge=1, le=100_000, description="Composition length in frames")]
