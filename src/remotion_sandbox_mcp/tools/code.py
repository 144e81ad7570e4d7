"""Code sandbox tools: 4 tools on a FastMCP sub-server."""

from __future__ import annotations

import logging
from typing import Annotated

from fastmcp import FastMCP
from mcp.types import ToolAnnotations
from pydantic import Field

from ..config import get_config
from ..errors import InvalidRequestError, make_tool_error
from ..pipeline import prepare_generated_code, validate_and_lower
from ..renderer import VideoConfig, render_code
from ..tracing import trace
from ..types import (
    DimensionParam,
    DurationParam,
    FpsParam,
    FrameList,
    ResponseParam,
    SourceParam,
    parse_frame_list,
)
from ..validator import validate

logger = logging.getLogger(__name__)
code_server = FastMCP("code")


@code_server.tool(annotations=ToolAnnotations(readOnlyHint=True, openWorldHint=False))
@trace(name="code_validate", span_type="TOOL")
async def code_validate(source: SourceParam) -> dict:
    """Check component source against the capability allowlist.

    Error messages are deliberately generic: either "code contains syntax
    errors" or "code contains unsafe patterns", with a line and column.

    Args:
        source: JSX/TSX component source.

    Returns:
        Dict with valid (bool) and errors (list of line, column, message).
    """
    try:
        return validate(source).model_dump(mode="json")
    except Exception as exc:
        return make_tool_error(exc)


@code_server.tool(annotations=ToolAnnotations(readOnlyHint=True, openWorldHint=False))
@trace(name="code_transform", span_type="TOOL")
async def code_transform(source: SourceParam) -> dict:
    """Validate component source, then lower its JSX and types to plain JavaScript.

    Source that fails validation is never lowered.

    Args:
        source: JSX/TSX component source.

    Returns:
        Dict with success and the lowered code.
    """
    try:
        return {"success": True, "code": validate_and_lower(source)}
    except Exception as exc:
        return make_tool_error(exc)


@code_server.tool(annotations=ToolAnnotations(readOnlyHint=True, openWorldHint=False))
@trace(name="code_prepare", span_type="TOOL")
async def code_prepare(response: ResponseParam) -> dict:
    """Gate a raw model response before it is stored or shown.

    Strips a Markdown fence, reads the ``// DURATION:`` and ``// FPS:``
    header comments (clamped to 30-600 frames and 15-60 fps), validates,
    and lowers.

    Args:
        response: Raw model output.

    Returns:
        Dict with raw_code, code (lowered), duration_in_frames, fps.
    """
    try:
        return prepare_generated_code(response).model_dump(mode="json")
    except Exception as exc:
        return make_tool_error(exc)


@code_server.tool(annotations=ToolAnnotations(readOnlyHint=True, openWorldHint=False))
@trace(name="code_render_frames", span_type="TOOL")
async def code_render_frames(
    source: SourceParam,
    frames: FrameList,
    width: DimensionParam | None = None,
    height: DimensionParam | None = None,
    fps: FpsParam | None = None,
    duration_in_frames: DurationParam | None = None,
    composition_id: Annotated[str | None, Field(description="Reported as useVideoConfig().id")] = None,
) -> dict:
    """Validate, lower, execute, and render selected frames to element trees.

    Each frame is rendered with a fresh execution budget. A frame that
    throws is returned as an "Execution Error" panel; the other frames
    still render.

    Args:
        source: JSX/TSX component source defining ``MyComposition``.
        frames: Frame numbers to render.
        width: Composition width (defaults from config).
        height: Composition height (defaults from config).
        fps: Frames per second (defaults from config).
        duration_in_frames: Composition length (defaults from config).
        composition_id: Composition id reported to the component.

    Returns:
        Dict with frames (frame, error, operations, tree) and failed_frames.
    """
    try:
        cfg = get_config()
        frame_list = parse_frame_list(frames)
        if len(frame_list) > cfg.max_render_frames:
            raise InvalidRequestError(
                f"Too many frames requested: {len(frame_list)} (max_render_frames is {cfg.max_render_frames})"
            )

        lowered = validate_and_lower(source)
        video_config = VideoConfig(
            width=width or cfg.default_width,
            height=height or cfg.default_height,
            fps=fps or cfg.default_fps,
            duration_in_frames=duration_in_frames or cfg.default_duration_frames,
            id=composition_id or cfg.entry_component,
        )
        rendered = render_code(lowered, frame_list, video_config=video_config)
        return {
            "frames": [r.to_json() for r in rendered],
            "failed_frames": [r.frame for r in rendered if r.error],
        }
    except Exception as exc:
        return make_tool_error(exc)
