"""Render-worker harness: draw an executed component frame by frame.

Each frame resets the component's execution budget, installs a frame
context for the hooks, and expands the element tree into JSON-ready host
nodes. A frame that fails is drawn as an error panel; it never stops the
frames after it.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from .config import get_config
from .errors import SandboxError
from .executor import execute
from .framework.context import RenderContext, VideoConfig, enter, leave
from .framework.elements import Element, HostComponent, HostNode
from .interpreter import UNDEFINED, ExecutionBudget, HostValue, JSRuntimeError
from .interpreter.values import is_callable, is_number, number_to_string, typeof
from .tracing import annotate, stage

logger = logging.getLogger(__name__)

__all__ = ["RenderedFrame", "VideoConfig", "error_fallback", "render_code", "render_frame"]


@dataclass
class RenderedFrame:
    """One drawn frame. ``error`` is set when ``nodes`` is the fallback panel."""

    frame: int
    nodes: list[HostNode | str] = field(default_factory=list)
    error: str | None = None
    operations: int = 0

    def to_json(self) -> dict[str, Any]:
        return {
            "frame": self.frame,
            "error": self.error,
            "operations": self.operations,
            "tree": [n.to_json() if isinstance(n, HostNode) else n for n in self.nodes],
        }


# ── fallback panel ──────────────────────────────────────────────────────────


def error_fallback(message: str) -> HostNode:
    """The in-frame panel shown instead of a component that failed."""
    heading = HostNode(
        "h2",
        {"style": {
            "color": "#ef4444",
            "fontSize": 32,
            "fontFamily": "system-ui, sans-serif",
            "marginBottom": 24,
            "fontWeight": 600,
        }},
        ["Execution Error"],
    )
    detail = HostNode(
        "pre",
        {"style": {
            "color": "#fca5a5",
            "fontSize": 16,
            "fontFamily": "monospace",
            "backgroundColor": "#2a2a2a",
            "padding": 24,
            "borderRadius": 8,
            "textAlign": "left",
            "whiteSpace": "pre-wrap",
            "wordBreak": "break-word",
            "border": "1px solid #3f3f3f",
        }},
        [message],
    )
    panel = HostNode("div", {"style": {"maxWidth": 800, "textAlign": "center"}}, [heading, detail])
    return HostNode(
        "div",
        {"style": {
            "position": "absolute",
            "top": 0,
            "left": 0,
            "right": 0,
            "bottom": 0,
            "backgroundColor": "#1a1a1a",
            "display": "flex",
            "alignItems": "center",
            "justifyContent": "center",
            "padding": 40,
        }},
        [panel],
    )


# ── tree expansion ──────────────────────────────────────────────────────────


def _plain(value: Any) -> Any:
    """Prop value as JSON data; functions and framework objects become ``None``."""
    if value is None or isinstance(value, (bool, str)):
        return value
    if is_number(value):
        if isinstance(value, float) and math.isfinite(value) and value.is_integer():
            return int(value)
        return value if math.isfinite(value) else number_to_string(value)
    if isinstance(value, list):
        return [_plain(v) for v in value]
    if isinstance(value, Mapping):
        return {k: _plain(v) for k, v in value.items() if v is not UNDEFINED and not is_callable(v)}
    return None


def _host_props(props: Mapping[str, Any]) -> dict[str, Any]:
    return {
        key: _plain(value)
        for key, value in props.items()
        if key != "children" and value is not UNDEFINED and not is_callable(value)
    }


def _invalid_child(value: Mapping[str, Any]) -> JSRuntimeError:
    keys = ", ".join(value.keys())
    return JSRuntimeError(
        "Error",
        f"Objects are not valid as a React child (found: object with keys {{{keys}}}). "
        "If you meant to render a collection of children, use an array instead.",
    )


def _render_component(element: Element, context: RenderContext) -> Any:
    component = element.type
    props = dict(element.props)
    if isinstance(component, HostComponent):
        try:
            return component.render(props, context)
        except (TypeError, ValueError, ArithmeticError) as exc:
            raise JSRuntimeError("Error", f"<{component.name}>: {exc}") from exc
    if is_callable(component):
        token = enter(context)
        try:
            return component(props)
        finally:
            leave(token)
    raise JSRuntimeError(
        "Error",
        "Element type is invalid: expected a string (for built-in components) or a "
        f"class/function (for composite components) but got: {typeof(component)}.",
    )


def expand(value: Any, context: RenderContext) -> list[HostNode | str]:
    """Expand renderable *value* into host nodes under *context*."""
    if value is UNDEFINED or value is None or isinstance(value, bool):
        return []
    if isinstance(value, str):
        return [value] if value else []
    if is_number(value):
        return [number_to_string(value)]
    if isinstance(value, HostNode):
        return [value]
    if isinstance(value, list):
        out: list[HostNode | str] = []
        for item in value:
            out.extend(expand(item, context))
        return out
    if isinstance(value, Element):
        if isinstance(value.type, str):
            children = expand(value.props.get("children", UNDEFINED), context)
            return [HostNode(value.type, _host_props(value.props), children)]
        return expand(_render_component(value, context), context)
    if isinstance(value, Mapping):
        raise _invalid_child(value)
    # Functions and bare framework objects render nothing, as in React.
    if is_callable(value) or isinstance(value, HostValue):
        return []
    raise JSRuntimeError("Error", f"Cannot render a value of type {typeof(value)}")


# ── frames ──────────────────────────────────────────────────────────────────


def default_video_config() -> VideoConfig:
    cfg = get_config()
    return VideoConfig(
        width=cfg.default_width,
        height=cfg.default_height,
        fps=cfg.default_fps,
        duration_in_frames=cfg.default_duration_frames,
        id=cfg.entry_component,
    )


def render_frame(
    component: Any,
    frame: int,
    *,
    video_config: VideoConfig | None = None,
    budget: ExecutionBudget,
) -> RenderedFrame:
    """Render *component* at *frame*.

    The budget is reset first, so every frame gets the full quota no
    matter how long the animation is. Sandbox failures become the
    fallback panel.
    """
    budget.reset()
    context = RenderContext(
        frame=frame,
        absolute_frame=frame,
        video_config=video_config or default_video_config(),
        budget=budget,
        expand=expand,
    )
    try:
        nodes = expand(Element(component, {}), context)
    except SandboxError as exc:
        logger.warning("Frame %d failed: %s", frame, exc)
        return RenderedFrame(frame, [error_fallback(str(exc))], error=str(exc), operations=budget.used)
    except RecursionError:
        message = "RangeError: Maximum call stack size exceeded"
        logger.warning("Frame %d failed: %s", frame, message)
        return RenderedFrame(frame, [error_fallback(message)], error=message, operations=budget.used)
    return RenderedFrame(frame, nodes, operations=budget.used)


def render_code(
    lowered_code: str,
    frames: Iterable[int],
    *,
    video_config: VideoConfig | None = None,
    budget: ExecutionBudget | None = None,
) -> list[RenderedFrame]:
    """Execute *lowered_code* once and render each of *frames*.

    Returns one ``RenderedFrame`` per requested frame, in order, even when
    execution or individual frames fail.
    """
    frames = list(frames)
    with stage("execute", code_chars=len(lowered_code)) as span:
        result = execute(lowered_code, budget=budget)
        annotate(span, success=result.success)
    if not result.success:
        return [RenderedFrame(f, [error_fallback(result.error)], error=result.error) for f in frames]

    config = video_config or default_video_config()
    rendered: list[RenderedFrame] = []
    with stage("render_frames", frames=len(frames)) as span:
        for frame in frames:
            try:
                rendered.append(render_frame(result.component, frame, video_config=config, budget=result.budget))
            except Exception as exc:
                logger.exception("Unexpected failure rendering frame %d", frame)
                rendered.append(RenderedFrame(frame, [error_fallback(str(exc))], error=str(exc)))
        failed = sum(1 for r in rendered if r.error)
        annotate(span, failed=failed, operations=sum(r.operations for r in rendered))
    logger.info("Rendered %d frame(s), %d failed", len(rendered), failed)
    return rendered
