"""Remotion components and utilities exposed to generated code."""

from __future__ import annotations

import math
from collections.abc import Mapping
from typing import Any

from ..interpreter.values import UNDEFINED, NativeFunction, is_number, to_string
from .context import RenderContext
from .elements import Element, HostComponent

ABSOLUTE_FILL_STYLE: dict[str, Any] = {
    "position": "absolute",
    "top": 0,
    "left": 0,
    "right": 0,
    "bottom": 0,
    "width": "100%",
    "height": "100%",
    "display": "flex",
    "flexDirection": "column",
}


def _children(props: Mapping[str, Any]) -> Any:
    return props.get("children", UNDEFINED)


def _number_prop(props: Mapping[str, Any], key: str, default: float) -> float:
    value = props.get(key, UNDEFINED)
    if value is UNDEFINED or value is None:
        return default
    if not is_number(value):
        raise TypeError(f"The \"{key}\" prop must be a number, but got {to_string(value)}")
    return value


def _without(props: Mapping[str, Any], *keys: str) -> dict[str, Any]:
    return {k: v for k, v in props.items() if k not in keys}


def _fill(props: Mapping[str, Any]) -> Element:
    style = dict(ABSOLUTE_FILL_STYLE)
    user_style = props.get("style")
    if isinstance(user_style, Mapping):
        style.update(user_style)
    return Element("div", {**_without(props, "style"), "style": style})


def _render_absolute_fill(props: Mapping[str, Any], context: RenderContext) -> Any:
    return _fill(props)


def _render_sequence(props: Mapping[str, Any], context: RenderContext) -> Any:
    start = _number_prop(props, "from", 0)
    duration = _number_prop(props, "durationInFrames", math.inf)
    if duration <= 0:
        raise ValueError(f"durationInFrames must be positive, but got {duration}")
    if not start <= context.frame < start + duration:
        return []
    inner = context.shifted(start, duration)
    children = _children(props)
    if props.get("layout") == "none":
        return context.expand(children, inner)
    wrapper = _fill({"style": props.get("style"), "children": children})
    return context.expand(wrapper, inner)


def _render_series(props: Mapping[str, Any], context: RenderContext) -> Any:
    children = _children(props)
    items = children if isinstance(children, list) else [children]
    cursor = 0
    out: list = []
    for item in _flatten(items):
        if not isinstance(item, Element) or item.type is not SeriesSequence:
            if item in (UNDEFINED, None, False, True):
                continue
            raise TypeError("<Series> only accepts <Series.Sequence> children")
        duration = _number_prop(item.props, "durationInFrames", math.inf)
        offset = _number_prop(item.props, "offset", 0)
        start = cursor + offset
        sequence_props = {**_without(item.props, "offset"), "from": start, "durationInFrames": duration}
        out.extend(_render_sequence(sequence_props, context))
        if duration == math.inf:
            break
        cursor = start + duration
    return out


def _flatten(items: list) -> list:
    out: list = []
    for item in items:
        if isinstance(item, list):
            out.extend(_flatten(item))
        else:
            out.append(item)
    return out


def _render_series_sequence(props: Mapping[str, Any], context: RenderContext) -> Any:
    raise TypeError("<Series.Sequence> must be a direct child of <Series>")


def _render_loop(props: Mapping[str, Any], context: RenderContext) -> Any:
    duration = _number_prop(props, "durationInFrames", UNDEFINED)
    if duration is UNDEFINED or duration <= 0:
        raise ValueError("<Loop> requires a positive durationInFrames")
    times = _number_prop(props, "times", math.inf)
    iteration = math.floor(context.frame / duration)
    if iteration >= times or context.frame < 0:
        return []
    inner = context.shifted(iteration * duration, duration)
    children = _children(props)
    if props.get("layout") == "none":
        return context.expand(children, inner)
    return context.expand(_fill({"style": props.get("style"), "children": children}), inner)


def _render_freeze(props: Mapping[str, Any], context: RenderContext) -> Any:
    frame = _number_prop(props, "frame", UNDEFINED)
    if frame is UNDEFINED:
        raise ValueError("<Freeze> requires a frame prop")
    active = props.get("active", True)
    if active is False:
        return _children(props)
    return context.expand(_children(props), context.at_frame(frame))


def _media(tag: str):
    def render(props: Mapping[str, Any], context: RenderContext) -> Any:
        src = props.get("src", UNDEFINED)
        if not isinstance(src, str) or not src:
            raise TypeError(f"<{tag}> requires a src string")
        return Element(tag, dict(props))
    return render


SeriesSequence = HostComponent("Series.Sequence", _render_series_sequence)


def static_file(path: Any = UNDEFINED, *_: Any) -> str:
    text = to_string(path)
    if text.startswith(("http://", "https://")):
        raise ValueError("staticFile() does not support remote URLs")
    return "/public/" + text.lstrip("/")


def delay_render(*_: Any) -> int:
    # Frames render synchronously; the handle only keeps generated code happy.
    return 0


def continue_render(*_: Any) -> Any:
    return UNDEFINED


def get_remotion_environment(*_: Any) -> dict[str, Any]:
    return {
        "isStudio": False,
        "isRendering": True,
        "isPlayer": False,
        "isReadOnlyStudio": False,
        "isClientSideRendering": False,
    }


def build_components() -> dict[str, Any]:
    """Fresh framework components and utilities, keyed by injected name."""
    return {
        "AbsoluteFill": HostComponent("AbsoluteFill", _render_absolute_fill),
        "Sequence": HostComponent("Sequence", _render_sequence),
        "Series": HostComponent("Series", _render_series, {"Sequence": SeriesSequence}),
        "Loop": HostComponent("Loop", _render_loop),
        "Freeze": HostComponent("Freeze", _render_freeze),
        "Img": HostComponent("Img", _media("img")),
        "Video": HostComponent("Video", _media("video")),
        "OffthreadVideo": HostComponent("OffthreadVideo", _media("video")),
        "Audio": HostComponent("Audio", _media("audio")),
        "staticFile": NativeFunction(static_file, "staticFile"),
        "delayRender": NativeFunction(delay_render, "delayRender"),
        "continueRender": NativeFunction(continue_render, "continueRender"),
        "getInputProps": NativeFunction(lambda *_: {}, "getInputProps"),
        "useCurrentScale": NativeFunction(lambda *_: 1, "useCurrentScale"),
        "getRemotionEnvironment": NativeFunction(get_remotion_environment, "getRemotionEnvironment"),
    }

