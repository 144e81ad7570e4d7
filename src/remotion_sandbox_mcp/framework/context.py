"""Frame context and React/Remotion hooks.

Rendering is stateless per frame: the renderer installs a ``RenderContext``
for the frame being drawn and hooks read it. State, memo values, and refs
are rebuilt on every call; effects never run.
"""

from __future__ import annotations

from collections.abc import Callable
from contextvars import ContextVar
from dataclasses import dataclass, replace
from typing import Any

from ..interpreter.budget import ExecutionBudget
from ..interpreter.properties import call
from ..interpreter.values import UNDEFINED, JSRuntimeError, NativeFunction, is_callable


@dataclass(frozen=True)
class VideoConfig:
    """Composition geometry reported by ``useVideoConfig``."""

    width: int = 1920
    height: int = 1080
    fps: int = 30
    duration_in_frames: int = 90
    id: str = "MyComposition"

    def to_js(self) -> dict[str, Any]:
        return {
            "width": self.width,
            "height": self.height,
            "fps": self.fps,
            "durationInFrames": self.duration_in_frames,
            "id": self.id,
            "defaultProps": {},
            "props": {},
        }


@dataclass(frozen=True)
class RenderContext:
    """Where in time the component being rendered is.

    ``frame`` is relative to the innermost enclosing ``Sequence``;
    ``absolute_frame`` is the composition frame being drawn.
    """

    frame: int | float
    absolute_frame: int
    video_config: VideoConfig
    budget: ExecutionBudget
    expand: Callable[[Any, RenderContext], list]

    def shifted(self, offset: int | float, duration: int | float | None = None) -> RenderContext:
        config = self.video_config
        if duration is not None and duration != float("inf"):
            config = replace(config, duration_in_frames=int(duration))
        return replace(self, frame=self.frame - offset, video_config=config)

    def at_frame(self, frame: int | float) -> RenderContext:
        return replace(self, frame=frame)


_current: ContextVar[RenderContext | None] = ContextVar("remotion_render_context", default=None)


def current_context(hook: str) -> RenderContext:
    context = _current.get()
    if context is None:
        raise JSRuntimeError("Error", f"{hook}() can only be called inside a component that is being rendered")
    return context


def enter(context: RenderContext) -> Any:
    return _current.set(context)


def leave(token: Any) -> None:
    _current.reset(token)


# ── hooks ───────────────────────────────────────────────────────────────────


def use_current_frame(*_: Any) -> int | float:
    return current_context("useCurrentFrame").frame


def use_video_config(*_: Any) -> dict[str, Any]:
    return current_context("useVideoConfig").video_config.to_js()


def use_state(initial: Any = UNDEFINED, *_: Any) -> list:
    value = call(initial) if is_callable(initial) else initial
    return [value, NativeFunction(lambda *args: UNDEFINED, "setState")]


def use_memo(factory: Any = UNDEFINED, *_: Any) -> Any:
    return call(factory)


def use_callback(fn: Any = UNDEFINED, *_: Any) -> Any:
    return fn


def use_ref(initial: Any = UNDEFINED, *_: Any) -> dict[str, Any]:
    return {"current": initial}


def use_effect(*_: Any) -> Any:
    return UNDEFINED


HOOKS: dict[str, NativeFunction] = {
    "useState": NativeFunction(use_state, "useState"),
    "useEffect": NativeFunction(use_effect, "useEffect"),
    "useMemo": NativeFunction(use_memo, "useMemo"),
    "useCallback": NativeFunction(use_callback, "useCallback"),
    "useRef": NativeFunction(use_ref, "useRef"),
}
