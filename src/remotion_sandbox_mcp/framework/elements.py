"""React element model: ``createElement``, ``Fragment``, and expanded host nodes."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from ..interpreter.values import UNDEFINED, HostValue, to_string


class HostComponent(HostValue):
    """A framework component implemented in Python (``AbsoluteFill``, ``Sequence``...).

    ``render(props, context)`` returns either something renderable in the
    same frame context, or a list of already expanded ``HostNode``s when
    the component shifts time for its children.
    """

    js_typeof = "function"

    def __init__(
        self,
        name: str,
        render: Callable[[Mapping[str, Any], Any], Any],
        members: Mapping[str, Any] | None = None,
    ) -> None:
        self.name = name
        self.render = render
        self.members = dict(members or {})

    def get_member(self, key: str) -> Any:
        if key in ("name", "displayName"):
            return self.name
        return self.members.get(key, UNDEFINED)

    def __repr__(self) -> str:
        return f"<{self.name}>"


class Element(HostValue):
    """An immutable element description produced by ``createElement``."""

    __slots__ = ("type", "props", "key")

    def __init__(self, type_: Any, props: dict[str, Any], key: Any = None) -> None:
        self.type = type_
        self.props = props
        self.key = key

    def get_member(self, key: str) -> Any:
        if key == "type":
            return self.type
        if key == "props":
            return self.props
        if key == "key":
            return self.key
        return UNDEFINED

    def __repr__(self) -> str:
        name = self.type if isinstance(self.type, str) else getattr(self.type, "name", "?")
        return f"Element({name})"


@dataclass
class HostNode:
    """A rendered DOM-like node. ``children`` are nodes or text."""

    type: str
    props: dict[str, Any] = field(default_factory=dict)
    children: list[HostNode | str] = field(default_factory=list)

    def to_json(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "props": self.props,
            "children": [c.to_json() if isinstance(c, HostNode) else c for c in self.children],
        }


def _render_fragment(props: Mapping[str, Any], context: Any) -> Any:
    return props.get("children", UNDEFINED)


Fragment = HostComponent("Fragment", _render_fragment)


def create_element(type_: Any = UNDEFINED, props: Any = None, *children: Any) -> Element:
    """``React.createElement``: children land in ``props.children``.

    A single child is stored as-is, several as a list, matching React.
    """
    merged: dict[str, Any] = {}
    if isinstance(props, Mapping):
        merged.update((to_string(k), v) for k, v in props.items())
    key = merged.pop("key", None)
    merged.pop("ref", None)
    if len(children) == 1:
        merged["children"] = children[0]
    elif children:
        merged["children"] = list(children)
    return Element(type_, merged, key)


def is_valid_element(value: Any = UNDEFINED, *_: Any) -> bool:
    return isinstance(value, Element)


def clone_element(element: Any = UNDEFINED, props: Any = None, *children: Any) -> Element:
    if not isinstance(element, Element):
        raise TypeError("React.cloneElement(...): The argument must be a React element")
    merged = dict(element.props)
    if isinstance(props, Mapping):
        merged.update(props)
    key = merged.pop("key", element.key)
    if children:
        merged["children"] = children[0] if len(children) == 1 else list(children)
    return Element(element.type, merged, key)
