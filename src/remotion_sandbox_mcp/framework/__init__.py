"""Python implementation of the Remotion/React surface given to generated code."""

from .context import RenderContext, VideoConfig
from .elements import Element, Fragment, HostComponent, HostNode, create_element

__all__ = [
    "Element",
    "Fragment",
    "HostComponent",
    "HostNode",
    "RenderContext",
    "VideoConfig",
    "create_element",
]
