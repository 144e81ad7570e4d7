"""Capability allowlist for model-generated Remotion code.

Single reviewable list of what generated code may import and reference,
and the inverse list of identifiers and ``object.property`` pairs that are
always rejected. Any change to this module is a security-relevant change.

Consumed by ``validator`` (static checks) and mirrored by ``capabilities``
(the values actually injected at execution time).
"""

from __future__ import annotations

from dataclasses import dataclass

# Exact import sources.
ALLOWED_IMPORTS: frozenset[str] = frozenset({
    # Core Remotion
    "remotion",
    # Remotion sub-packages (commonly used)
    "@remotion/google-fonts",
    "@remotion/animation-utils",
    "@remotion/layout-utils",
    "@remotion/shapes",
    "@remotion/noise",
    "@remotion/paths",
    "@remotion/media-utils",
    "@remotion/transitions",
    "@remotion/motion-blur",
    "@remotion/gif",
    # React (required for JSX)
    "react",
})

# Namespace prefixes, plain ``str.startswith`` match.
ALLOWED_IMPORT_PREFIXES: tuple[str, ...] = ("@remotion/",)

ALLOWED_GLOBALS: frozenset[str] = frozenset({
    # React
    "React", "useState", "useEffect", "useMemo", "useCallback", "useRef", "Fragment",
    # Remotion core
    "AbsoluteFill", "Sequence", "Audio", "Img", "Video", "Series", "Loop", "Freeze", "OffthreadVideo",
    # Remotion hooks
    "useCurrentFrame", "useVideoConfig", "useCurrentScale", "staticFile", "random",
    "continueRender", "delayRender", "getInputProps",
    # Remotion animation
    "interpolate", "spring", "Easing", "interpolateColors", "measureSpring",
    # Remotion utilities
    "getRemotionEnvironment",
    # Common JS globals (safe)
    "Math", "Array", "Object", "String", "Number", "Boolean", "JSON", "Date", "RegExp",
    "Map", "Set", "Promise", "console", "undefined", "null", "NaN", "Infinity",
    "parseInt", "parseFloat", "isNaN", "isFinite",
    "encodeURIComponent", "decodeURIComponent",
})

BLOCKED_IDENTIFIERS: frozenset[str] = frozenset({
    # Dynamic code execution
    "eval", "Function",
    # Module system (dynamic)
    "require", "import", "module", "exports",
    # Network access
    "fetch", "XMLHttpRequest", "WebSocket", "EventSource", "Request", "Response", "Headers",
    # DOM access
    "document", "window", "location", "navigator", "history",
    "localStorage", "sessionStorage", "indexedDB",
    # Node.js globals
    "process", "global", "globalThis", "__dirname", "__filename", "Buffer",
    "setImmediate", "clearImmediate",
    # Timers
    "setTimeout", "setInterval", "clearTimeout", "clearInterval",
    # Reflection and prototype access
    "Proxy", "Reflect", "constructor", "prototype", "__proto__",
})

BLOCKED_MEMBER_PAIRS: frozenset[tuple[str, str]] = frozenset({
    ("Object", "constructor"),
    ("Function", "prototype"),
    ("Function", "constructor"),
    ("Array", "constructor"),
    ("String", "constructor"),
    ("Number", "constructor"),
    ("Boolean", "constructor"),
})

# Callees rejected at the call site on top of the identifier rule.
BLOCKED_CALLEES: frozenset[str] = frozenset({"require", "eval", "Function"})


@dataclass(frozen=True)
class AllowlistConfig:
    """Immutable allowlist, loaded once per process."""

    allowed_import_sources: frozenset[str] = ALLOWED_IMPORTS
    allowed_import_prefixes: tuple[str, ...] = ALLOWED_IMPORT_PREFIXES
    allowed_globals: frozenset[str] = ALLOWED_GLOBALS
    blocked_identifiers: frozenset[str] = BLOCKED_IDENTIFIERS
    blocked_member_pairs: frozenset[tuple[str, str]] = BLOCKED_MEMBER_PAIRS
    blocked_callees: frozenset[str] = BLOCKED_CALLEES

    def is_import_allowed(self, source: str) -> bool:
        """True iff *source* is listed exactly or starts with a permitted prefix."""
        if source in self.allowed_import_sources:
            return True
        return any(source.startswith(prefix) for prefix in self.allowed_import_prefixes)

    def is_allowed_global(self, name: str) -> bool:
        return name in self.allowed_globals

    def is_blocked_identifier(self, name: str) -> bool:
        return name in self.blocked_identifiers

    def is_blocked_member(self, object_name: str, property_name: str) -> bool:
        return (object_name, property_name) in self.blocked_member_pairs


DEFAULT_ALLOWLIST = AllowlistConfig()


def is_import_allowed(source: str) -> bool:
    """Check an import source against the process-wide allowlist."""
    return DEFAULT_ALLOWLIST.is_import_allowed(source)
