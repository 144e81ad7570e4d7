"""JSX to plain JavaScript lowering.

Rewrites every JSX element into a classic ``React.createElement`` call,
turns static imports into local aliases over the injected capability set,
and drops ``export`` keywords and TypeScript annotations. Rewriting works
by splicing the original source between node ranges, so everything that
is not JSX, a type, or a module declaration passes through byte-for-byte.

Only ever called on source that already passed ``validator.validate``;
it performs no security checks of its own.
"""

from __future__ import annotations

import html
import json
import logging
import re

from .models import TransformResult
from .parser import SourceSyntaxError, is_node, iter_child_nodes, parse_source

logger = logging.getLogger(__name__)

_POSITION_SUFFIX = re.compile(r"\((\d+):(\d+)\)")
_LINE_PREFIX = re.compile(r"^Line (\d+):\s*")
_IDENTIFIER = re.compile(r"^[A-Za-z_$][\w$]*$")

_JSX_ROOTS = ("JSXElement", "JSXFragment")


class _Lowerer:
    """Single-use rewriter over one parsed module."""

    def __init__(self, source: str, erased: list[list[int]] | None = None) -> None:
        self.source = source
        self.erased = erased or []

    def text(self, node: dict) -> str:
        start, end = node["range"]
        return self.source[start:end]

    def lower_module(self, program: dict) -> str:
        replacements: list[tuple[int, int, str]] = []
        for statement in program.get("body", []):
            kind = statement["type"]
            if kind == "ImportDeclaration":
                replacements.append(self._replace(statement, self._lower_import(statement)))
            elif kind in ("ExportNamedDeclaration", "ExportDefaultDeclaration", "ExportAllDeclaration"):
                replacements.append(self._replace(statement, self._lower_export(statement)))
            else:
                replacements.extend(self._rewrites(statement))
        return self._splice(0, len(self.source), replacements)

    def _replace(self, statement: dict, text: str) -> tuple[int, int, str]:
        start, end = statement["range"]
        # Keep following lines where they were.
        newlines = self.source.count("\n", start, end) - text.count("\n")
        return (start, end, text + "\n" * max(newlines, 0))

    def _splice(self, start: int, end: int, replacements: list[tuple[int, int, str]]) -> str:
        pieces: list[str] = []
        cursor = start
        for r_start, r_end, text in sorted(replacements):
            pieces.append(self.source[cursor:r_start])
            pieces.append(text)
            cursor = r_end
        pieces.append(self.source[cursor:end])
        return "".join(pieces)

    def _outer_jsx(self, node: dict) -> list[dict]:
        """Outermost JSX roots under *node* (not descending into them)."""
        found: list[dict] = []
        stack = [node]
        while stack:
            current = stack.pop()
            if current["type"] in _JSX_ROOTS:
                found.append(current)
                continue
            stack.extend(iter_child_nodes(current))
        return found

    def _rewrites(self, node: dict) -> list[tuple[int, int, str]]:
        """Lowered JSX roots under *node*, plus blanks over its type annotations."""
        start, end = node["range"]
        rewrites = [
            (jsx["range"][0], jsx["range"][1], self.lower_jsx(jsx)) for jsx in self._outer_jsx(node)
        ]
        jsx_spans = [(r_start, r_end) for r_start, r_end, _ in rewrites]
        for e_start, e_end in self.erased:
            if e_start < start or e_end > end:
                continue
            if any(j_start <= e_start and e_end <= j_end for j_start, j_end in jsx_spans):
                continue
            rewrites.append((e_start, e_end, "\n" * self.source.count("\n", e_start, e_end)))
        return rewrites

    def lower_span(self, node: dict) -> str:
        """Source of *node* with every nested JSX root lowered and types erased."""
        if node["type"] in _JSX_ROOTS:
            return self.lower_jsx(node)
        start, end = node["range"]
        return self._splice(start, end, self._rewrites(node))

    # ── modules ────────────────────────────────────────────────────────────

    def _lower_import(self, node: dict) -> str:
        if node.get("importKind") == "type":
            return ""
        source = node["source"]["value"]
        aliases: list[str] = []
        for spec in node.get("specifiers", []):
            if spec.get("importKind") == "type":
                continue
            local = spec["local"]["name"]
            if spec["type"] == "ImportSpecifier":
                imported = spec["imported"].get("name", spec["imported"].get("value"))
                if imported != local:
                    aliases.append(f"const {local} = {imported};")
            elif source == "react" and local != "React":
                aliases.append(f"const {local} = React;")
        return " ".join(aliases)

    def _lower_export(self, node: dict) -> str:
        declaration = node.get("declaration")
        if not is_node(declaration):
            return ""
        if node["type"] == "ExportDefaultDeclaration" and declaration["type"] not in (
            "FunctionDeclaration",
            "ClassDeclaration",
        ):
            # ``export default Name;`` keeps nothing; an inline value stays evaluated.
            if declaration["type"] == "Identifier":
                return ""
            return f"({self.lower_span(declaration)});"
        return self.lower_span(declaration)

    # ── JSX ────────────────────────────────────────────────────────────────

    def lower_jsx(self, node: dict) -> str:
        if node["type"] == "JSXFragment":
            tag = "React.Fragment"
            props = "null"
        else:
            opening = node["openingElement"]
            if opening.get("name") is None:
                tag = "React.Fragment"
                props = "null"
            else:
                tag = self._tag(opening["name"])
                props = self._props(opening.get("attributes", []))
        args = [tag, props, *self._children(node.get("children", []))]
        return f"React.createElement({', '.join(args)})"

    def _tag(self, name: dict) -> str:
        kind = name["type"]
        if kind == "JSXIdentifier":
            value = name["name"]
            if value[:1].islower() or "-" in value:
                return json.dumps(value)
            return value
        if kind == "JSXMemberExpression":
            return f"{self._tag_member(name['object'])}.{name['property']['name']}"
        if kind == "JSXNamespacedName":
            return json.dumps(f"{name['namespace']['name']}:{name['name']['name']}")
        raise ValueError(f"Unsupported element name: {kind}")

    def _tag_member(self, node: dict) -> str:
        if node["type"] == "JSXMemberExpression":
            return f"{self._tag_member(node['object'])}.{node['property']['name']}"
        return node["name"]

    def _props(self, attributes: list[dict]) -> str:
        if not attributes:
            return "null"
        entries: list[str] = []
        for attr in attributes:
            if attr["type"] == "JSXSpreadAttribute":
                entries.append(f"...{self.lower_span(attr['argument'])}")
                continue
            name_node = attr["name"]
            if name_node["type"] == "JSXNamespacedName":
                name = f"{name_node['namespace']['name']}:{name_node['name']['name']}"
            else:
                name = name_node["name"]
            key = name if _IDENTIFIER.match(name) else json.dumps(name)
            entries.append(f"{key}: {self._attr_value(attr.get('value'))}")
        return "{" + ", ".join(entries) + "}"

    def _attr_value(self, value: dict | None) -> str:
        if value is None:
            return "true"
        kind = value["type"]
        if kind == "Literal" and isinstance(value.get("value"), str):
            raw = self.text(value)[1:-1]
            return json.dumps(html.unescape(raw))
        if kind == "JSXExpressionContainer":
            return self.lower_span(value["expression"])
        return self.lower_span(value)

    def _children(self, children: list[dict]) -> list[str]:
        out: list[str] = []
        for child in children:
            kind = child["type"]
            if kind == "JSXText":
                text = clean_jsx_text(self.text(child))
                if text:
                    out.append(json.dumps(html.unescape(text)))
            elif kind == "JSXExpressionContainer":
                expression = child["expression"]
                if expression["type"] != "JSXEmptyExpression":
                    out.append(self.lower_span(expression))
            elif kind == "JSXSpreadChild":
                out.append(f"...{self.lower_span(child['expression'])}")
            else:
                out.append(self.lower_span(child))
        return out


def clean_jsx_text(raw: str) -> str:
    """Apply React's JSX whitespace rules to a text child.

    Lines are trimmed at the edges that touch a line break, blank lines
    are dropped, and the remaining lines are joined with single spaces.
    """
    lines = raw.replace("\r\n", "\n").split("\n")
    last_non_empty = max((i for i, line in enumerate(lines) if line.strip(" \t")), default=-1)
    result = ""
    for i, line in enumerate(lines):
        trimmed = line.replace("\t", " ")
        if i != 0:
            trimmed = trimmed.lstrip(" ")
        if i != len(lines) - 1:
            trimmed = trimmed.rstrip(" ")
        if trimmed:
            if i != last_non_empty:
                trimmed += " "
            result += trimmed
    return result


def _clean_error_message(error: str) -> str:
    """Strip paths and positions from a lowering error for user display."""
    cleaned = re.sub(r"at\s+[^\s]+:\d+:\d+", "", error)
    cleaned = re.sub(r"\((\d+):(\d+)\)\s*$", "", cleaned)
    cleaned = _LINE_PREFIX.sub("", cleaned.strip())
    cleaned = cleaned.strip()
    return cleaned or "Invalid syntax"


def _extract_line(error: str) -> int | None:
    match = _POSITION_SUFFIX.search(error) or _LINE_PREFIX.search(error)
    return int(match.group(1)) if match else None


def transform(source: str) -> TransformResult:
    """Lower validated JSX source to plain JavaScript.

    Args:
        source: JSX or TSX source that already passed validation.

    Returns:
        TransformResult with the lowered code, or a cleaned error message.
    """
    try:
        tree = parse_source(source)
        code = _Lowerer(source, tree.get("erased")).lower_module(tree)
    except SourceSyntaxError as exc:
        message = f"{exc} ({exc.line}:{exc.column})"
        return _failure(message)
    except (KeyError, TypeError, ValueError) as exc:
        logger.warning("Lowering failed on parsed source: %s", exc)
        return _failure(str(exc) or "Unknown transformation error")
    return TransformResult(success=True, code=code)


def _failure(message: str) -> TransformResult:
    line = _extract_line(message)
    line_info = f" at line {line}" if line is not None else ""
    return TransformResult(
        success=False,
        error=f"JSX transformation failed{line_info}: {_clean_error_message(message)}",
        line=line,
    )
