"""Tree-sitter front end: parse JS/JSX/TSX into plain ESTree-shaped dicts.

Source is parsed with the TSX grammar, so modern syntax (optional
chaining, nullish coalescing, numeric separators) and TypeScript
annotations are all accepted. The concrete syntax tree is converted once
into ``dict``/``list`` trees with ESTree node names, so the validator,
transformer, and interpreter walk ordinary Python data and never touch
parser internals.

Type-only syntax is left out of the converted tree. Its source ranges are
listed under the ``Program`` node's ``erased`` key so the transformer can
blank them out of the lowered code.
"""

from __future__ import annotations

import math
import re
from collections.abc import Callable, Iterator
from typing import Any

import tree_sitter_typescript
from tree_sitter import Language, Node, Parser

TSX_LANGUAGE = Language(tree_sitter_typescript.language_tsx())

_EXTRAS = frozenset({"comment", "html_comment", "hash_bang_line"})

# Annotations and declarations with no runtime meaning.
_TYPE_ONLY = frozenset({
    "type_annotation", "type_parameters", "type_arguments", "accessibility_modifier",
    "override_modifier", "asserts_annotation", "type_predicate_annotation",
    "opting_type_annotation", "omitting_type_annotation", "index_signature",
})

_CHAIN_TYPES = frozenset({"member_expression", "subscript_expression", "call_expression"})
_LOGICAL_OPERATORS = frozenset({"&&", "||", "??"})
_JSX_CHILD_NODES = frozenset({"jsx_element", "jsx_self_closing_element", "jsx_expression"})

_ESCAPE = re.compile(r"\\(u\{[0-9a-fA-F]+\}|u[0-9a-fA-F]{4}|x[0-9a-fA-F]{2}|[0-7]{1,3}|\r\n|[\s\S])")
_SIMPLE_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "b": "\b", "f": "\f", "v": "\v"}
_LINE_CONTINUATIONS = frozenset({"\n", "\r", "\r\n", "\u2028", "\u2029"})


class SourceSyntaxError(Exception):
    """Raised when source text cannot be parsed.

    Attributes:
        line: 1-based line of the failure (1 when unknown).
        column: 0-based column of the failure (0 when unknown).
    """

    def __init__(self, message: str, line: int = 1, column: int = 0) -> None:
        super().__init__(message)
        self.line = line
        self.column = column


def _cook_escape(match: re.Match) -> str:
    body = match.group(1)
    if body[0] == "u" and len(body) > 1:
        code = int(body[2:-1] if body[1] == "{" else body[1:], 16)
        return chr(code) if code <= 0x10FFFF else ""
    if body[0] == "x" and len(body) == 3:
        return chr(int(body[1:], 16))
    if body[0] in "01234567":
        return chr(int(body, 8))
    if body in _LINE_CONTINUATIONS:
        return ""
    return _SIMPLE_ESCAPES.get(body, body)


def cook_string(raw: str) -> str:
    """Decode the escape sequences of a string or template body."""
    return _ESCAPE.sub(_cook_escape, raw) if "\\" in raw else raw


def number_value(text: str) -> float:
    """Value of a numeric literal: radix prefixes, separators, exponents."""
    digits = text.replace("_", "")
    prefix = digits[:2].lower()
    if prefix in ("0x", "0o", "0b"):
        whole = int(digits[2:], {"0x": 16, "0o": 8, "0b": 2}[prefix])
    elif len(digits) > 1 and digits[0] == "0" and digits.isdigit():
        # Legacy octal, or decimal when an 8 or 9 appears.
        whole = int(digits, 8) if set(digits) <= set("01234567") else int(digits)
    else:
        return float(digits)
    try:
        return float(whole)
    except OverflowError:
        return math.inf


def _first_error(root: Node) -> Node | None:
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type == "ERROR" or node.is_missing:
            return node
        stack.extend(reversed([c for c in node.children if c.has_error or c.is_missing]))
    return None


class _Converter:
    """Single-use conversion of one tree-sitter tree into ESTree dicts."""

    def __init__(self, source: str, data: bytes) -> None:
        self.source = source
        self.erased: list[list[int]] = []
        if len(data) == len(source):
            self._char_at: list[int] | None = None
        else:
            index = [0] * (len(data) + 1)
            position = 0
            for i, char in enumerate(source):
                width = len(char.encode("utf-8", "surrogatepass"))
                index[position:position + width] = [i] * width
                position += width
            index[position] = len(source)
            self._char_at = index
        self._handlers: dict[str, Callable[[Node], dict | None]] = {
            name[len("_ts_"):]: getattr(self, name) for name in dir(self) if name.startswith("_ts_")
        }

    # ── positions ──────────────────────────────────────────────────────────

    def offset(self, byte: int) -> int:
        return byte if self._char_at is None else self._char_at[byte]

    def position(self, ts: Node) -> dict[str, int]:
        row, column = ts.start_point[0], ts.start_point[1]
        line_start = self.offset(ts.start_byte - column)
        return {"line": row + 1, "column": self.offset(ts.start_byte) - line_start}

    def text(self, ts: Node) -> str:
        return self.source[self.offset(ts.start_byte):self.offset(ts.end_byte)]

    def error_at(self, ts: Node, message: str) -> SourceSyntaxError:
        where = self.position(ts)
        return SourceSyntaxError(message, line=where["line"], column=where["column"])

    def node(self, ts: Node, node_type: str, /, **fields: Any) -> dict:
        return {
            "type": node_type,
            **fields,
            "range": [self.offset(ts.start_byte), self.offset(ts.end_byte)],
            "loc": {"start": self.position(ts)},
        }

    def erase(self, ts: Node | None, start_byte: int | None = None) -> None:
        if ts is None:
            return
        start = ts.start_byte if start_byte is None else start_byte
        if start < ts.end_byte:
            self.erased.append([self.offset(start), self.offset(ts.end_byte)])

    def erase_types(self, ts: Node) -> None:
        """Erase the annotation children of *ts* (``: T``, ``<T>``, modifiers)."""
        for child in ts.children:
            if child.type in _TYPE_ONLY:
                self.erase(child)

    # ── dispatch ───────────────────────────────────────────────────────────

    def convert(self, ts: Node) -> dict | None:
        if ts.type in _TYPE_ONLY:
            self.erase(ts)
            return None
        handler = self._handlers.get(ts.type)
        result = handler(ts) if handler is not None else self._generic(ts)
        if ts.type in _CHAIN_TYPES and result is not None and _is_optional_chain(result):
            return self.node(ts, "ChainExpression", expression=result)
        return result

    def _chain_part(self, ts: Node) -> dict:
        """Convert the object or callee of a chain link without closing the chain."""
        if ts.type in _CHAIN_TYPES:
            return self._handlers[ts.type](ts)
        return self.convert(ts)

    def _generic(self, ts: Node) -> dict:
        # Unknown syntax keeps its children visible to the validator; the
        # interpreter rejects the node type itself.
        kind = "".join(part.capitalize() for part in ts.type.split("_"))
        return self.node(ts, kind, body=self.convert_all(self.named(ts)))

    def named(self, ts: Node) -> list[Node]:
        return [child for child in ts.named_children if child.type not in _EXTRAS]

    def first_named(self, ts: Node) -> Node | None:
        children = self.named(ts)
        return children[0] if children else None

    def convert_all(self, nodes: list[Node]) -> list[dict]:
        return [converted for converted in (self.convert(n) for n in nodes) if converted is not None]

    def optional(self, ts: Node | None) -> dict | None:
        """Convert an optional clause; empty statements and bare ``;`` become None."""
        if ts is None or ts.type in ("empty_statement", ";"):
            return None
        if ts.type == "expression_statement":
            ts = self.first_named(ts)
            if ts is None:
                return None
        return self.convert(ts)

    def elements(self, ts: Node, convert: Callable[[Node], dict | None]) -> list[dict | None]:
        """Array elements in order, with ``None`` for holes such as ``[a, , b]``."""
        elements: list[dict | None] = []
        seen = False
        for child in ts.children:
            if child.type == ",":
                if not seen:
                    elements.append(None)
                seen = False
            elif child.is_named and child.type not in _EXTRAS:
                elements.append(convert(child))
                seen = True
        return elements

    def has_token(self, ts: Node, token: str) -> bool:
        return any(not child.is_named and child.type == token for child in ts.children)

    # ── program and statements ─────────────────────────────────────────────

    def _ts_program(self, ts: Node) -> dict:
        return self.node(ts, "Program", sourceType="module", body=self.convert_all(self.named(ts)))

    def _ts_expression_statement(self, ts: Node) -> dict:
        return self.node(ts, "ExpressionStatement", expression=self.convert(self.first_named(ts)))

    def _declarators(self, ts: Node) -> list[dict]:
        return [self.convert(c) for c in self.named(ts) if c.type == "variable_declarator"]

    def _ts_variable_declaration(self, ts: Node) -> dict:
        return self.node(ts, "VariableDeclaration", declarations=self._declarators(ts), kind="var")

    def _ts_lexical_declaration(self, ts: Node) -> dict:
        kind_node = ts.child_by_field_name("kind") or ts.children[0]
        return self.node(ts, "VariableDeclaration", declarations=self._declarators(ts), kind=kind_node.type)

    def _ts_variable_declarator(self, ts: Node) -> dict:
        self.erase_types(ts)
        for child in ts.children:
            if child.type == "!":
                self.erase(child)
        value = ts.child_by_field_name("value")
        return self.node(
            ts,
            "VariableDeclarator",
            id=self.pattern(ts.child_by_field_name("name")),
            init=self.convert(value) if value is not None else None,
        )

    def _ts_return_statement(self, ts: Node) -> dict:
        argument = self.first_named(ts)
        return self.node(ts, "ReturnStatement", argument=self.convert(argument) if argument else None)

    def _ts_throw_statement(self, ts: Node) -> dict:
        return self.node(ts, "ThrowStatement", argument=self.convert(self.first_named(ts)))

    def _ts_if_statement(self, ts: Node) -> dict:
        alternative = ts.child_by_field_name("alternative")
        if alternative is not None and alternative.type == "else_clause":
            alternative = self.first_named(alternative)
        return self.node(
            ts,
            "IfStatement",
            test=self.convert(ts.child_by_field_name("condition")),
            consequent=self.convert(ts.child_by_field_name("consequence")),
            alternate=self.convert(alternative) if alternative is not None else None,
        )

    def _ts_statement_block(self, ts: Node) -> dict:
        return self.node(ts, "BlockStatement", body=self.convert_all(self.named(ts)))

    def _ts_for_statement(self, ts: Node) -> dict:
        return self.node(
            ts,
            "ForStatement",
            init=self.optional(ts.child_by_field_name("initializer")),
            test=self.optional(ts.child_by_field_name("condition")),
            update=self.optional(ts.child_by_field_name("increment")),
            body=self.convert(ts.child_by_field_name("body")),
        )

    def _ts_for_in_statement(self, ts: Node) -> dict:
        left_ts = ts.child_by_field_name("left")
        kind_node = ts.child_by_field_name("kind")
        if kind_node is not None:
            declarator = self.node(left_ts, "VariableDeclarator", id=self.pattern(left_ts), init=None)
            left = self.node(left_ts, "VariableDeclaration", declarations=[declarator], kind=kind_node.type)
        else:
            left = self.pattern(left_ts)
        operator = ts.child_by_field_name("operator")
        is_of = operator.type == "of" if operator is not None else self.has_token(ts, "of")
        return self.node(
            ts,
            "ForOfStatement" if is_of else "ForInStatement",
            left=left,
            right=self.convert(ts.child_by_field_name("right")),
            body=self.convert(ts.child_by_field_name("body")),
            **({"await": self.has_token(ts, "await")} if is_of else {}),
        )

    def _ts_while_statement(self, ts: Node) -> dict:
        return self.node(
            ts,
            "WhileStatement",
            test=self.convert(ts.child_by_field_name("condition")),
            body=self.convert(ts.child_by_field_name("body")),
        )

    def _ts_do_statement(self, ts: Node) -> dict:
        return self.node(
            ts,
            "DoWhileStatement",
            body=self.convert(ts.child_by_field_name("body")),
            test=self.convert(ts.child_by_field_name("condition")),
        )

    def _jump(self, ts: Node, kind: str) -> dict:
        label = ts.child_by_field_name("label") or self.first_named(ts)
        return self.node(ts, kind, label=self.identifier(label) if label is not None else None)

    def _ts_break_statement(self, ts: Node) -> dict:
        return self._jump(ts, "BreakStatement")

    def _ts_continue_statement(self, ts: Node) -> dict:
        return self._jump(ts, "ContinueStatement")

    def _ts_switch_statement(self, ts: Node) -> dict:
        cases = []
        for case in self.named(ts.child_by_field_name("body")):
            children = self.named(case)
            if case.type == "switch_case":
                test, consequent = self.convert(children[0]), children[1:]
            else:
                test, consequent = None, children
            cases.append(self.node(case, "SwitchCase", test=test, consequent=self.convert_all(consequent)))
        return self.node(
            ts, "SwitchStatement", discriminant=self.convert(ts.child_by_field_name("value")), cases=cases,
        )

    def _ts_try_statement(self, ts: Node) -> dict:
        handler = ts.child_by_field_name("handler")
        finalizer = ts.child_by_field_name("finalizer")
        catch = None
        if handler is not None:
            self.erase_types(handler)
            parameter = handler.child_by_field_name("parameter")
            catch = self.node(
                handler,
                "CatchClause",
                param=self.pattern(parameter) if parameter is not None else None,
                body=self.convert(handler.child_by_field_name("body")),
            )
        return self.node(
            ts,
            "TryStatement",
            block=self.convert(ts.child_by_field_name("body")),
            handler=catch,
            finalizer=self.convert(finalizer.child_by_field_name("body")) if finalizer is not None else None,
        )

    def _ts_labeled_statement(self, ts: Node) -> dict:
        return self.node(
            ts,
            "LabeledStatement",
            label=self.identifier(ts.child_by_field_name("label")),
            body=self.convert(ts.child_by_field_name("body")),
        )

    def _ts_empty_statement(self, ts: Node) -> dict:
        return self.node(ts, "EmptyStatement")

    def _ts_debugger_statement(self, ts: Node) -> dict:
        return self.node(ts, "DebuggerStatement")

    def _type_declaration(self, ts: Node) -> dict:
        self.erase(ts)
        return self.node(ts, "EmptyStatement")

    _ts_interface_declaration = _type_declaration
    _ts_type_alias_declaration = _type_declaration
    _ts_ambient_declaration = _type_declaration
    _ts_function_signature = _type_declaration

    # ── modules ────────────────────────────────────────────────────────────

    def _ts_import_statement(self, ts: Node) -> dict:
        specifiers: list[dict] = []
        clause = next((c for c in self.named(ts) if c.type == "import_clause"), None)
        for part in self.named(clause) if clause is not None else []:
            if part.type == "identifier":
                specifiers.append(self.node(part, "ImportDefaultSpecifier", local=self.identifier(part)))
            elif part.type == "namespace_import":
                local = self.identifier(self.first_named(part))
                specifiers.append(self.node(part, "ImportNamespaceSpecifier", local=local))
            elif part.type == "named_imports":
                for item in self.named(part):
                    if item.type != "import_specifier":
                        continue
                    imported = self.module_name(item.child_by_field_name("name"))
                    alias = item.child_by_field_name("alias")
                    specifiers.append(self.node(
                        item,
                        "ImportSpecifier",
                        imported=imported,
                        local=self.identifier(alias) if alias is not None else imported,
                        importKind="type" if self.has_token(item, "type") else "value",
                    ))
        return self.node(
            ts,
            "ImportDeclaration",
            specifiers=specifiers,
            source=self.convert(ts.child_by_field_name("source")),
            importKind="type" if self.has_token(ts, "type") else "value",
        )

    def module_name(self, ts: Node) -> dict:
        if ts.type == "string":
            return self.convert(ts)
        return self.identifier(ts)

    def _ts_export_statement(self, ts: Node) -> dict:
        source_ts = ts.child_by_field_name("source")
        source = self.convert(source_ts) if source_ts is not None else None
        if self.has_token(ts, "type"):
            return self._type_declaration(ts)
        declaration = ts.child_by_field_name("declaration")
        value = ts.child_by_field_name("value")
        if self.has_token(ts, "default"):
            target = declaration or value
            return self.node(ts, "ExportDefaultDeclaration", declaration=self.convert(target))
        if declaration is not None:
            return self.node(
                ts, "ExportNamedDeclaration", declaration=self.convert(declaration), specifiers=[], source=None,
            )
        clause = next((c for c in self.named(ts) if c.type == "export_clause"), None)
        if clause is None:
            return self.node(ts, "ExportAllDeclaration", source=source)
        specifiers = []
        for item in self.named(clause):
            if item.type != "export_specifier":
                continue
            local = self.module_name(item.child_by_field_name("name"))
            alias = item.child_by_field_name("alias")
            exported = self.module_name(alias) if alias is not None else local
            specifiers.append(self.node(item, "ExportSpecifier", local=local, exported=exported))
        return self.node(ts, "ExportNamedDeclaration", declaration=None, specifiers=specifiers, source=source)

    # ── functions ──────────────────────────────────────────────────────────

    def function(self, ts: Node, kind: str) -> dict:
        self.erase_types(ts)
        name = ts.child_by_field_name("name")
        single = ts.child_by_field_name("parameter")
        if single is not None:
            params = [self.pattern(single)]
        else:
            parameters = ts.child_by_field_name("parameters")
            params = [p for p in (self.parameter(c) for c in self.named(parameters)) if p is not None]
        body_ts = ts.child_by_field_name("body")
        body = self.convert(body_ts)
        return self.node(
            ts,
            kind,
            id=self.identifier(name) if name is not None and kind != "ArrowFunctionExpression" else None,
            params=params,
            body=body,
            generator=ts.type.startswith("generator") or self.has_token(ts, "*"),
            expression=body_ts.type != "statement_block",
            **{"async": self.has_token(ts, "async")},
        )

    def _ts_function_declaration(self, ts: Node) -> dict:
        return self.function(ts, "FunctionDeclaration")

    def _ts_generator_function_declaration(self, ts: Node) -> dict:
        return self.function(ts, "FunctionDeclaration")

    def _ts_function_expression(self, ts: Node) -> dict:
        return self.function(ts, "FunctionExpression")

    _ts_function = _ts_function_expression
    _ts_generator_function = _ts_function_expression

    def _ts_arrow_function(self, ts: Node) -> dict:
        return self.function(ts, "ArrowFunctionExpression")

    def parameter(self, ts: Node) -> dict | None:
        if ts.type in _TYPE_ONLY:
            self.erase(ts)
            return None
        if ts.type not in ("required_parameter", "optional_parameter"):
            return self.pattern(ts)
        self.erase_types(ts)
        for child in ts.children:
            if child.type == "?":
                self.erase(child)
        pattern = self.pattern(ts.child_by_field_name("pattern"))
        value = ts.child_by_field_name("value")
        if value is None:
            return pattern
        return self.node(ts, "AssignmentPattern", left=pattern, right=self.convert(value))

    # ── patterns ───────────────────────────────────────────────────────────

    def pattern(self, ts: Node) -> dict:
        kind = ts.type
        if kind in ("identifier", "shorthand_property_identifier_pattern", "undefined"):
            return self.identifier(ts)
        if kind == "object_pattern":
            return self.node(ts, "ObjectPattern", properties=[self.pattern_property(c) for c in self.named(ts)])
        if kind == "array_pattern":
            return self.node(ts, "ArrayPattern", elements=self.elements(ts, self.pattern))
        if kind == "assignment_pattern":
            return self.node(
                ts,
                "AssignmentPattern",
                left=self.pattern(ts.child_by_field_name("left")),
                right=self.convert(ts.child_by_field_name("right")),
            )
        if kind == "rest_pattern":
            return self.node(ts, "RestElement", argument=self.pattern(self.first_named(ts)))
        if kind == "parenthesized_expression":
            return self.pattern(self.first_named(ts))
        return self.convert(ts)

    def pattern_property(self, ts: Node) -> dict:
        kind = ts.type
        if kind == "rest_pattern":
            return self.pattern(ts)
        if kind == "shorthand_property_identifier_pattern":
            name = self.identifier(ts)
            return self.property(ts, name, self.identifier(ts), shorthand=True)
        if kind == "object_assignment_pattern":
            left_ts = ts.child_by_field_name("left")
            left = self.pattern(left_ts)
            default = self.node(ts, "AssignmentPattern", left=left, right=self.convert(ts.child_by_field_name("right")))
            return self.property(ts, self.identifier(left_ts), default, shorthand=True)
        if kind == "pair_pattern":
            key, computed = self.property_key(ts.child_by_field_name("key"))
            return self.property(ts, key, self.pattern(ts.child_by_field_name("value")), computed=computed)
        return self.convert(ts)

    def property(self, ts: Node, key: dict, value: dict, *, computed: bool = False,
                 shorthand: bool = False, kind: str = "init", method: bool = False) -> dict:
        return self.node(
            ts, "Property", key=key, value=value, computed=computed, kind=kind, method=method, shorthand=shorthand,
        )

    def property_key(self, ts: Node) -> tuple[dict, bool]:
        if ts.type == "computed_property_name":
            return self.convert(self.first_named(ts)), True
        if ts.type in ("property_identifier", "identifier"):
            return self.identifier(ts), False
        return self.convert(ts), False

    # ── expressions ────────────────────────────────────────────────────────

    def identifier(self, ts: Node) -> dict:
        return self.node(ts, "Identifier", name=self.text(ts))

    _ts_identifier = identifier
    _ts_property_identifier = identifier
    _ts_shorthand_property_identifier = identifier
    _ts_statement_identifier = identifier
    _ts_undefined = identifier

    def _ts_private_property_identifier(self, ts: Node) -> dict:
        return self.node(ts, "PrivateIdentifier", name=self.text(ts)[1:])

    def _ts_this(self, ts: Node) -> dict:
        return self.node(ts, "ThisExpression")

    def _ts_super(self, ts: Node) -> dict:
        return self.node(ts, "Super")

    def _ts_import(self, ts: Node) -> dict:
        return self.node(ts, "Import")

    def _ts_true(self, ts: Node) -> dict:
        return self.node(ts, "Literal", value=True, raw="true")

    def _ts_false(self, ts: Node) -> dict:
        return self.node(ts, "Literal", value=False, raw="false")

    def _ts_null(self, ts: Node) -> dict:
        return self.node(ts, "Literal", value=None, raw="null")

    def _ts_number(self, ts: Node) -> dict:
        raw = self.text(ts)
        if raw.endswith("n"):
            return self.node(ts, "BigIntLiteral", raw=raw)
        try:
            value = number_value(raw)
        except ValueError as exc:
            raise self.error_at(ts, f"Invalid number {raw}") from exc
        return self.node(ts, "Literal", value=value, raw=raw)

    def _ts_string(self, ts: Node) -> dict:
        raw = self.text(ts)
        return self.node(ts, "Literal", value=cook_string(raw[1:-1]), raw=raw)

    def _ts_regex(self, ts: Node) -> dict:
        pattern = ts.child_by_field_name("pattern")
        flags = ts.child_by_field_name("flags")
        regex = {
            "pattern": self.text(pattern) if pattern is not None else "",
            "flags": self.text(flags) if flags is not None else "",
        }
        return self.node(ts, "Literal", value=None, raw=self.text(ts), regex=regex)

    def _ts_template_string(self, ts: Node) -> dict:
        quasis: list[dict] = []
        expressions: list[dict] = []
        start = ts.start_byte + 1
        substitutions = [c for c in ts.named_children if c.type == "template_substitution"]
        for substitution in substitutions:
            quasis.append(self._quasi(ts, start, substitution.start_byte, tail=False))
            expressions.append(self.convert(self.first_named(substitution)))
            start = substitution.end_byte
        quasis.append(self._quasi(ts, start, ts.end_byte - 1, tail=True))
        return self.node(ts, "TemplateLiteral", quasis=quasis, expressions=expressions)

    def _quasi(self, ts: Node, start: int, end: int, *, tail: bool) -> dict:
        raw = self.source[self.offset(start):self.offset(end)]
        element = self.node(ts, "TemplateElement", value={"raw": raw, "cooked": cook_string(raw)}, tail=tail)
        element["range"] = [self.offset(start), self.offset(end)]
        return element

    def _ts_array(self, ts: Node) -> dict:
        return self.node(ts, "ArrayExpression", elements=self.elements(ts, self.convert))

    def _ts_object(self, ts: Node) -> dict:
        properties = []
        for child in self.named(ts):
            kind = child.type
            if kind == "pair":
                key, computed = self.property_key(child.child_by_field_name("key"))
                value = self.convert(child.child_by_field_name("value"))
                properties.append(self.property(child, key, value, computed=computed))
            elif kind == "shorthand_property_identifier":
                properties.append(
                    self.property(child, self.identifier(child), self.identifier(child), shorthand=True)
                )
            elif kind == "method_definition":
                properties.append(self._method(child))
            else:
                converted = self.convert(child)
                if converted is not None:
                    properties.append(converted)
        return self.node(ts, "ObjectExpression", properties=properties)

    def _method(self, ts: Node) -> dict:
        key, computed = self.property_key(ts.child_by_field_name("name"))
        kind = "get" if self.has_token(ts, "get") else "set" if self.has_token(ts, "set") else "init"
        value = self.function(ts, "FunctionExpression")
        value["id"] = None
        return self.property(ts, key, value, computed=computed, kind=kind, method=kind == "init")

    def _ts_spread_element(self, ts: Node) -> dict:
        return self.node(ts, "SpreadElement", argument=self.convert(self.first_named(ts)))

    def _ts_parenthesized_expression(self, ts: Node) -> dict | None:
        for child in self.named(ts):
            if child.type in _TYPE_ONLY:
                self.erase(child)
        return self.convert(self.first_named(ts))

    def _ts_sequence_expression(self, ts: Node) -> dict:
        expressions: list[dict] = []
        stack = [ts]
        while stack:
            current = stack.pop()
            if current.type == "sequence_expression":
                stack.extend(reversed(self.named(current)))
            else:
                expressions.append(self.convert(current))
        return self.node(ts, "SequenceExpression", expressions=expressions)

    def _ts_assignment_expression(self, ts: Node) -> dict:
        return self.node(
            ts,
            "AssignmentExpression",
            operator="=",
            left=self.pattern(ts.child_by_field_name("left")),
            right=self.convert(ts.child_by_field_name("right")),
        )

    def _ts_augmented_assignment_expression(self, ts: Node) -> dict:
        return self.node(
            ts,
            "AssignmentExpression",
            operator=ts.child_by_field_name("operator").type,
            left=self.pattern(ts.child_by_field_name("left")),
            right=self.convert(ts.child_by_field_name("right")),
        )

    def _ts_binary_expression(self, ts: Node) -> dict:
        operator = ts.child_by_field_name("operator").type
        return self.node(
            ts,
            "LogicalExpression" if operator in _LOGICAL_OPERATORS else "BinaryExpression",
            operator=operator,
            left=self.convert(ts.child_by_field_name("left")),
            right=self.convert(ts.child_by_field_name("right")),
        )

    def _ts_unary_expression(self, ts: Node) -> dict:
        return self.node(
            ts,
            "UnaryExpression",
            operator=ts.child_by_field_name("operator").type,
            argument=self.convert(ts.child_by_field_name("argument")),
            prefix=True,
        )

    def _ts_update_expression(self, ts: Node) -> dict:
        operator = ts.child_by_field_name("operator")
        return self.node(
            ts,
            "UpdateExpression",
            operator=operator.type,
            argument=self.convert(ts.child_by_field_name("argument")),
            prefix=operator.start_byte == ts.start_byte,
        )

    def _ts_ternary_expression(self, ts: Node) -> dict:
        return self.node(
            ts,
            "ConditionalExpression",
            test=self.convert(ts.child_by_field_name("condition")),
            consequent=self.convert(ts.child_by_field_name("consequence")),
            alternate=self.convert(ts.child_by_field_name("alternative")),
        )

    def _ts_member_expression(self, ts: Node) -> dict:
        prop = ts.child_by_field_name("property")
        return self.node(
            ts,
            "MemberExpression",
            object=self._chain_part(ts.child_by_field_name("object")),
            property=self.convert(prop),
            computed=False,
            optional=self._is_optional_link(ts),
        )

    def _ts_subscript_expression(self, ts: Node) -> dict:
        return self.node(
            ts,
            "MemberExpression",
            object=self._chain_part(ts.child_by_field_name("object")),
            property=self.convert(ts.child_by_field_name("index")),
            computed=True,
            optional=self._is_optional_link(ts),
        )

    def _ts_call_expression(self, ts: Node) -> dict:
        self.erase_types(ts)
        callee = self._chain_part(ts.child_by_field_name("function"))
        arguments = ts.child_by_field_name("arguments")
        if arguments.type == "template_string":
            return self.node(ts, "TaggedTemplateExpression", tag=callee, quasi=self.convert(arguments))
        return self.node(
            ts,
            "CallExpression",
            callee=callee,
            arguments=self.convert_all(self.named(arguments)),
            optional=self._is_optional_link(ts),
        )

    def _is_optional_link(self, ts: Node) -> bool:
        return any(child.type == "optional_chain" or child.type == "?." for child in ts.children)

    def _ts_new_expression(self, ts: Node) -> dict:
        self.erase_types(ts)
        arguments = ts.child_by_field_name("arguments")
        return self.node(
            ts,
            "NewExpression",
            callee=self.convert(ts.child_by_field_name("constructor")),
            arguments=self.convert_all(self.named(arguments)) if arguments is not None else [],
        )

    def _ts_await_expression(self, ts: Node) -> dict:
        return self.node(ts, "AwaitExpression", argument=self.convert(self.first_named(ts)))

    def _ts_yield_expression(self, ts: Node) -> dict:
        argument = self.first_named(ts)
        return self.node(ts, "YieldExpression", argument=self.convert(argument) if argument else None)

    def _ts_class_declaration(self, ts: Node) -> dict:
        return self.node(ts, "ClassDeclaration", body=self.convert_all(self.named(ts)))

    def _ts_class(self, ts: Node) -> dict:
        return self.node(ts, "ClassExpression", body=self.convert_all(self.named(ts)))

    # TypeScript expression wrappers keep only their runtime operand.

    def _unwrap_typed(self, ts: Node) -> dict | None:
        operand = self.first_named(ts)
        self.erase(ts, start_byte=operand.end_byte)
        return self.convert(operand)

    _ts_as_expression = _unwrap_typed
    _ts_satisfies_expression = _unwrap_typed
    _ts_non_null_expression = _unwrap_typed

    # ── JSX ────────────────────────────────────────────────────────────────

    def _ts_jsx_element(self, ts: Node) -> dict:
        opening_ts = ts.child_by_field_name("open_tag")
        closing_ts = ts.child_by_field_name("close_tag")
        opening_name = opening_ts.child_by_field_name("name")
        closing_name = closing_ts.child_by_field_name("name")
        children = self.jsx_children(opening_ts.end_byte, closing_ts.start_byte, ts)
        if opening_name is None:
            if closing_name is not None:
                raise self.error_at(closing_ts, "Expected corresponding closing tag for JSX fragment")
            return self.node(ts, "JSXFragment", children=children)
        expected = self.text(opening_name)
        if closing_name is None or self.text(closing_name) != expected:
            raise self.error_at(closing_ts, f"Expected corresponding JSX closing tag for <{expected}>")
        return self.node(
            ts,
            "JSXElement",
            openingElement=self.jsx_opening(opening_ts, opening_name, self_closing=False),
            closingElement=self.node(closing_ts, "JSXClosingElement", name=self.jsx_name(closing_name)),
            children=children,
        )

    def _ts_jsx_self_closing_element(self, ts: Node) -> dict:
        name = ts.child_by_field_name("name")
        return self.node(
            ts,
            "JSXElement",
            openingElement=self.jsx_opening(ts, name, self_closing=True),
            closingElement=None,
            children=[],
        )

    def jsx_opening(self, ts: Node, name: Node, *, self_closing: bool) -> dict:
        self.erase_types(ts)
        attributes = [
            self.jsx_attribute(child)
            for child in self.named(ts)
            if child.type in ("jsx_attribute", "jsx_expression")
        ]
        return self.node(
            ts, "JSXOpeningElement", name=self.jsx_name(name), attributes=attributes, selfClosing=self_closing,
        )

    def jsx_name(self, ts: Node) -> dict:
        kind = ts.type
        if kind in ("member_expression", "nested_identifier"):
            obj = ts.child_by_field_name("object")
            prop = ts.child_by_field_name("property")
            if obj is None or prop is None:
                parts = self.named(ts)
                obj, prop = parts[0], parts[-1]
            return self.node(
                ts,
                "JSXMemberExpression",
                object=self.jsx_name(obj),
                property=self.node(prop, "JSXIdentifier", name=self.text(prop)),
            )
        if kind == "jsx_namespace_name":
            namespace, name = self.named(ts)[0], self.named(ts)[-1]
            return self.node(
                ts,
                "JSXNamespacedName",
                namespace=self.node(namespace, "JSXIdentifier", name=self.text(namespace)),
                name=self.node(name, "JSXIdentifier", name=self.text(name)),
            )
        return self.node(ts, "JSXIdentifier", name=self.text(ts))

    def jsx_attribute(self, ts: Node) -> dict:
        if ts.type == "jsx_expression":
            inner = self.first_named(ts)
            if inner is None or inner.type != "spread_element":
                raise self.error_at(ts, "JSX attributes must be assigned a value")
            return self.node(ts, "JSXSpreadAttribute", argument=self.convert(self.first_named(inner)))
        parts = self.named(ts)
        value_ts = parts[1] if len(parts) > 1 else None
        if value_ts is None:
            value = None
        elif value_ts.type == "string":
            value = self.node(value_ts, "Literal", value=self.text(value_ts)[1:-1], raw=self.text(value_ts))
        else:
            value = self.jsx_child(value_ts)
        return self.node(ts, "JSXAttribute", name=self.jsx_name(parts[0]), value=value)

    def jsx_children(self, start: int, end: int, parent: Node) -> list[dict]:
        """Children between the tags; any run of raw text becomes one ``JSXText``."""
        children: list[dict] = []
        cursor = start
        for child in parent.named_children:
            if child.start_byte < start or child.end_byte > end or child.type not in _JSX_CHILD_NODES:
                continue
            if child.start_byte > cursor:
                children.append(self.jsx_text(cursor, child.start_byte, child))
            children.append(self.jsx_child(child))
            cursor = child.end_byte
        if end > cursor:
            children.append(self.jsx_text(cursor, end, parent))
        return children

    def jsx_text(self, start: int, end: int, near: Node) -> dict:
        raw = self.source[self.offset(start):self.offset(end)]
        text = self.node(near, "JSXText", value=raw, raw=raw)
        text["range"] = [self.offset(start), self.offset(end)]
        return text

    def jsx_child(self, ts: Node) -> dict:
        if ts.type != "jsx_expression":
            return self.convert(ts)
        inner = self.first_named(ts)
        if inner is None:
            return self.node(ts, "JSXExpressionContainer", expression=self.node(ts, "JSXEmptyExpression"))
        if inner.type == "spread_element":
            return self.node(ts, "JSXSpreadChild", expression=self.convert(self.first_named(inner)))
        return self.node(ts, "JSXExpressionContainer", expression=self.convert(inner))


def _is_optional_chain(node: dict) -> bool:
    """True when *node* ends a member/call chain containing an ``?.`` link."""
    current: dict | None = node
    while current is not None and current["type"] in ("MemberExpression", "CallExpression"):
        if current.get("optional"):
            return True
        current = current.get("object") if current["type"] == "MemberExpression" else current.get("callee")
    return False


def parse_source(source: str) -> dict:
    """Parse *source* into an ESTree-shaped dict tree with locations and ranges.

    JSX and TypeScript annotations are both accepted. Ranges are character
    offsets into *source*; lines are 1-based and columns 0-based.

    Returns:
        The root ``Program`` node as a dict. Its ``erased`` key lists the
        ``[start, end]`` ranges of type-only syntax.

    Raises:
        SourceSyntaxError: If the source does not parse.
    """
    data = source.encode("utf-8", "surrogatepass")
    tree = Parser(TSX_LANGUAGE).parse(data)
    converter = _Converter(source, data)
    root = tree.root_node
    if root.has_error:
        bad = _first_error(root) or root
        if bad.is_missing:
            raise converter.error_at(bad, f"Missing {bad.type}")
        raise converter.error_at(bad, "Unexpected token")
    try:
        program = converter.convert(root)
    except RecursionError as exc:
        raise SourceSyntaxError("Source nesting is too deep") from exc
    program["erased"] = [list(span) for span in sorted({tuple(span) for span in converter.erased})]
    return program


def is_node(value: Any) -> bool:
    return isinstance(value, dict) and isinstance(value.get("type"), str)


def iter_child_nodes(node: dict) -> Iterator[dict]:
    """Yield every direct child node under any key, in key order.

    Generic on purpose: syntax forms the walker has never seen are still
    visited.
    """
    for key, child in node.items():
        if key in ("loc", "range", "erased"):
            continue
        if is_node(child):
            yield child
        elif isinstance(child, list):
            for item in child:
                if is_node(item):
                    yield item


def walk(node: dict) -> Iterator[dict]:
    """Depth-first pre-order traversal over *node* and all descendants."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(list(iter_child_nodes(current))))


def node_position(node: dict) -> tuple[int, int]:
    """Return ``(line, column)`` of a node's start, defaulting to ``(1, 0)``."""
    loc = node.get("loc") or {}
    start = loc.get("start") or {}
    line = start.get("line")
    column = start.get("column")
    return (
        line if isinstance(line, int) and line >= 1 else 1,
        column if isinstance(column, int) and column >= 0 else 0,
    )
