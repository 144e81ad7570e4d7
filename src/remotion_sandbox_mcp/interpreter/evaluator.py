"""Tree-walking evaluator for lowered sandbox code.

Lowered code is re-parsed as a plain script and walked directly; it is
never handed to Python's ``eval``/``exec``. Every statement, loop
iteration, and function call is charged to an ``ExecutionBudget``, and
call depth is capped, so a runaway component fails with a catchable
error instead of hanging the process.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from ..parser import SourceSyntaxError, iter_child_nodes, node_position, parse_source, walk
from .budget import ExecutionBudget
from .operators import MAX_STRING_LENGTH, binary, unary
from .properties import check_array_length, delete_property, get_property, own_keys, set_property
from .values import (
    MAX_SAFE_INTEGER,
    UNDEFINED,
    JSFunction,
    JSRuntimeError,
    JSThrow,
    NativeFunction,
    range_error,
    reference_error,
    strict_equals,
    to_property_key,
    to_string,
    truthy,
    type_error,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_CALL_DEPTH = 64

SUPPORTED_NODE_TYPES = frozenset({
    "Program",
    # statements
    "ExpressionStatement", "VariableDeclaration", "VariableDeclarator", "FunctionDeclaration",
    "ReturnStatement", "IfStatement", "BlockStatement", "ForStatement", "ForOfStatement",
    "ForInStatement", "WhileStatement", "DoWhileStatement", "BreakStatement", "ContinueStatement",
    "SwitchStatement", "SwitchCase", "ThrowStatement", "TryStatement", "CatchClause",
    "LabeledStatement", "EmptyStatement", "DebuggerStatement",
    # expressions
    "Identifier", "Literal", "TemplateLiteral", "TemplateElement", "ArrayExpression",
    "ObjectExpression", "Property", "FunctionExpression", "ArrowFunctionExpression",
    "UnaryExpression", "UpdateExpression", "BinaryExpression", "LogicalExpression",
    "AssignmentExpression", "ConditionalExpression", "SequenceExpression", "MemberExpression",
    "CallExpression", "NewExpression", "ThisExpression", "SpreadElement", "ChainExpression",
    # patterns
    "ObjectPattern", "ArrayPattern", "AssignmentPattern", "RestElement",
})

_FUNCTION_TYPES = ("FunctionDeclaration", "FunctionExpression", "ArrowFunctionExpression")
_DECLARATION_KINDS = ("var", "let", "const")


class _Return(Exception):
    def __init__(self, value: Any) -> None:
        self.value = value


class _Break(Exception):
    def __init__(self, label: str | None) -> None:
        self.label = label


class _Continue(Exception):
    def __init__(self, label: str | None) -> None:
        self.label = label


class _ShortCircuit(Exception):
    """An ``?.`` link met null or undefined; the whole chain yields undefined."""


class Scope:
    """One lexical environment. Function scopes also carry ``this``."""

    __slots__ = ("names", "constants", "parent", "is_function", "this")

    def __init__(self, parent: Scope | None = None, *, is_function: bool = False, this: Any = UNDEFINED) -> None:
        self.names: dict[str, Any] = {}
        self.constants: set[str] = set()
        self.parent = parent
        self.is_function = is_function
        self.this = this

    def declare(self, name: str, value: Any, *, constant: bool = False) -> None:
        self.names[name] = value
        if constant:
            self.constants.add(name)
        else:
            self.constants.discard(name)

    def find(self, name: str) -> Scope | None:
        scope: Scope | None = self
        while scope is not None:
            if name in scope.names:
                return scope
            scope = scope.parent
        return None

    def lookup(self, name: str) -> Any:
        scope = self.find(name)
        if scope is None:
            raise reference_error(f"{name} is not defined")
        return scope.names[name]

    def assign(self, name: str, value: Any) -> None:
        scope = self.find(name)
        if scope is None:
            raise reference_error(f"{name} is not defined")
        if name in scope.constants:
            raise type_error("Assignment to constant variable.")
        scope.names[name] = value

    def function_scope(self) -> Scope:
        scope = self
        while not scope.is_function and scope.parent is not None:
            scope = scope.parent
        return scope

    def copy(self) -> Scope:
        clone = Scope(self.parent, is_function=self.is_function, this=self.this)
        clone.names = dict(self.names)
        clone.constants = set(self.constants)
        return clone


def _callee_text(node: dict) -> str:
    kind = node["type"]
    if kind == "Identifier":
        return node["name"]
    if kind == "MemberExpression" and not node.get("computed"):
        return f"{_callee_text(node['object'])}.{node['property']['name']}"
    if kind == "ThisExpression":
        return "this"
    return "expression"


def _binding_names(pattern: dict | None) -> list[str]:
    if pattern is None:
        return []
    kind = pattern["type"]
    if kind == "Identifier":
        return [pattern["name"]]
    if kind == "ObjectPattern":
        names: list[str] = []
        for prop in pattern["properties"]:
            target = prop["argument"] if prop["type"] == "RestElement" else prop["value"]
            names.extend(_binding_names(target))
        return names
    if kind == "ArrayPattern":
        return [name for element in pattern["elements"] for name in _binding_names(element)]
    if kind == "AssignmentPattern":
        return _binding_names(pattern["left"])
    if kind == "RestElement":
        return _binding_names(pattern["argument"])
    return []


def _var_names(statements: Sequence[dict]) -> list[str]:
    """``var`` bindings declared anywhere in *statements*, not crossing function boundaries."""
    names: list[str] = []
    stack = list(statements)
    while stack:
        node = stack.pop()
        if node["type"] in _FUNCTION_TYPES:
            continue
        if node["type"] == "VariableDeclaration" and node["kind"] == "var":
            for declarator in node["declarations"]:
                names.extend(_binding_names(declarator["id"]))
        stack.extend(iter_child_nodes(node))
    return names


def _iterate(value: Any) -> list:
    if isinstance(value, list):
        return value
    if isinstance(value, str):
        return list(value)
    raise type_error(f"{to_string(value)} is not iterable")


class Interpreter:
    """Executes one compiled unit and every closure it creates.

    Args:
        budget: Operation budget charged while code runs. Owned by the caller.
        max_call_depth: Nested call limit before a ``RangeError``.
    """

    def __init__(self, budget: ExecutionBudget, max_call_depth: int = DEFAULT_MAX_CALL_DEPTH) -> None:
        self.budget = budget
        self.max_call_depth = max_call_depth
        self.depth = 0
        self._statements = {
            name[len("_exec_"):]: getattr(self, name) for name in dir(self) if name.startswith("_exec_")
        }
        self._expressions = {
            name[len("_eval_"):]: getattr(self, name) for name in dir(self) if name.startswith("_eval_")
        }

    # ── functions ──────────────────────────────────────────────────────────

    def make_function(self, node: dict, scope: Scope, name: str = "") -> JSFunction:
        fn_name = name or (node.get("id") or {}).get("name") or ""
        this = scope.function_scope().this if node["type"] == "ArrowFunctionExpression" else UNDEFINED
        return JSFunction(node, scope, self, fn_name, this)

    def call_function(self, fn: JSFunction, args: list, this: Any = UNDEFINED) -> Any:
        self.budget.charge()
        if self.depth >= self.max_call_depth:
            raise range_error("Maximum call stack size exceeded")
        node = fn.node
        scope = Scope(fn.scope, is_function=True, this=fn.this if fn.is_arrow else this)
        if not fn.is_arrow:
            scope.declare("arguments", list(args))
        if node["type"] == "FunctionExpression" and node.get("id"):
            scope.declare(node["id"]["name"], fn)
        self.depth += 1
        try:
            self._bind_params(node["params"], args, scope)
            body = node["body"]
            if body["type"] != "BlockStatement":
                return self.evaluate(body, scope)
            statements = body["body"]
            self.hoist(statements, scope, include_vars=True)
            try:
                self.exec_statements(statements, scope)
            except _Return as ret:
                return ret.value
            return UNDEFINED
        except RecursionError:
            raise range_error("Maximum call stack size exceeded") from None
        finally:
            self.depth -= 1

    def invoke(self, fn: Any, args: list, this: Any = UNDEFINED, callee: str = "expression") -> Any:
        if isinstance(fn, JSFunction):
            return self.call_function(fn, args, this)
        if isinstance(fn, NativeFunction):
            self.budget.charge()
            return fn(*args)
        raise type_error(f"{callee} is not a function")

    def _bind_params(self, params: list[dict], args: list, scope: Scope) -> None:
        for i, param in enumerate(params):
            if param["type"] == "RestElement":
                self.bind_pattern(param["argument"], list(args[i:]), scope, "param")
                return
            self.bind_pattern(param, args[i] if i < len(args) else UNDEFINED, scope, "param")

    # ── bindings ───────────────────────────────────────────────────────────

    def hoist(self, statements: Sequence[dict], scope: Scope, *, include_vars: bool = False) -> None:
        if include_vars:
            for name in _var_names(statements):
                if name not in scope.names:
                    scope.declare(name, UNDEFINED)
        for statement in statements:
            if statement["type"] == "FunctionDeclaration":
                fn = self.make_function(statement, scope)
                scope.declare(fn.name, fn)

    def bind_pattern(self, pattern: dict, value: Any, scope: Scope, kind: str | None) -> None:
        """Bind *value* to *pattern*.

        ``kind`` is a declaration keyword, ``"param"`` for parameters and catch
        bindings, or None for plain assignment.
        """
        ptype = pattern["type"]
        if ptype == "Identifier":
            name = pattern["name"]
            if kind in _DECLARATION_KINDS and isinstance(value, JSFunction) and not value.name:
                value.name = name
            if kind is None or kind == "var":
                scope.assign(name, value)
            else:
                scope.declare(name, value, constant=kind == "const")
        elif ptype == "MemberExpression" and kind is None:
            target = self.evaluate(pattern["object"], scope)
            set_property(target, self._member_key(pattern, scope), value)
        elif ptype == "AssignmentPattern":
            if value is UNDEFINED:
                value = self.evaluate(pattern["right"], scope)
            self.bind_pattern(pattern["left"], value, scope, kind)
        elif ptype == "ArrayPattern":
            items = _iterate(value)
            for i, element in enumerate(pattern["elements"]):
                if element is None:
                    continue
                if element["type"] == "RestElement":
                    self.bind_pattern(element["argument"], list(items[i:]), scope, kind)
                    break
                self.bind_pattern(element, items[i] if i < len(items) else UNDEFINED, scope, kind)
        elif ptype == "ObjectPattern":
            if value is UNDEFINED or value is None:
                raise type_error(f"Cannot destructure '{to_string(value)}' as it is {to_string(value)}.")
            used: list[str] = []
            for prop in pattern["properties"]:
                if prop["type"] == "RestElement":
                    rest = {k: v for k, v in zip(own_keys(value), self._own_values(value)) if k not in used}
                    self.bind_pattern(prop["argument"], rest, scope, kind)
                    continue
                key = self._property_key(prop, scope)
                used.append(key)
                self.bind_pattern(prop["value"], get_property(value, key, self.budget), scope, kind)
        else:
            raise JSRuntimeError("SyntaxError", f"Invalid destructuring target {ptype}")

    def _own_values(self, value: Any) -> list:
        return [get_property(value, key, self.budget) for key in own_keys(value)]

    def _property_key(self, prop: dict, scope: Scope) -> str:
        key = prop["key"]
        if prop.get("computed"):
            return to_property_key(self.evaluate(key, scope))
        if key["type"] == "Identifier":
            return key["name"]
        return to_property_key(self._literal_value(key))

    def _member_key(self, node: dict, scope: Scope) -> Any:
        if node.get("computed"):
            return self.evaluate(node["property"], scope)
        return node["property"]["name"]

    # ── statements ─────────────────────────────────────────────────────────

    def exec_statements(self, statements: Sequence[dict], scope: Scope) -> None:
        for statement in statements:
            self.execute(statement, scope)

    def execute(self, node: dict, scope: Scope) -> None:
        self.budget.charge()
        self._statements[node["type"]](node, scope)

    def _exec_ExpressionStatement(self, node: dict, scope: Scope) -> None:
        self.evaluate(node["expression"], scope)

    def _exec_VariableDeclaration(self, node: dict, scope: Scope) -> None:
        kind = node["kind"]
        for declarator in node["declarations"]:
            init = declarator.get("init")
            if init is None and kind == "var":
                continue
            if init is None:
                value = UNDEFINED
            elif init["type"] in _FUNCTION_TYPES and declarator["id"]["type"] == "Identifier":
                # `const Title = () => ...` names the function Title
                value = self.make_function(init, scope, declarator["id"]["name"])
            else:
                value = self.evaluate(init, scope)
            self.bind_pattern(declarator["id"], value, scope, kind)

    def _exec_FunctionDeclaration(self, node: dict, scope: Scope) -> None:
        pass

    def _exec_EmptyStatement(self, node: dict, scope: Scope) -> None:
        pass

    def _exec_DebuggerStatement(self, node: dict, scope: Scope) -> None:
        pass

    def _exec_ReturnStatement(self, node: dict, scope: Scope) -> None:
        argument = node.get("argument")
        raise _Return(UNDEFINED if argument is None else self.evaluate(argument, scope))

    def _exec_IfStatement(self, node: dict, scope: Scope) -> None:
        if truthy(self.evaluate(node["test"], scope)):
            self.execute(node["consequent"], scope)
        elif node.get("alternate") is not None:
            self.execute(node["alternate"], scope)

    def _exec_BlockStatement(self, node: dict, scope: Scope) -> None:
        block = Scope(scope)
        self.hoist(node["body"], block)
        self.exec_statements(node["body"], block)

    def _exec_ThrowStatement(self, node: dict, scope: Scope) -> None:
        raise JSThrow(self.evaluate(node["argument"], scope))

    def _exec_BreakStatement(self, node: dict, scope: Scope) -> None:
        label = node.get("label")
        raise _Break(label["name"] if label else None)

    def _exec_ContinueStatement(self, node: dict, scope: Scope) -> None:
        label = node.get("label")
        raise _Continue(label["name"] if label else None)

    def _exec_TryStatement(self, node: dict, scope: Scope) -> None:
        handler = node.get("handler")
        finalizer = node.get("finalizer")
        try:
            self._exec_BlockStatement(node["block"], scope)
        except (JSThrow, JSRuntimeError) as exc:
            if handler is None:
                raise
            catch_scope = Scope(scope)
            if handler.get("param") is not None:
                thrown = exc.value if isinstance(exc, JSThrow) else exc.to_value()
                self.bind_pattern(handler["param"], thrown, catch_scope, "param")
            self._exec_BlockStatement(handler["body"], catch_scope)
        finally:
            if finalizer is not None:
                self._exec_BlockStatement(finalizer, scope)

    def _exec_SwitchStatement(self, node: dict, scope: Scope, labels: frozenset = frozenset()) -> None:
        discriminant = self.evaluate(node["discriminant"], scope)
        block = Scope(scope)
        cases = node["cases"]
        for case in cases:
            self.hoist(case["consequent"], block)
        start = None
        for i, case in enumerate(cases):
            if case.get("test") is not None and strict_equals(discriminant, self.evaluate(case["test"], block)):
                start = i
                break
        if start is None:
            start = next((i for i, case in enumerate(cases) if case.get("test") is None), None)
        if start is None:
            return
        try:
            for case in cases[start:]:
                self.exec_statements(case["consequent"], block)
        except _Break as brk:
            if brk.label is not None and brk.label not in labels:
                raise

    def _exec_LabeledStatement(self, node: dict, scope: Scope) -> None:
        labels = {node["label"]["name"]}
        body = node["body"]
        while body["type"] == "LabeledStatement":
            labels.add(body["label"]["name"])
            body = body["body"]
        if body["type"] in _LOOP_TYPES or body["type"] == "SwitchStatement":
            self.budget.charge()
            getattr(self, f"_exec_{body['type']}")(body, scope, frozenset(labels))
            return
        try:
            self.execute(body, scope)
        except _Break as brk:
            if brk.label not in labels:
                raise

    # loops

    def _loop_body(self, body: dict, scope: Scope, labels: frozenset) -> bool:
        """Run one iteration; return False when the loop should stop."""
        try:
            self.execute(body, scope)
        except _Break as brk:
            if brk.label is None or brk.label in labels:
                return False
            raise
        except _Continue as cont:
            if cont.label is not None and cont.label not in labels:
                raise
        return True

    def _exec_WhileStatement(self, node: dict, scope: Scope, labels: frozenset = frozenset()) -> None:
        while True:
            self.budget.charge()
            if not truthy(self.evaluate(node["test"], scope)):
                return
            if not self._loop_body(node["body"], scope, labels):
                return

    def _exec_DoWhileStatement(self, node: dict, scope: Scope, labels: frozenset = frozenset()) -> None:
        while True:
            self.budget.charge()
            if not self._loop_body(node["body"], scope, labels):
                return
            if not truthy(self.evaluate(node["test"], scope)):
                return

    def _exec_ForStatement(self, node: dict, scope: Scope, labels: frozenset = frozenset()) -> None:
        loop_scope = Scope(scope)
        init = node.get("init")
        per_iteration = False
        if init is not None:
            if init["type"] == "VariableDeclaration":
                per_iteration = init["kind"] != "var"
                self._exec_VariableDeclaration(init, loop_scope)
            else:
                self.evaluate(init, loop_scope)
        test, update = node.get("test"), node.get("update")
        while True:
            self.budget.charge()
            if test is not None and not truthy(self.evaluate(test, loop_scope)):
                return
            if not self._loop_body(node["body"], loop_scope, labels):
                return
            if per_iteration:
                # Closures from the finished iteration keep their own binding.
                loop_scope = loop_scope.copy()
            if update is not None:
                self.evaluate(update, loop_scope)

    def _bind_loop_target(self, left: dict, value: Any, scope: Scope) -> Scope:
        if left["type"] == "VariableDeclaration":
            kind = left["kind"]
            iteration = scope if kind == "var" else Scope(scope)
            self.bind_pattern(left["declarations"][0]["id"], value, iteration, kind)
            return iteration
        self.bind_pattern(left, value, scope, None)
        return scope

    def _exec_ForOfStatement(self, node: dict, scope: Scope, labels: frozenset = frozenset()) -> None:
        items = _iterate(self.evaluate(node["right"], scope))
        i = 0
        while i < len(items):
            self.budget.charge()
            iteration = self._bind_loop_target(node["left"], items[i], scope)
            if not self._loop_body(node["body"], iteration, labels):
                return
            i += 1

    def _exec_ForInStatement(self, node: dict, scope: Scope, labels: frozenset = frozenset()) -> None:
        target = self.evaluate(node["right"], scope)
        if target is UNDEFINED or target is None:
            return
        for key in own_keys(target):
            self.budget.charge()
            iteration = self._bind_loop_target(node["left"], key, scope)
            if not self._loop_body(node["body"], iteration, labels):
                return

    # ── expressions ────────────────────────────────────────────────────────

    def evaluate(self, node: dict, scope: Scope) -> Any:
        return self._expressions[node["type"]](node, scope)

    def _literal_value(self, node: dict) -> Any:
        value = node.get("value")
        if isinstance(value, float) and value.is_integer() and abs(value) <= MAX_SAFE_INTEGER:
            return int(value)
        return value

    def _eval_Literal(self, node: dict, scope: Scope) -> Any:
        return self._literal_value(node)

    def _eval_Identifier(self, node: dict, scope: Scope) -> Any:
        return scope.lookup(node["name"])

    def _eval_ThisExpression(self, node: dict, scope: Scope) -> Any:
        return scope.function_scope().this

    def _eval_TemplateLiteral(self, node: dict, scope: Scope) -> str:
        parts: list[str] = []
        expressions = node["expressions"]
        for i, quasi in enumerate(node["quasis"]):
            value = quasi.get("value") or {}
            cooked = value.get("cooked")
            parts.append(cooked if isinstance(cooked, str) else value.get("raw", ""))
            if i < len(expressions):
                parts.append(to_string(self.evaluate(expressions[i], scope)))
        text = "".join(parts)
        if len(text) > MAX_STRING_LENGTH:
            raise range_error("Invalid string length")
        return text

    def _spread_into(self, out: list, nodes: list, scope: Scope) -> list:
        for element in nodes:
            if element is None:
                out.append(UNDEFINED)
            elif element["type"] == "SpreadElement":
                out.extend(_iterate(self.evaluate(element["argument"], scope)))
                check_array_length(len(out))
            else:
                out.append(self.evaluate(element, scope))
        return out

    def _eval_ArrayExpression(self, node: dict, scope: Scope) -> list:
        return self._spread_into([], node["elements"], scope)

    def _eval_ObjectExpression(self, node: dict, scope: Scope) -> dict:
        result: dict[str, Any] = {}
        for prop in node["properties"]:
            if prop["type"] == "SpreadElement":
                source = self.evaluate(prop["argument"], scope)
                if isinstance(source, (Mapping, list, str)):
                    result.update(zip(own_keys(source), self._own_values(source)))
                continue
            if prop.get("kind", "init") != "init":
                raise JSRuntimeError("SyntaxError", "Object getters and setters are not supported")
            key = self._property_key(prop, scope)
            value_node = prop["value"]
            if value_node["type"] in _FUNCTION_TYPES:
                value = self.make_function(value_node, scope, key)
            else:
                value = self.evaluate(value_node, scope)
            result[key] = value
        return result

    def _eval_FunctionExpression(self, node: dict, scope: Scope) -> JSFunction:
        return self.make_function(node, scope)

    def _eval_ArrowFunctionExpression(self, node: dict, scope: Scope) -> JSFunction:
        return self.make_function(node, scope)

    def _eval_UnaryExpression(self, node: dict, scope: Scope) -> Any:
        operator = node["operator"]
        argument = node["argument"]
        if operator == "typeof" and argument["type"] == "Identifier" and scope.find(argument["name"]) is None:
            return "undefined"
        if operator == "delete":
            if argument["type"] != "MemberExpression":
                return True
            target = self.evaluate(argument["object"], scope)
            return delete_property(target, self._member_key(argument, scope))
        return unary(operator, self.evaluate(argument, scope))

    def _eval_UpdateExpression(self, node: dict, scope: Scope) -> Any:
        argument = node["argument"]
        delta = 1 if node["operator"] == "++" else -1
        if argument["type"] == "Identifier":
            old = unary("+", scope.lookup(argument["name"]))
            new = binary("+", old, delta)
            scope.assign(argument["name"], new)
        elif argument["type"] == "MemberExpression":
            target = self.evaluate(argument["object"], scope)
            key = self._member_key(argument, scope)
            old = unary("+", get_property(target, key, self.budget))
            new = binary("+", old, delta)
            set_property(target, key, new)
        else:
            raise JSRuntimeError("SyntaxError", "Invalid left-hand side expression in update operation")
        return new if node["prefix"] else old

    def _eval_BinaryExpression(self, node: dict, scope: Scope) -> Any:
        left = self.evaluate(node["left"], scope)
        right = self.evaluate(node["right"], scope)
        return binary(node["operator"], left, right)

    def _eval_LogicalExpression(self, node: dict, scope: Scope) -> Any:
        left = self.evaluate(node["left"], scope)
        operator = node["operator"]
        if operator == "&&":
            return self.evaluate(node["right"], scope) if truthy(left) else left
        if operator == "||":
            return left if truthy(left) else self.evaluate(node["right"], scope)
        if left is UNDEFINED or left is None:
            return self.evaluate(node["right"], scope)
        return left

    def _eval_AssignmentExpression(self, node: dict, scope: Scope) -> Any:
        operator = node["operator"]
        left = node["left"]
        if operator == "=":
            value = self.evaluate(node["right"], scope)
            self.bind_pattern(left, value, scope, None)
            return value

        if left["type"] == "Identifier":
            def read() -> Any:
                return scope.lookup(left["name"])

            def write(value: Any) -> None:
                scope.assign(left["name"], value)
        elif left["type"] == "MemberExpression":
            target = self.evaluate(left["object"], scope)
            key = self._member_key(left, scope)

            def read() -> Any:
                return get_property(target, key, self.budget)

            def write(value: Any) -> None:
                set_property(target, key, value)
        else:
            raise JSRuntimeError("SyntaxError", "Invalid left-hand side in assignment")

        current = read()
        op = operator[:-1]
        if op in ("&&", "||", "??"):
            short_circuit = {
                "&&": not truthy(current),
                "||": truthy(current),
                "??": current is not UNDEFINED and current is not None,
            }[op]
            if short_circuit:
                return current
            value = self.evaluate(node["right"], scope)
        else:
            value = binary(op, current, self.evaluate(node["right"], scope))
        write(value)
        return value

    def _eval_ConditionalExpression(self, node: dict, scope: Scope) -> Any:
        if truthy(self.evaluate(node["test"], scope)):
            return self.evaluate(node["consequent"], scope)
        return self.evaluate(node["alternate"], scope)

    def _eval_SequenceExpression(self, node: dict, scope: Scope) -> Any:
        result = UNDEFINED
        for expression in node["expressions"]:
            result = self.evaluate(expression, scope)
        return result

    def _eval_ChainExpression(self, node: dict, scope: Scope) -> Any:
        try:
            return self.evaluate(node["expression"], scope)
        except _ShortCircuit:
            return UNDEFINED

    def _eval_MemberExpression(self, node: dict, scope: Scope) -> Any:
        target = self.evaluate(node["object"], scope)
        if node.get("optional") and (target is UNDEFINED or target is None):
            raise _ShortCircuit()
        return get_property(target, self._member_key(node, scope), self.budget)

    def _eval_CallExpression(self, node: dict, scope: Scope) -> Any:
        callee = node["callee"]
        this = UNDEFINED
        if callee["type"] == "MemberExpression":
            this = self.evaluate(callee["object"], scope)
            if callee.get("optional") and (this is UNDEFINED or this is None):
                raise _ShortCircuit()
            fn = get_property(this, self._member_key(callee, scope), self.budget)
        else:
            fn = self.evaluate(callee, scope)
        if node.get("optional") and (fn is UNDEFINED or fn is None):
            raise _ShortCircuit()
        args = self._spread_into([], node["arguments"], scope)
        return self.invoke(fn, args, this, _callee_text(callee))

    def _eval_NewExpression(self, node: dict, scope: Scope) -> Any:
        fn = self.evaluate(node["callee"], scope)
        args = self._spread_into([], node["arguments"], scope)
        if isinstance(fn, NativeFunction) and fn.construct is not None:
            self.budget.charge()
            return fn.construct(*args)
        if isinstance(fn, JSFunction) and not fn.is_arrow:
            instance: dict[str, Any] = {}
            result = self.call_function(fn, args, instance)
            if isinstance(result, (dict, list, JSFunction)):
                return result
            return instance
        raise type_error(f"{_callee_text(node['callee'])} is not a constructor")


_LOOP_TYPES = frozenset({
    "WhileStatement", "DoWhileStatement", "ForStatement", "ForOfStatement", "ForInStatement",
})


def _check_supported(program: dict) -> None:
    """Reject syntax the evaluator does not implement before anything runs."""
    for node in walk(program):
        kind = node["type"]
        problem = None
        if kind not in SUPPORTED_NODE_TYPES:
            problem = f"{kind} is not supported"
        elif kind in _FUNCTION_TYPES and (node.get("async") or node.get("generator")):
            problem = "async and generator functions are not supported"
        elif kind == "Literal" and node.get("regex"):
            problem = "regular expression literals are not supported"
        elif kind == "ForOfStatement" and node.get("await"):
            problem = "for await loops are not supported"
        if problem is not None:
            line, _ = node_position(node)
            raise JSRuntimeError("SyntaxError", f"{problem} (line {line})")


class CompiledUnit:
    """Lowered code bound to an interpreter, callable with capability values.

    Calling the unit runs the top-level statements with ``param_names``
    bound to the given values, in order, and returns the value bound to
    ``entry_name`` afterwards (``undefined`` when the code never defines it).
    """

    def __init__(self, program: dict, param_names: Sequence[str], entry_name: str, interpreter: Interpreter) -> None:
        self.program = program
        self.param_names = tuple(param_names)
        self.entry_name = entry_name
        self.interpreter = interpreter

    def __call__(self, *values: Any) -> Any:
        if len(values) != len(self.param_names):
            raise ValueError(f"expected {len(self.param_names)} values, got {len(values)}")
        capabilities = Scope(is_function=True)
        for name, value in zip(self.param_names, values):
            capabilities.declare(name, value)
        scope = Scope(capabilities, is_function=True)
        body = self.program["body"]
        interpreter = self.interpreter
        try:
            interpreter.hoist(body, scope, include_vars=True)
            interpreter.exec_statements(body, scope)
        except RecursionError:
            raise range_error("Maximum call stack size exceeded") from None
        except (_Break, _Continue, _Return):
            raise JSRuntimeError("SyntaxError", "Illegal control flow at top level") from None
        owner = scope.find(self.entry_name)
        return owner.names[self.entry_name] if owner is not None else UNDEFINED


def compile_unit(
    param_names: Sequence[str],
    code: str,
    *,
    entry_name: str,
    budget: ExecutionBudget,
    max_call_depth: int = DEFAULT_MAX_CALL_DEPTH,
) -> CompiledUnit:
    """Parse lowered *code* and prepare it to run over *param_names*.

    Raises:
        JSRuntimeError: ``SyntaxError`` when the code does not parse or uses
            syntax the evaluator does not implement.
    """
    try:
        program = parse_source(code)
    except SourceSyntaxError as exc:
        raise JSRuntimeError("SyntaxError", f"{exc} (line {exc.line})") from exc
    _check_supported(program)
    logger.debug("Compiled unit: %d top-level statements", len(program["body"]))
    return CompiledUnit(program, param_names, entry_name, Interpreter(budget, max_call_depth))

