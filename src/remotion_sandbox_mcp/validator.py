"""AST-based code validator, the security boundary for generated code.

Parses JSX or TSX source with tree-sitter and walks every node, rejecting any
construct the allowlist does not clear. All violations are collected,
not just the first. Checks run on node shape after parsing, so
whitespace and comment obfuscation cannot hide a forbidden name.

Messages are deliberately generic: callers learn *where* code was
rejected, never *which rule* fired.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from .allowlist import DEFAULT_ALLOWLIST, AllowlistConfig
from .models import (
    SYNTAX_ERROR_MESSAGE,
    UNSAFE_PATTERN_MESSAGE,
    ValidationError,
    ValidationResult,
)
from .parser import SourceSyntaxError, node_position, parse_source, walk

logger = logging.getLogger(__name__)

NodeCheck = Callable[[dict, AllowlistConfig], bool]


def _identifier_name(node: dict | None) -> str | None:
    if node and node.get("type") == "Identifier":
        return node.get("name")
    return None


def _check_import(node: dict, allowlist: AllowlistConfig) -> bool:
    source = (node.get("source") or {}).get("value")
    return isinstance(source, str) and not allowlist.is_import_allowed(source)


def _check_dynamic_import(node: dict, allowlist: AllowlistConfig) -> bool:
    # No allowlist exception: static analysis cannot prove what import() loads.
    return True


def _check_identifier(node: dict, allowlist: AllowlistConfig) -> bool:
    # Conservative: a shadowed local named ``eval`` is rejected too.
    name = node.get("name")
    return isinstance(name, str) and allowlist.is_blocked_identifier(name)


def _check_call(node: dict, allowlist: AllowlistConfig) -> bool:
    callee = node.get("callee") or {}
    if callee.get("type") in ("Import", "ImportExpression"):
        return True
    return _identifier_name(callee) in allowlist.blocked_callees


def _check_member(node: dict, allowlist: AllowlistConfig) -> bool:
    object_name = _identifier_name(node.get("object"))
    if object_name is None:
        return False

    prop = node.get("property") or {}
    if not node.get("computed"):
        property_name = _identifier_name(prop)
    elif prop.get("type") == "Literal" and isinstance(prop.get("value"), str):
        property_name = prop["value"]
    else:
        property_name = None

    if property_name is None:
        return False
    if allowlist.is_blocked_identifier(object_name):
        return True
    return allowlist.is_blocked_member(object_name, property_name)


def _check_new(node: dict, allowlist: AllowlistConfig) -> bool:
    name = _identifier_name(node.get("callee"))
    return name is not None and (name == "Function" or allowlist.is_blocked_identifier(name))


def _check_jsx_identifier(node: dict, allowlist: AllowlistConfig) -> bool:
    # Lowering turns <Name/> into a reference to Name.
    name = node.get("name")
    return isinstance(name, str) and allowlist.is_blocked_identifier(name)


_NODE_CHECKS: dict[str, NodeCheck] = {
    "ImportDeclaration": _check_import,
    "ImportExpression": _check_dynamic_import,
    "Import": _check_dynamic_import,
    "Identifier": _check_identifier,
    "CallExpression": _check_call,
    "MemberExpression": _check_member,
    "NewExpression": _check_new,
    "JSXIdentifier": _check_jsx_identifier,
}


def collect_violations(tree: dict, allowlist: AllowlistConfig = DEFAULT_ALLOWLIST) -> list[ValidationError]:
    """Walk *tree* depth-first and return one error per rejected node."""
    errors: list[ValidationError] = []
    for node in walk(tree):
        check = _NODE_CHECKS.get(node["type"])
        if check is not None and check(node, allowlist):
            line, column = node_position(node)
            errors.append(ValidationError(line=line, column=column, message=UNSAFE_PATTERN_MESSAGE))
    return errors


def validate(source: str, allowlist: AllowlistConfig = DEFAULT_ALLOWLIST) -> ValidationResult:
    """Validate Remotion/React source against the allowlist.

    Args:
        source: JSX source code.
        allowlist: Allowlist to enforce; the process-wide default when omitted.

    Returns:
        ValidationResult; ``valid`` is False on any syntax error or violation.
    """
    try:
        tree = parse_source(source)
    except SourceSyntaxError as exc:
        logger.debug("Validation: syntax error at %d:%d", exc.line, exc.column)
        return ValidationResult.from_errors([
            ValidationError(line=exc.line, column=exc.column, message=SYNTAX_ERROR_MESSAGE),
        ])

    errors = collect_violations(tree, allowlist)
    if errors:
        logger.info("Validation rejected source: %d violation(s)", len(errors))
    return ValidationResult.from_errors(errors)
