"""Scoped executor: turn lowered code into a renderable component.

The lowered source runs over exactly the names from ``build_capabilities``
and nothing else. Any failure while constructing the component becomes an
``ExecutionFailure`` so the caller can draw a fallback frame.
"""

from __future__ import annotations

import logging

from .capabilities import build_capabilities
from .config import get_config
from .errors import SandboxError
from .framework.elements import HostComponent
from .interpreter import UNDEFINED, ExecutionBudget, compile_unit
from .interpreter.values import is_callable
from .models import ExecutionFailure, ExecutionResult, ExecutionSuccess

logger = logging.getLogger(__name__)


def execute(
    lowered_code: str,
    *,
    budget: ExecutionBudget | None = None,
    entry_name: str | None = None,
) -> ExecutionResult:
    """Run lowered code once and return its entry component.

    Args:
        lowered_code: Output of ``transform``; must already have passed validation.
        budget: Operation budget shared with every later frame render.
            A fresh one sized from config is created when omitted.
        entry_name: Name of the component to return. Defaults to
            ``ServerConfig.entry_component``.

    Returns:
        ``ExecutionSuccess`` with the component and its budget, or
        ``ExecutionFailure`` carrying the error text.
    """
    cfg = get_config()
    entry = entry_name or cfg.entry_component
    budget = budget or ExecutionBudget(cfg.max_operations)

    capabilities = build_capabilities(budget)
    names = [name for name, _ in capabilities]
    values = [value for _, value in capabilities]

    try:
        unit = compile_unit(
            names,
            lowered_code,
            entry_name=entry,
            budget=budget,
            max_call_depth=cfg.max_call_depth,
        )
        component = unit(*values)
    except SandboxError as exc:
        logger.warning("Execution failed: %s", exc)
        return ExecutionFailure(error=str(exc))
    except RecursionError:
        logger.warning("Execution failed: Python recursion limit reached")
        return ExecutionFailure(error="RangeError: Maximum call stack size exceeded")

    if component is UNDEFINED or component is None:
        return ExecutionFailure(error=f"Code must define a component named {entry}")
    if not (is_callable(component) or isinstance(component, HostComponent)):
        return ExecutionFailure(error=f"{entry} must be a function component")

    # Construction work does not count against the first frame.
    budget.reset()
    logger.debug("Executed %s (%d capabilities)", entry, len(names))
    return ExecutionSuccess(component=component, budget=budget)
