"""Shared test fixtures for remotion-sandbox-mcp."""

from __future__ import annotations

from typing import Any

import pytest

from remotion_sandbox_mcp.executor import execute
from remotion_sandbox_mcp.interpreter import ExecutionBudget
from remotion_sandbox_mcp.transformer import transform


def unwrap_tool(tool: Any) -> Any:
    """Extract the raw coroutine from a FastMCP FunctionTool, if wrapped.

    FastMCP 2.x wraps @server.tool functions in FunctionTool (not callable).
    FastMCP 3.x preserves the original function. This helper works with both.
    """
    return getattr(tool, "fn", tool)


@pytest.fixture(autouse=True, scope="session")
def _unwrap_fastmcp_tools():
    """Patch tool modules so FunctionTool objects become directly callable.

    FastMCP 2.x wraps @server.tool in FunctionTool (not callable); 3.x
    preserves the function. This fixture unwraps at the module level so
    tests can ``await tool_func(...)`` regardless of FastMCP version.
    """
    import importlib
    import pkgutil

    import remotion_sandbox_mcp.tools as tools_pkg

    modules = []
    for info in pkgutil.walk_packages(tools_pkg.__path__, tools_pkg.__name__ + "."):
        try:
            modules.append(importlib.import_module(info.name))
        except Exception:
            pass

    for mod in modules:
        for name in list(vars(mod)):
            obj = getattr(mod, name, None)
            if obj is not None and hasattr(obj, "fn") and not callable(obj):
                setattr(mod, name, obj.fn)


@pytest.fixture(autouse=True)
def _disable_tracing(monkeypatch):
    """Disable MLflow tracing in all tests to avoid real tracking-server calls.

    The ``test_tracing.py`` module patches the tracing module directly
    and does not rely on this fixture.
    """
    monkeypatch.setenv("SANDBOX_TRACING_ENABLED", "false")


@pytest.fixture(autouse=True)
def _isolate_dotenv(tmp_path, monkeypatch):
    """Prevent tests from loading the user's real ~/.config/remotion-sandbox-mcp/.env."""
    monkeypatch.delenv("SANDBOX_ENV_FILE", raising=False)
    monkeypatch.setattr(
        "remotion_sandbox_mcp.dotenv.DEFAULT_ENV_PATH",
        tmp_path / "nonexistent.env",
    )


@pytest.fixture(autouse=True)
def clean_config():
    """Reset the config singleton between tests."""
    import remotion_sandbox_mcp.config as cfg_mod

    cfg_mod._config = None
    yield
    cfg_mod._config = None


@pytest.fixture()
def lower():
    """Lower JSX source, failing the test if lowering fails."""

    def _lower(source: str) -> str:
        result = transform(source)
        assert result.success, result.error
        return result.code

    return _lower


@pytest.fixture()
def run_component(lower):
    """Lower and execute source; return the ExecutionResult."""

    def _run(source: str, max_operations: int = 250_000):
        return execute(lower(source), budget=ExecutionBudget(max_operations))

    return _run
