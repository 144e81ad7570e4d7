"""Tests for the scoped executor."""

from __future__ import annotations

from remotion_sandbox_mcp.executor import execute
from remotion_sandbox_mcp.framework.elements import HostComponent
from remotion_sandbox_mcp.interpreter.values import JSFunction
from remotion_sandbox_mcp.models import ExecutionFailure, ExecutionSuccess

MINIMAL = """
const MyComposition = () => {
  const frame = useCurrentFrame();
  return <AbsoluteFill><h1>{frame}</h1></AbsoluteFill>;
};
"""


class TestExecute:
    def test_minimal_composition(self, run_component):
        result = run_component(MINIMAL)
        assert isinstance(result, ExecutionSuccess)
        assert result.success is True
        assert isinstance(result.component, JSFunction)
        assert result.component.name == "MyComposition"

    def test_construction_work_not_charged_to_first_frame(self, run_component):
        result = run_component("const table = [1, 2, 3].map((x) => x * 2);\n" + MINIMAL)
        assert result.budget.used == 0

    def test_function_declaration_entry(self, run_component):
        result = run_component("function MyComposition() { return null; }")
        assert result.success

    def test_host_component_entry(self, run_component):
        result = run_component("const MyComposition = AbsoluteFill;")
        assert result.success
        assert isinstance(result.component, HostComponent)

    def test_missing_entry(self, run_component):
        result = run_component("const NotMyComposition = () => null;")
        assert isinstance(result, ExecutionFailure)
        assert result.error == "Code must define a component named MyComposition"

    def test_entry_not_a_function(self, run_component):
        result = run_component("const MyComposition = 5;")
        assert result.error == "MyComposition must be a function component"

    def test_top_level_throw(self, run_component):
        result = run_component('throw { name: "Error", message: "boom" };\n' + MINIMAL)
        assert result.success is False
        assert result.error == "Error: boom"

    def test_top_level_reference_to_missing_global(self, lower):
        """GIVEN lowered code that skipped validation WHEN it touches window THEN it is not defined."""
        result = execute(lower("const w = window.location;\n" + MINIMAL))
        assert result.error == "ReferenceError: window is not defined"

    def test_runaway_top_level_loop(self, run_component):
        result = run_component("while (true) {}\n" + MINIMAL, max_operations=1_000)
        assert result.error == "Execution limit exceeded"

    def test_custom_entry_name(self, lower):
        result = execute(lower("const Intro = () => null;"), entry_name="Intro")
        assert result.success

    def test_entry_name_from_config(self, lower, monkeypatch):
        monkeypatch.setenv("SANDBOX_ENTRY_COMPONENT", "Scene")
        result = execute(lower("const Scene = () => null;"))
        assert result.success

    def test_default_budget_from_config(self, lower, monkeypatch):
        monkeypatch.setenv("SANDBOX_MAX_OPERATIONS", "1234")
        result = execute(lower(MINIMAL))
        assert result.budget.max_operations == 1234

    def test_unsupported_syntax_is_failure(self, run_component):
        result = run_component("class MyComposition {}")
        assert result.success is False
        assert result.error.startswith("SyntaxError:")
