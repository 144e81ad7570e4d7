"""Tests for the sandbox interpreter: evaluation, budget, and containment."""

from __future__ import annotations

import math

import pytest

from remotion_sandbox_mcp.interpreter import (
    UNDEFINED,
    ExecutionBudget,
    ExecutionLimitExceeded,
    JSRuntimeError,
    JSThrow,
    compile_unit,
)
from remotion_sandbox_mcp.interpreter.builtins import build_globals


def run(code: str, *, max_operations: int = 100_000, max_call_depth: int = 64, entry: str = "result"):
    """Run *code* over the base-language globals and return its ``result`` binding."""
    budget = ExecutionBudget(max_operations)
    globals_ = build_globals(budget)
    unit = compile_unit(
        [name for name, _ in globals_],
        code,
        entry_name=entry,
        budget=budget,
        max_call_depth=max_call_depth,
    )
    return unit(*[value for _, value in globals_])


class TestExpressions:
    def test_arithmetic(self):
        assert run("const result = 1 + 2 * 3;") == 7
        assert run("const result = 7 / 2;") == 3.5
        assert run("const result = 2 ** 10 - 7 % 4;") == 1021

    def test_division_by_zero_is_infinity(self):
        assert run("const result = 1 / 0;") == math.inf
        assert math.isnan(run("const result = 0 / 0;"))

    def test_string_coercion(self):
        assert run('const result = "a" + 1 + 2;') == "a12"
        assert run('const result = 1 + 2 + "a";') == "3a"
        assert run('const result = "5" * "2";') == 10

    def test_template_literal(self):
        assert run("const n = 2; const result = `n=${n * 2}!`;") == "n=4!"

    def test_equality(self):
        assert run('const result = [1 == "1", 1 === "1", null == undefined, null === undefined];') == [
            True, False, True, False,
        ]

    def test_loose_equality_with_booleans(self):
        """GIVEN an object compared to a boolean THEN the boolean becomes a number first."""
        assert run('const result = [[] == false, [1] == true, [2] == true, "0" == false];') == [
            True, True, False, True,
        ]

    def test_logical_and_nullish(self):
        assert run('const result = [0 || "a", 1 && "b", null ?? "c", 0 ?? "d"];') == ["a", "b", "c", 0]

    def test_optional_member_access(self):
        """GIVEN a nullish base THEN the whole optional chain is undefined."""
        assert run("const o = { a: { b: 2 } }; const result = o?.a?.b;") == 2
        assert run("const o = null; const result = o?.a.b.c;") is UNDEFINED
        assert run("const o = {}; const result = o.a?.['b'];") is UNDEFINED

    def test_optional_calls(self):
        code = "const o = { m() { return 1; } }; const f = null; const result = [o.m?.(), o.n?.(), f?.(), o?.m()];"
        assert run(code) == [1, UNDEFINED, UNDEFINED, 1]

    def test_optional_chain_does_not_cover_outer_access(self):
        with pytest.raises(JSRuntimeError, match="Cannot read properties of undefined"):
            run("const o = null; const result = (o?.a).b;")

    def test_numeric_separators(self):
        assert run("const result = 1_000 * 2 + 0b1_0 + 0x1_0;") == 2018
        assert run("const result = 1_000_000;") == 1_000_000

    def test_logical_assignment(self):
        assert run("let a = null; a ??= 5; let b = 0; b ||= 7; let c = 1; c &&= 9; const result = [a, b, c];") == [
            5, 7, 9,
        ]

    def test_conditional_and_typeof(self):
        assert run('const result = typeof notDeclared === "undefined" ? "missing" : "found";') == "missing"
        assert run("const result = [typeof 1, typeof 'x', typeof null, typeof (() => 1)];") == [
            "number", "string", "object", "function",
        ]

    def test_compound_assignment(self):
        assert run("let x = 2; x += 3; x *= 2; x -= 1; const result = x;") == 9


class TestStatements:
    def test_for_loop(self):
        assert run("let s = 0; for (let i = 0; i < 5; i++) { s += i; } const result = s;") == 10

    def test_closures_capture_each_iteration(self):
        code = "const fns = []; for (let i = 0; i < 3; i++) { fns.push(() => i); } const result = fns.map((f) => f());"
        assert run(code) == [0, 1, 2]

    def test_while_break_continue(self):
        code = """
        let i = 0; const seen = [];
        while (true) {
          i++;
          if (i % 2 === 0) continue;
          if (i > 7) break;
          seen.push(i);
        }
        const result = seen;
        """
        assert run(code) == [1, 3, 5, 7]

    def test_for_of_and_for_in(self):
        assert run("let s = ''; for (const c of ['a', 'b']) { s += c; } const result = s;") == "ab"
        assert run("const keys = []; for (const k in { x: 1, y: 2 }) { keys.push(k); } const result = keys;") == [
            "x", "y",
        ]

    def test_switch_fallthrough(self):
        code = """
        function label(n) {
          switch (n) {
            case 1:
            case 2: return "small";
            case 3: return "three";
            default: return "big";
          }
        }
        const result = [label(1), label(2), label(3), label(9)];
        """
        assert run(code) == ["small", "small", "three", "big"]

    def test_function_hoisting(self):
        assert run("const result = double(4); function double(x) { return x * 2; }") == 8

    def test_var_is_function_scoped(self):
        assert run("function f() { if (true) { var v = 3; } return v; } const result = f();") == 3

    def test_labeled_break(self):
        code = """
        let count = 0;
        outer: for (let i = 0; i < 3; i++) {
          for (let j = 0; j < 3; j++) {
            if (j === 1) continue outer;
            if (i === 2) break outer;
            count++;
          }
        }
        const result = count;
        """
        assert run(code) == 2


class TestFunctionsAndPatterns:
    def test_destructuring_with_defaults(self):
        code = "const { a, b: [c, d = 4] } = { a: 1, b: [3] }; const result = a + c + d;"
        assert run(code) == 8

    def test_rest_and_default_params(self):
        assert run("function f(a, b = 10, ...rest) { return a + b + rest.length; } const result = f(1);") == 11
        assert run("const f = (...xs) => xs.length; const result = f(1, 2, 3);") == 3

    def test_object_rest(self):
        assert run("const { a, ...others } = { a: 1, b: 2, c: 3 }; const result = Object.keys(others);") == [
            "b", "c",
        ]

    def test_method_this(self):
        code = "const counter = { n: 5, get() { return this.n; } }; const result = counter.get();"
        assert run(code) == 5

    def test_function_name_inference(self):
        assert run("const MyThing = () => 1; const result = MyThing.name;") == "MyThing"

    def test_new_on_user_function(self):
        assert run("function P(x) { this.x = x; } const result = new P(3).x;") == 3


class TestBuiltins:
    def test_array_methods(self):
        assert run("const result = [3, 1, 2].sort((a, b) => a - b);") == [1, 2, 3]
        assert run("const result = [1, 2, 3].filter((x) => x > 1).map((x) => x * 2);") == [4, 6]
        assert run("const result = [1, 2, 3, 4].reduce((acc, x) => acc + x, 0);") == 10
        assert run("const result = Array.from({ length: 3 }, (_, i) => i * i);") == [0, 1, 4]
        assert run("const result = ['a', 'b'].join('-');") == "a-b"

    def test_string_methods(self):
        assert run("const result = 'abc'.toUpperCase().padStart(5, '*');") == "**ABC"
        assert run("const result = 'a,b,c'.split(',');") == ["a", "b", "c"]
        assert run("const result = 'hello'.slice(1, -1);") == "ell"

    def test_number_formatting(self):
        assert run("const result = (3.14159).toFixed(2);") == "3.14"
        assert run("const result = String(0.1 + 0.2);") == "0.30000000000000004"
        assert run("const result = (255).toString(16);") == "ff"

    def test_math(self):
        assert run("const result = Math.max(1, 5, 3);") == 5
        assert run("const result = [Math.round(2.5), Math.round(-2.5)];") == [3, -2]
        assert run("const result = Math.floor(Math.PI);") == 3

    def test_json_round_trip(self):
        assert run('const result = JSON.stringify({ a: [1, "x"], b: null });') == '{"a":[1,"x"],"b":null}'
        assert run('const result = JSON.parse("[1, 2]").length;') == 2

    def test_parse_int(self):
        assert run("const result = [parseInt('42px'), parseInt('ff', 16)];") == [42, 255]
        assert math.isnan(run("const result = parseInt('x');"))


class TestErrors:
    def test_reference_error(self):
        with pytest.raises(JSRuntimeError) as exc_info:
            run("const result = nope;")
        assert exc_info.value.name == "ReferenceError"
        assert exc_info.value.message == "nope is not defined"

    def test_const_reassignment(self):
        with pytest.raises(JSRuntimeError, match="Assignment to constant variable"):
            run("const x = 1; x = 2;")

    def test_not_a_function(self):
        with pytest.raises(JSRuntimeError, match="x is not a function"):
            run("const x = 1; x();")

    def test_property_of_undefined(self):
        with pytest.raises(JSRuntimeError, match=r"Cannot read properties of undefined \(reading 'y'\)"):
            run("let x; const result = x.y;")

    def test_catch_runtime_error(self):
        code = "let msg; try { null.x; } catch (e) { msg = e.message; } const result = msg;"
        assert run(code) == "Cannot read properties of null (reading 'x')"

    def test_catch_thrown_value_and_finally(self):
        code = """
        const log = [];
        try { throw { message: "boom" }; }
        catch (e) { log.push(e.message); }
        finally { log.push("done"); }
        const result = log;
        """
        assert run(code) == ["boom", "done"]

    def test_uncaught_throw(self):
        with pytest.raises(JSThrow, match="boom"):
            run('throw "boom";')

    def test_entry_missing_is_undefined(self):
        assert run("const other = 1;") is UNDEFINED


class TestContainment:
    def test_infinite_loop_hits_budget(self):
        with pytest.raises(ExecutionLimitExceeded):
            run("while (true) {}", max_operations=1_000)

    def test_budget_cannot_be_caught(self):
        """GIVEN a runaway loop inside try/catch THEN the limit still escapes."""
        with pytest.raises(ExecutionLimitExceeded):
            run("try { for (;;) {} } catch (e) {} const result = 1;", max_operations=1_000)

    def test_budget_counts_callbacks(self):
        with pytest.raises(ExecutionLimitExceeded):
            run("const result = Array.from({ length: 5000 }, (_, i) => i).map((x) => x + 1);", max_operations=2_000)

    def test_unbounded_recursion_is_range_error(self):
        with pytest.raises(JSRuntimeError) as exc_info:
            run("function f() { return f(); } f();", max_call_depth=32)
        assert exc_info.value.name == "RangeError"

    def test_huge_arrays_rejected(self):
        with pytest.raises(JSRuntimeError, match="Invalid array length"):
            run("const a = []; a[10000000] = 1;")

    def test_host_attributes_unreachable(self):
        """GIVEN Python dunder names THEN they resolve to undefined, never to host objects."""
        code = "const result = [typeof 'x'.__class__, typeof ({}).__dict__, typeof Math.__init__, typeof __import__];"
        assert run(code) == ["undefined", "undefined", "undefined", "undefined"]

    def test_injected_namespaces_are_read_only(self):
        with pytest.raises(JSRuntimeError):
            run("Math.PI = 3;")


class TestUnsupportedSyntax:
    @pytest.mark.parametrize("code", [
        "const r = /a+/;",
        "class A {}",
        "async function f() {}",
        "const f = async () => 1;",
        "const o = { async m() {} };",
        "function* g() {}",
        "for await (const x of []) {}",
    ])
    def test_rejected_before_running(self, code):
        with pytest.raises(JSRuntimeError) as exc_info:
            run(code)
        assert exc_info.value.name == "SyntaxError"
