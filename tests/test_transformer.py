"""Tests for JSX lowering."""

from __future__ import annotations

from remotion_sandbox_mcp.parser import parse_source, walk
from remotion_sandbox_mcp.transformer import clean_jsx_text, transform


def _lowered(source: str) -> str:
    result = transform(source)
    assert result.success, result.error
    assert result.error is None
    return result.code


class TestElements:
    def test_host_element(self):
        code = _lowered('const a = <div className="box">hi</div>;')
        assert code == 'const a = React.createElement("div", {className: "box"}, "hi");'

    def test_component_element_without_props(self):
        code = _lowered("const a = <AbsoluteFill />;")
        assert code == "const a = React.createElement(AbsoluteFill, null);"

    def test_member_tag(self):
        code = _lowered("const a = <Series.Sequence durationInFrames={30} />;")
        assert "React.createElement(Series.Sequence, {durationInFrames: 30})" in code

    def test_boolean_and_expression_attributes(self):
        code = _lowered("const a = <Video muted src={staticFile('a.mp4')} />;")
        assert "{muted: true, src: staticFile('a.mp4')}" in code

    def test_hyphenated_attribute_is_quoted(self):
        code = _lowered('const a = <div data-id="x" />;')
        assert '{"data-id": "x"}' in code

    def test_nested_children_and_expressions(self):
        code = _lowered("const a = <div>\n  <span>{frame}</span>\n  text\n</div>;")
        assert code == (
            'const a = React.createElement("div", null, '
            'React.createElement("span", null, frame), "text");'
        )

    def test_jsx_inside_expression_container(self):
        code = _lowered("const a = <div>{items.map((i) => <b key={i}>{i}</b>)}</div>;")
        assert 'items.map((i) => React.createElement("b", {key: i}, i))' in code

    def test_empty_expression_is_dropped(self):
        code = _lowered("const a = <div>{/* note */}</div>;")
        assert code == 'const a = React.createElement("div", null);'

    def test_html_entities_decoded(self):
        code = _lowered("const a = <p>Tom &amp; Jerry</p>;")
        assert '"Tom & Jerry"' in code

    def test_output_is_plain_javascript(self):
        """GIVEN lowered output THEN it reparses with no JSX nodes left."""
        code = _lowered("const MyComposition = () => <div><span>{1}</span></div>;")
        assert not [node for node in walk(parse_source(code)) if node["type"].startswith("JSX")]


class TestModules:
    def test_remotion_import_is_dropped(self):
        code = _lowered('import { AbsoluteFill } from "remotion";\nconst a = 1;')
        assert "import" not in code
        assert code.endswith("const a = 1;")

    def test_aliased_import_becomes_local_binding(self):
        code = _lowered('import { spring as s } from "remotion";')
        assert code == "const s = spring;"

    def test_react_default_import_aliases_namespace(self):
        assert _lowered('import R from "react";') == "const R = React;"
        assert _lowered('import React from "react";') == ""

    def test_export_keywords_removed(self):
        code = _lowered("export const MyComposition = () => null;")
        assert code == "const MyComposition = () => null;"

    def test_export_default_identifier_removed(self):
        code = _lowered("const MyComposition = () => null;\nexport default MyComposition;")
        assert "export" not in code
        assert code.startswith("const MyComposition")

    def test_line_numbers_preserved(self):
        """GIVEN a multi-line import THEN later lines keep their line numbers."""
        source = 'import {\n  AbsoluteFill,\n  Sequence,\n} from "remotion";\nconst a = <div />;\n'
        code = _lowered(source)
        assert code.count("\n") == source.count("\n")
        assert code.splitlines()[4] == 'const a = React.createElement("div", null);'


class TestTypeErasure:
    def test_variable_annotation(self):
        assert _lowered("const x: number = 1;") == "const x = 1;"

    def test_as_and_non_null_expressions(self):
        assert _lowered("const y = x as number;") == "const y = x;"
        assert _lowered("const z = maybe!;") == "const z = maybe;"

    def test_parameter_and_return_types(self):
        code = _lowered("const f = (a: number, b?: string): string => a + b;")
        assert code == "const f = (a, b) => a + b;"

    def test_call_type_arguments(self):
        assert _lowered("const [n] = useState<number>(0);") == "const [n] = useState(0);"

    def test_interface_keeps_line_numbers(self):
        """GIVEN an interface above a component THEN it is blanked without shifting lines."""
        source = "interface Props {\n  title: string;\n}\nconst a = <div />;\n"
        code = _lowered(source)
        assert "interface" not in code
        assert code.count("\n") == source.count("\n")
        assert code.splitlines()[3] == 'const a = React.createElement("div", null);'

    def test_type_only_imports_dropped(self):
        assert _lowered('import type { CalculateMetadataFunction } from "remotion";') == ""
        assert _lowered('import { type Foo, spring as s } from "remotion";') == "const s = spring;"

    def test_annotated_jsx_component(self):
        code = _lowered("const C = ({ t }: { t: string }) => <h1>{t}</h1>;")
        assert code == 'const C = ({ t }) => React.createElement("h1", null, t);'


class TestFailures:
    def test_syntax_error_reports_line(self):
        result = transform("const a = 1;\nconst b = ;\n")
        assert result.success is False
        assert result.code is None
        assert result.line == 2
        assert result.error.startswith("JSX transformation failed at line 2: ")

    def test_error_text_has_no_position_suffix(self):
        result = transform("const = ;")
        assert result.success is False
        assert not result.error.rstrip().endswith(")")


class TestCleanJsxText:
    def test_trims_line_edges_and_joins(self):
        assert clean_jsx_text("\n    Hello\n    world\n  ") == "Hello world"

    def test_inline_whitespace_preserved(self):
        assert clean_jsx_text("  a  b ") == "  a  b "

    def test_whitespace_only_is_empty(self):
        assert clean_jsx_text("\n   \n  ") == ""
