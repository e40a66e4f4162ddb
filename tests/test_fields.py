"""Tests for template field extraction."""

from __future__ import annotations

import pytest
from hypothesis import given, settings

from tmplcheck.exceptions import TemplateLoadError, TemplateSyntaxError
from tmplcheck.fields import FieldReference, extract_fields, line_col, parse_templates
from tmplcheck.parse import parse
from tmplcheck.parse.nodes import Action, Command, Identifier, List, Pipe, Tree

from .strategies import template_with_fields


def chains(source: str) -> list[tuple[str, ...]]:
    return [r.chain for r in extract_fields(parse(source), source, "t.html")]


class TestLineCol:
    def test_second_line(self):
        assert line_col(4, b"A\nBC\nDEF".split(b"\n")) == (2, 2)

    def test_first_line_column_is_offset(self):
        assert line_col(3, [b"hello"]) == (1, 3)

    def test_third_line(self):
        assert line_col(7, b"A\nBC\nDEF".split(b"\n")) == (3, 2)

    def test_offset_zero(self):
        assert line_col(0, [b"abc", b"def"]) == (1, 0)


class TestExtractFields:
    def test_fields_in_order(self):
        assert chains("{{.Name}} {{.User.Email}}") == [("Name",), ("User", "Email")]

    def test_function_identifiers_skipped(self):
        assert chains("{{len .Items}}") == [("Items",)]

    def test_dot_is_not_a_reference(self):
        assert chains("{{range .Teams}}{{.}}{{end}}") == [("Teams",)]

    def test_variables_are_not_references(self):
        assert chains("{{$u := .User}}{{$u.Name}}") == [("User",)]

    def test_chain_fields_not_reported(self):
        assert chains("{{(.A).B}}") == [("A",)]

    def test_define_bodies_not_attributed(self):
        assert chains('{{define "x"}}{{.Hidden}}{{end}}{{.Shown}}') == [("Shown",)]

    def test_fields_in_all_branches(self):
        source = "{{if .A}}{{.B}}{{else}}{{with .C}}{{.D}}{{end}}{{end}}"
        assert chains(source) == [("A",), ("B",), ("C",), ("D",)]

    def test_reference_location(self):
        source = "<h1>{{.Title}}</h1>\n{{range .Teams}}{{end}}\n"
        refs = extract_fields(parse(source), source, "root.html")
        assert refs == [
            FieldReference("root.html", 6, 1, 6, ("Title",)),
            FieldReference("root.html", 28, 2, 8, ("Teams",)),
        ]

    def test_byte_offset_counts_utf8(self):
        source = "é{{.A}}"
        [ref] = extract_fields(parse(source), source, "t.html")
        assert ref.byte_offset == 4
        assert (ref.line, ref.col) == (1, 4)

    def test_non_function_identifier_is_reference(self):
        source = "{{Name}}"
        ident = Identifier(pos=2, lineno=1, ident="Name", func=False)
        action = Action(pos=2, lineno=1, pipe=Pipe(pos=2, lineno=1, cmds=(Command(pos=2, lineno=1, args=(ident,)),)))
        tree = Tree(name="t.html", root=List(pos=0, lineno=1, nodes=(action,)))
        [ref] = extract_fields(tree, source, "t.html")
        assert ref.chain == ("Name",)
        assert (ref.line, ref.col) == (1, 2)

    @given(case=template_with_fields)
    @settings(max_examples=200)
    def test_generated_templates(self, case: tuple[str, list[tuple[str, ...]]]) -> None:
        source, expected = case
        assert chains(source) == expected


class TestParseTemplates:
    def test_walks_directory_sorted(self, make_templates):
        root = make_templates({"b.html": "{{.B}}", "a.html": "{{.A}}", "sub/c.html": "{{.C.D}}"})
        result = parse_templates(root)
        assert list(result) == ["a.html", "b.html", "sub/c.html"]
        assert result["sub/c.html"][0].chain == ("C", "D")
        assert result["sub/c.html"][0].template_path == "sub/c.html"

    def test_custom_delimiters(self, make_templates):
        root = make_templates({"page.html": "{{ not a template }} [[.Name]]"})
        result = parse_templates(root, "[[", "]]")
        assert [r.chain for r in result["page.html"]] == [("Name",)]

    def test_file_without_actions(self, make_templates):
        root = make_templates({"static.html": "<p>static</p>"})
        assert parse_templates(root) == {"static.html": []}

    def test_invalid_utf8(self, make_templates):
        root = make_templates({})
        (root / "bad.html").write_bytes(b"\xff\xfe{{.A}}")
        with pytest.raises(TemplateLoadError, match="UTF-8"):
            parse_templates(root)

    def test_syntax_error_is_fatal(self, make_templates):
        root = make_templates({"ok.html": "{{.A}}", "broken.html": "{{if .A}}"})
        with pytest.raises(TemplateSyntaxError) as exc_info:
            parse_templates(root)
        assert exc_info.value.name == "broken.html"

    def test_not_a_directory(self, tmp_path):
        with pytest.raises(TemplateLoadError, match="not a directory"):
            parse_templates(tmp_path / "missing")
