"""Tests for template tree traversal."""

from __future__ import annotations

from dataclasses import dataclass

import pytest

from tmplcheck.exceptions import TraversalError
from tmplcheck.parse import parse, walk
from tmplcheck.parse.nodes import Branch, Field, List, Node, Pipe


def visited(source: str) -> list[Node]:
    nodes: list[Node] = []
    walk(parse(source).root, nodes.append)
    return nodes


def kinds(source: str) -> list[str]:
    return [type(n).__name__ for n in visited(source)]


@dataclass(frozen=True, slots=True)
class Comment(Node):
    """A node kind outside the closed vocabulary."""

    text: str


class TestOrder:
    def test_parent_before_children(self):
        assert kinds("{{.A}}") == ["List", "Action", "Pipe", "Command", "Field"]

    def test_declarations_before_commands(self):
        assert kinds("{{$x := .A}}") == ["List", "Action", "Pipe", "Variable", "Command", "Field"]

    def test_branch_pipe_body_else(self):
        fields = [n.ident[0] for n in visited("{{if .A}}{{.B}}{{else}}{{.C}}{{end}}") if isinstance(n, Field)]
        assert fields == ["A", "B", "C"]

    def test_branch_children(self):
        assert kinds("{{range .A}}x{{end}}") == [
            "List",
            "Range",
            "Pipe",
            "Command",
            "Field",
            "List",
            "Text",
        ]

    def test_chain_visits_inner_node(self):
        assert "Chain" in kinds("{{(.A).B}}")
        assert [n.ident for n in visited("{{(.A).B}}") if isinstance(n, Field)] == [("A",)]

    def test_template_invocation_pipe(self):
        assert kinds('{{template "x" .A}}') == [
            "List",
            "TemplateInvocation",
            "Pipe",
            "Command",
            "Field",
        ]

    def test_template_invocation_without_pipe(self):
        assert kinds('{{template "x"}}') == ["List", "TemplateInvocation"]

    def test_define_bodies_not_walked(self):
        fields = [n for n in visited('{{define "x"}}{{.Hidden}}{{end}}') if isinstance(n, Field)]
        assert fields == []


class TestFailures:
    def test_none_is_skipped(self):
        calls: list[Node] = []
        walk(None, calls.append)
        assert calls == []

    def test_bare_branch_raises(self):
        branch = Branch(pos=0, lineno=1, pipe=Pipe(pos=0, lineno=1), body=List(pos=0, lineno=1))
        with pytest.raises(TraversalError, match="abstract branch"):
            walk(List(pos=0, lineno=1, nodes=(branch,)), lambda node: None)

    def test_unknown_kind_raises(self):
        with pytest.raises(TraversalError, match="Comment"):
            walk(Comment(pos=3, lineno=1, text="x"), lambda node: None)

    def test_visitor_error_stops_traversal(self):
        seen: list[Node] = []

        def visit(node: Node) -> None:
            seen.append(node)
            if isinstance(node, Field):
                raise ValueError("stop")

        with pytest.raises(ValueError, match="stop"):
            walk(parse("{{.A}}{{.B}}").root, visit)
        assert [n.ident for n in seen if isinstance(n, Field)] == [("A",)]
