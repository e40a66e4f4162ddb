"""Tests for plain and JSON result rendering."""

from __future__ import annotations

import json

from tmplcheck import terminal
from tmplcheck.check import CheckResult, MissingFieldDiagnostic
from tmplcheck.report import render_json, render_plain


def diagnostic(key: str, line: int = 12) -> MissingFieldDiagnostic:
    return MissingFieldDiagnostic(
        template_file="views/index.html",
        template_line=1,
        template_col=6,
        missing_key=key,
        source_file="app.py",
        source_line=line,
        receiver_name="s",
        method_name="execute",
    )


RESULTS = [
    CheckResult("empty.html"),
    CheckResult("views/index.html", (diagnostic("Title"), diagnostic("Teams", line=20))),
]


class TestRenderPlain:
    def test_lists_only_templates_with_findings(self):
        assert render_plain(RESULTS) == (
            "views/index.html\n"
            "Title missing: required by app.py:12 in s.execute\n"
            "Teams missing: required by app.py:20 in s.execute"
        )

    def test_empty_when_nothing_missing(self):
        assert render_plain([CheckResult("a.html"), CheckResult("b.html")]) == ""

    def test_colors_when_enabled(self, monkeypatch):
        monkeypatch.setattr(terminal, "_USE_COLORS", True)
        output = render_plain(RESULTS)
        assert "\033[36mviews/index.html\033[0m" in output
        assert terminal.strip_colors(output).startswith("views/index.html\nTitle missing")


class TestRenderJson:
    def test_every_template_listed(self):
        data = json.loads(render_json(RESULTS))
        assert [entry["template"] for entry in data] == ["empty.html", "views/index.html"]
        assert data[0]["missing"] == []
        assert data[1]["missing"][1] == {
            "template": {"file": "views/index.html", "line": 1, "col": 6},
            "source": {"file": "app.py", "line": 20, "key": "Teams", "call": "s.execute"},
        }

    def test_two_space_indent(self):
        assert render_json([CheckResult("a.html")]) == (
            '[\n  {\n    "template": "a.html",\n    "missing": []\n  }\n]'
        )

    def test_no_results(self):
        assert render_json([]) == "[]"
