"""Render check results for the terminal or as JSON.

Plain output lists only templates with missing fields:

    views/index.html
    Title missing: required by app.py:12 in s.execute

JSON output lists every template, with or without findings:

    [{"template": "views/index.html",
      "missing": [{"template": {"file", "line", "col"},
                   "source": {"file", "line", "key", "call"}}]}]
"""

from __future__ import annotations

import json
from collections.abc import Sequence

from tmplcheck import terminal
from tmplcheck.check import CheckResult, MissingFieldDiagnostic


def _format_diagnostic(diagnostic: MissingFieldDiagnostic) -> str:
    return (
        f"{terminal.missing_key(diagnostic.missing_key)} missing: required by "
        f"{diagnostic.source_file}:{diagnostic.source_line} in {diagnostic.call}"
    )


def render_plain(results: Sequence[CheckResult]) -> str:
    """Plain text report; empty when nothing is missing."""
    blocks: list[str] = []
    for result in results:
        if not result.has_missing:
            continue
        lines = [terminal.location(result.template_file)]
        lines.extend(_format_diagnostic(d) for d in result.diagnostics)
        blocks.append("\n".join(lines))
    return "\n".join(blocks)


def render_json(results: Sequence[CheckResult]) -> str:
    """JSON report, indented two spaces."""
    return json.dumps([r.to_dict() for r in results], indent=2)
