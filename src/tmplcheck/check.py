"""Cross-check template field references against render call sites.

For every template, every field it references must be supplied by every
call that renders it. Each (reference, field name, call site) triple
where the call does not supply the name yields one diagnostic:

    for reference in fields(T):
        for name in reference.chain          # FLAT; chain[:1] in HEAD mode
            for usage in usages(T):
                if name not in usage.supplied_keys: report

FLAT compares every element of a chain against the flat key set of the
call, so ``.User.Name`` requires both ``User`` and ``Name`` at top level.
HEAD only requires ``User``.

A template with no call sites has nothing to compare against and yields
no diagnostics.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from tmplcheck.config import ChainMode
from tmplcheck.fields import FieldReference
from tmplcheck.source.usages import CallSiteUsage

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class MissingFieldDiagnostic:
    """A field a template reads that one of its call sites does not supply."""

    template_file: str
    template_line: int
    template_col: int
    missing_key: str
    source_file: str
    source_line: int
    receiver_name: str
    method_name: str

    @property
    def call(self) -> str:
        return f"{self.receiver_name}.{self.method_name}"

    def __str__(self) -> str:
        return (
            f"{self.missing_key} missing: required by "
            f"{self.source_file}:{self.source_line} in {self.call}"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "template": {
                "file": self.template_file,
                "line": self.template_line,
                "col": self.template_col,
            },
            "source": {
                "file": self.source_file,
                "line": self.source_line,
                "key": self.missing_key,
                "call": self.call,
            },
        }


@dataclass(frozen=True, slots=True)
class CheckResult:
    """Diagnostics for one template file (possibly none)."""

    template_file: str
    diagnostics: tuple[MissingFieldDiagnostic, ...] = ()

    @property
    def has_missing(self) -> bool:
        return bool(self.diagnostics)

    def to_dict(self) -> dict[str, Any]:
        return {
            "template": self.template_file,
            "missing": [d.to_dict() for d in self.diagnostics],
        }


def check_template(
    template_file: str,
    references: Sequence[FieldReference],
    usages: Sequence[CallSiteUsage],
    *,
    chain_mode: ChainMode = ChainMode.FLAT,
) -> CheckResult:
    """Check one template's references against its call sites."""
    diagnostics: list[MissingFieldDiagnostic] = []
    supplied = [frozenset(u.supplied_keys) for u in usages]

    for ref in references:
        names = ref.chain if chain_mode is ChainMode.FLAT else ref.chain[:1]
        for name in names:
            for usage, keys in zip(usages, supplied, strict=True):
                if name in keys:
                    continue
                diagnostics.append(
                    MissingFieldDiagnostic(
                        template_file=template_file,
                        template_line=ref.line,
                        template_col=ref.col,
                        missing_key=name,
                        source_file=usage.source_file,
                        source_line=usage.line,
                        receiver_name=usage.receiver_name,
                        method_name=usage.method_name,
                    )
                )

    return CheckResult(template_file=template_file, diagnostics=tuple(diagnostics))


def check(
    fields_by_template: Mapping[str, Sequence[FieldReference]],
    usages_by_template: Mapping[str, Sequence[CallSiteUsage]],
    *,
    chain_mode: ChainMode = ChainMode.FLAT,
) -> list[CheckResult]:
    """Check every template; one result per template, sorted by path.

    Call sites rendering a template that was not found are logged and
    otherwise ignored.
    """
    for name in sorted(set(usages_by_template) - set(fields_by_template)):
        for usage in usages_by_template[name]:
            logger.warning(
                "%s:%d: %s renders unknown template %r",
                usage.source_file,
                usage.line,
                usage.call,
                name,
            )

    results = []
    for template_file in sorted(fields_by_template):
        usages = usages_by_template.get(template_file, ())
        if not usages:
            logger.info("template %s has no call sites", template_file)
        results.append(
            check_template(
                template_file,
                fields_by_template[template_file],
                usages,
                chain_mode=chain_mode,
            )
        )
    return results
