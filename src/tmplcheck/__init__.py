"""tmplcheck: static checks that template call sites supply every field a template reads.

Two independently parsed artifacts are cross-checked:

1. **Templates**: text/template action syntax (``{{.Name}}``,
   ``{{range .Teams}}...{{end}}``), from which field references are
   extracted.
2. **Host source**: a Python package parsed with ``ast``, from which the
   data keys supplied at each render call are extracted.

A field a template reads that a call site does not supply is reported as
a missing-field diagnostic, located in both the template and the source.

Quickstart:
    >>> from tmplcheck import CheckConfig, run
    >>> results = run(CheckConfig(templates_path="templates/", package="myapp"))
    >>> for result in results:
    ...     for diagnostic in result.diagnostics:
    ...         print(result.template_file, diagnostic)

Pipeline:
    templates/ → Lexer → Parser → Tree → walk → FieldReference ┐
                                                               ├→ check → CheckResult
    package    → ast.parse → CallSiteVisitor → CallSiteUsage ──┘

Render APIs are recognized through a fixed capability registry
(:mod:`tmplcheck.source.bindings`).
"""

__version__ = "0.1.0"

from tmplcheck.check import CheckResult, MissingFieldDiagnostic, check
from tmplcheck.config import ChainMode, CheckConfig, OutputFormat, UnsupportedPolicy
from tmplcheck.exceptions import (
    ConfigError,
    ErrorCode,
    HostSourceError,
    TemplateLoadError,
    TemplateSyntaxError,
    TmplcheckError,
    TraversalError,
    UnsupportedArgumentError,
)
from tmplcheck.fields import FieldReference, extract_fields, line_col, parse_templates
from tmplcheck.parse import parse, walk
from tmplcheck.runner import parse_all, run
from tmplcheck.source import CallSiteUsage, extract_usages, load_package

__all__ = [
    "CallSiteUsage",
    "ChainMode",
    "CheckConfig",
    "CheckResult",
    "ConfigError",
    "ErrorCode",
    "FieldReference",
    "HostSourceError",
    "MissingFieldDiagnostic",
    "OutputFormat",
    "TemplateLoadError",
    "TemplateSyntaxError",
    "TmplcheckError",
    "TraversalError",
    "UnsupportedArgumentError",
    "UnsupportedPolicy",
    "__version__",
    "check",
    "extract_fields",
    "extract_usages",
    "line_col",
    "load_package",
    "parse",
    "parse_all",
    "parse_templates",
    "run",
    "walk",
]
