"""Exceptions for tmplcheck.

Exception Hierarchy:
TmplcheckError (base)
├── ConfigError               # Invalid or missing configuration
├── TemplateLoadError         # Template file unreadable or not UTF-8
├── TemplateSyntaxError       # Template lex/parse error
├── HostSourceError           # Host package not found or not parseable
├── UnsupportedArgumentError  # Render call with an unanalyzable argument
└── TraversalError            # Template tree violates walker assumptions

Every exception is fatal for a run. Missing-field diagnostics are results,
not exceptions.

Example:
    ```
    T-EXT-001: unsupported argument for templates.Set.execute: function call
      --> app/views.py:12:4
       |
    >12 |     s.execute("index.html", out, build_args())
       |     ^
       |
    ```

"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from tmplcheck import terminal


class ErrorCode(Enum):
    """Searchable error codes.

    Format: T-{CATEGORY}-{NUMBER}
    Categories: LEX (lexer), PAR (parser), TPL (template loading),
    SRC (host source), EXT (call-site extraction), CFG (configuration),
    INT (internal)
    """

    # Lexer errors (T-LEX-xxx)
    UNCLOSED_ACTION = "T-LEX-001"
    UNCLOSED_COMMENT = "T-LEX-002"
    BAD_CHARACTER = "T-LEX-003"
    UNTERMINATED_QUOTE = "T-LEX-004"
    UNBALANCED_PAREN = "T-LEX-005"
    BAD_NUMBER = "T-LEX-006"

    # Parser errors (T-PAR-xxx)
    UNEXPECTED_TOKEN = "T-PAR-001"
    UNDEFINED_FUNCTION = "T-PAR-002"
    UNDEFINED_VARIABLE = "T-PAR-003"
    MISSING_VALUE = "T-PAR-004"
    UNSUPPORTED_ACTION = "T-PAR-005"

    # Template loading errors (T-TPL-xxx)
    TEMPLATE_UNREADABLE = "T-TPL-001"

    # Host source errors (T-SRC-xxx)
    PACKAGE_NOT_FOUND = "T-SRC-001"
    SOURCE_SYNTAX = "T-SRC-002"

    # Call-site extraction errors (T-EXT-xxx)
    UNSUPPORTED_ARGUMENT = "T-EXT-001"

    # Configuration errors (T-CFG-xxx)
    INVALID_CONFIG = "T-CFG-001"

    # Internal errors (T-INT-xxx)
    TRAVERSAL = "T-INT-001"

    @property
    def category(self) -> str:
        """Error category (e.g., 'lexer', 'parser', 'source')."""
        prefix = self.value.split("-")[1]
        return {
            "LEX": "lexer",
            "PAR": "parser",
            "TPL": "template",
            "SRC": "source",
            "EXT": "extraction",
            "CFG": "config",
            "INT": "internal",
        }.get(prefix, "unknown")


# ---------------------------------------------------------------------------
# Source snippets
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SourceSnippet:
    """Source context around an error line.

    Attributes:
        lines: Tuple of (line_number, line_content) pairs around the error.
        error_line: The 1-based line number where the error occurred.
        column: Optional 0-based column for the caret pointer.
    """

    lines: tuple[tuple[int, str], ...]
    error_line: int
    column: int | None = None

    def format(self) -> str:
        parts: list[str] = [terminal.dim_text("   |")]
        for lineno, content in self.lines:
            parts.append(
                terminal.format_source_line(lineno, content, is_error=lineno == self.error_line)
            )
        if self.column is not None:
            caret = " " * self.column + "^"
            parts.append(f"{terminal.dim_text('   |')} {terminal.error_line(caret)}")
        parts.append(terminal.dim_text("   |"))
        return "\n".join(parts)


def build_source_snippet(
    source: str,
    error_line: int,
    *,
    context_lines: int = 0,
    column: int | None = None,
) -> SourceSnippet:
    """Build a SourceSnippet from source text.

    Args:
        source: Full source text.
        error_line: 1-based line number of the error.
        context_lines: Number of lines to show before/after the error line.
        column: Optional column for the caret pointer.
    """
    all_lines = source.splitlines()
    start = max(0, error_line - 1 - context_lines)
    end = min(len(all_lines), error_line + context_lines)
    lines = tuple((i + 1, all_lines[i]) for i in range(start, end))
    return SourceSnippet(lines=lines, error_line=error_line, column=column)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class TmplcheckError(Exception):
    """Base exception for all tmplcheck errors.

    Attributes:
        code: ErrorCode identifying the failure.
    """

    code: ErrorCode | None = None

    def format_compact(self) -> str:
        """Format the error as a terminal diagnostic without traceback noise."""
        return terminal.format_error_header(self.code.value if self.code else None, str(self))


class ConfigError(TmplcheckError):
    """Invalid or missing configuration value."""

    code: ErrorCode | None = ErrorCode.INVALID_CONFIG


class TemplateLoadError(TmplcheckError):
    """A template file could not be read or decoded."""

    code: ErrorCode | None = ErrorCode.TEMPLATE_UNREADABLE


class TemplateSyntaxError(TmplcheckError):
    """Lex- or parse-time error in template source.

    When ``source`` and ``lineno`` are provided, the message includes the
    offending line. If ``col_offset`` is also given, a caret points at the
    exact column.
    """

    code: ErrorCode | None = ErrorCode.UNEXPECTED_TOKEN

    def __init__(
        self,
        message: str,
        lineno: int | None = None,
        name: str | None = None,
        source: str | None = None,
        col_offset: int | None = None,
        code: ErrorCode | None = None,
    ):
        self.message = message
        self.lineno = lineno
        self.name = name
        self.source = source
        self.col_offset = col_offset
        if code is not None:
            self.code = code
        super().__init__(self._format_message())

    def _location(self) -> str:
        location = self.name or "<template>"
        if self.lineno:
            location += f":{self.lineno}"
            if self.col_offset is not None:
                location += f":{self.col_offset}"
        return location

    def _format_message(self) -> str:
        header = f"Syntax Error: {self.message}\n  --> {self._location()}"
        if self.source and self.lineno:
            lines = self.source.splitlines()
            if 0 < self.lineno <= len(lines):
                snippet = f"\n   |\n{self.lineno:>3} | {lines[self.lineno - 1]}"
                if self.col_offset is not None:
                    snippet += f"\n   | {' ' * self.col_offset}^"
                return header + snippet
        return header

    def format_compact(self) -> str:
        parts = [
            terminal.format_error_header(self.code.value if self.code else None, self.message),
            f"  --> {terminal.location(self._location())}",
        ]
        if self.source and self.lineno:
            snippet = build_source_snippet(self.source, self.lineno, column=self.col_offset)
            if snippet.lines:
                parts.append(snippet.format())
        return "\n".join(parts)


class HostSourceError(TmplcheckError):
    """The host package could not be located or parsed."""

    code: ErrorCode | None = ErrorCode.PACKAGE_NOT_FOUND

    def __init__(
        self,
        message: str,
        *,
        filename: str | None = None,
        lineno: int | None = None,
        source_snippet: SourceSnippet | None = None,
        code: ErrorCode | None = None,
    ):
        self.message = message
        self.filename = filename
        self.lineno = lineno
        self.source_snippet = source_snippet
        if code is not None:
            self.code = code
        location = filename or ""
        if filename and lineno:
            location += f":{lineno}"
        super().__init__(f"{location}: {message}" if location else message)

    def format_compact(self) -> str:
        parts = [super().format_compact()]
        if self.source_snippet:
            parts.append(self.source_snippet.format())
        return "\n".join(parts)


class UnsupportedArgumentError(TmplcheckError):
    """A matched render call has an argument shape that cannot be analyzed.

    Raised by binding extractors for dynamic keys, multi-level aliasing,
    non-literal values, and by recognized-but-unsupported render APIs.
    ``filename``, ``lineno`` and ``call`` are filled in by the call-site
    extractor via :meth:`at`.
    """

    code: ErrorCode | None = ErrorCode.UNSUPPORTED_ARGUMENT

    def __init__(
        self,
        message: str,
        *,
        call: str | None = None,
        filename: str | None = None,
        lineno: int | None = None,
        col_offset: int | None = None,
        source_snippet: SourceSnippet | None = None,
    ):
        self.message = message
        self.call = call
        self.filename = filename
        self.lineno = lineno
        self.col_offset = col_offset
        self.source_snippet = source_snippet
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        msg = self.message
        if self.call:
            msg = f"unsupported argument for {self.call}: {msg}"
        if self.filename:
            loc = self.filename
            if self.lineno:
                loc += f":{self.lineno}"
            msg = f"{loc}: {msg}"
        return msg

    def at(
        self,
        *,
        call: str,
        filename: str,
        lineno: int,
        col_offset: int | None = None,
        source: str | None = None,
    ) -> UnsupportedArgumentError:
        """Return a copy of this error located at a call site."""
        snippet = None
        if source:
            snippet = build_source_snippet(source, lineno, column=col_offset)
        return UnsupportedArgumentError(
            self.message,
            call=call,
            filename=filename,
            lineno=lineno,
            col_offset=col_offset,
            source_snippet=snippet,
        )

    def format_compact(self) -> str:
        header = self.message
        if self.call:
            header = f"unsupported argument for {self.call}: {header}"
        parts = [terminal.format_error_header(self.code.value if self.code else None, header)]
        if self.filename:
            loc = self.filename
            if self.lineno:
                loc += f":{self.lineno}"
                if self.col_offset is not None:
                    loc += f":{self.col_offset}"
            parts.append(f"  --> {terminal.location(loc)}")
        if self.source_snippet and self.source_snippet.lines:
            parts.append(self.source_snippet.format())
        parts.append(
            f"  {terminal.hint('Hint:')} pass a literal dict or keyword construction, "
            "or run with -on-unsupported skip"
        )
        return "\n".join(parts)


class TraversalError(TmplcheckError):
    """A template tree contains a node the walker never expects to see.

    This signals a violated traversal assumption (an abstract node kind
    or a node class outside the closed vocabulary), not a template error.
    """

    code: ErrorCode | None = ErrorCode.TRAVERSAL
