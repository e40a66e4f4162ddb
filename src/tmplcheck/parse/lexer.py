"""Template lexer.

Splits template source into text runs and action tokens. Actions are
delimited by configurable left/right delimiters (``{{`` and ``}}`` by
default). Inside actions, spaces are significant tokens: they separate
command arguments.

Whitespace control:
    ``{{- `` trims whitespace before the action, `` -}}`` trims after.
    The marker must be separated from the action body by a space.

Comments:
    ``{{/* ... */}}`` is dropped. The comment must end immediately
    before the right delimiter (optionally with a trim marker).
"""

from __future__ import annotations

import re
from bisect import bisect_right

from tmplcheck._types import KEYWORDS, Token, TokenType
from tmplcheck.exceptions import ErrorCode, TemplateSyntaxError

_SPACE_CHARS = " \t\r\n"
_TRIM_MARKER = "-"
_TRIM_MARKER_LEN = 2  # marker plus the space next to it
_LEFT_COMMENT = "/*"
_RIGHT_COMMENT = "*/"

# Characters that may legally follow a field, variable or identifier.
_TERMINATORS = frozenset(" \t\r\n.,|:()")

_SINGLE_CHAR_TOKENS = {
    "=": TokenType.ASSIGN,
    "|": TokenType.PIPE,
    ",": TokenType.CHAR,
}

# Numbers: optional sign, optional base prefix, mantissa, exponent, imaginary suffix.
_NUMBER_RE = re.compile(
    r"""
    [+-]?
    (?:
        0[xX][0-9a-fA-F_]*(?:\.[0-9a-fA-F_]*)?(?:[pP][+-]?[0-9_]+)?
      | 0[oO][0-7_]*
      | 0[bB][01_]*
      | [0-9_]*(?:\.[0-9_]*)?(?:[eE][+-]?[0-9_]+)?
    )
    i?
    """,
    re.VERBOSE,
)


def _is_alphanumeric(char: str) -> bool:
    return char == "_" or char.isalnum()


class Lexer:
    """Tokenize template source.

    Example:
        >>> [t.type.name for t in Lexer("Hi {{.Name}}").tokenize()]
        ['TEXT', 'LEFT_DELIM', 'FIELD', 'RIGHT_DELIM', 'EOF']
    """

    __slots__ = ("_source", "_left", "_right", "_name", "_tokens", "_line_starts", "_paren_depth")

    def __init__(
        self,
        source: str,
        left_delim: str = "{{",
        right_delim: str = "}}",
        name: str | None = None,
    ):
        self._source = source
        self._left = left_delim or "{{"
        self._right = right_delim or "}}"
        self._name = name
        self._tokens: list[Token] = []
        self._line_starts: list[int] = [0]
        self._paren_depth = 0

    def tokenize(self) -> list[Token]:
        """Return the full token list, ending with an EOF token."""
        source = self._source
        self._tokens = []
        self._line_starts = [0] + [i + 1 for i, ch in enumerate(source) if ch == "\n"]

        pos = 0
        while True:
            idx = source.find(self._left, pos)
            if idx == -1:
                if pos < len(source):
                    self._emit(TokenType.TEXT, source[pos:], pos)
                break

            trim = self._has_left_trim_marker(idx + len(self._left))
            text = source[pos:idx]
            if trim:
                text = text.rstrip(_SPACE_CHARS)
            if text:
                self._emit(TokenType.TEXT, text, pos)
            pos = self._lex_action(idx, trim)

        self._emit(TokenType.EOF, "", len(source))
        return self._tokens

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _lineno(self, pos: int) -> int:
        return bisect_right(self._line_starts, pos)

    def _emit(self, type_: TokenType, value: str, pos: int) -> None:
        self._tokens.append(Token(type_, value, pos, self._lineno(pos)))

    def _error(self, message: str, pos: int, code: ErrorCode) -> TemplateSyntaxError:
        lineno = self._lineno(pos)
        return TemplateSyntaxError(
            message,
            lineno=lineno,
            name=self._name,
            source=self._source,
            col_offset=pos - self._line_starts[lineno - 1],
            code=code,
        )

    def _has_left_trim_marker(self, pos: int) -> bool:
        s = self._source
        return pos + 1 < len(s) and s[pos] == _TRIM_MARKER and s[pos + 1] in _SPACE_CHARS

    def _has_right_trim_marker(self, pos: int) -> bool:
        s = self._source
        return pos + 1 < len(s) and s[pos] in _SPACE_CHARS and s[pos + 1] == _TRIM_MARKER

    def _at_right_delim(self, pos: int) -> tuple[bool, bool]:
        """Return (at_delimiter, trim_after) for position ``pos``."""
        if self._has_right_trim_marker(pos) and self._source.startswith(
            self._right, pos + _TRIM_MARKER_LEN
        ):
            return True, True
        if self._source.startswith(self._right, pos):
            return True, False
        return False, False

    def _skip_space(self, pos: int) -> int:
        s = self._source
        while pos < len(s) and s[pos] in _SPACE_CHARS:
            pos += 1
        return pos

    def _check_terminator(self, pos: int) -> None:
        """Fields, variables and identifiers must be followed by a terminator."""
        if pos >= len(self._source):
            return
        if self._source[pos] in _TERMINATORS or self._at_right_delim(pos)[0]:
            return
        raise self._error(
            f"bad character {self._source[pos]!r}", pos, ErrorCode.BAD_CHARACTER
        )

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def _lex_action(self, start: int, trim: bool) -> int:
        """Lex one action starting at its left delimiter; return the position after it."""
        pos = start + len(self._left)
        if trim:
            pos += _TRIM_MARKER_LEN
        if self._source.startswith(_LEFT_COMMENT, pos):
            return self._lex_comment(start, pos)

        self._emit(TokenType.LEFT_DELIM, self._left, start)
        self._paren_depth = 0
        source = self._source

        while True:
            at_delim, trim_after = self._at_right_delim(pos)
            if at_delim:
                if self._paren_depth:
                    raise self._error("unclosed left paren", pos, ErrorCode.UNBALANCED_PAREN)
                if trim_after:
                    pos += _TRIM_MARKER_LEN
                self._emit(TokenType.RIGHT_DELIM, self._right, pos)
                pos += len(self._right)
                return self._skip_space(pos) if trim_after else pos

            if pos >= len(source):
                raise self._error("unclosed action", start, ErrorCode.UNCLOSED_ACTION)

            char = source[pos]
            if char in _SPACE_CHARS:
                pos = self._lex_space(pos)
            elif char in _SINGLE_CHAR_TOKENS:
                self._emit(_SINGLE_CHAR_TOKENS[char], char, pos)
                pos += 1
            elif char == ":":
                if not source.startswith(":=", pos):
                    raise self._error("expected :=", pos, ErrorCode.BAD_CHARACTER)
                self._emit(TokenType.DECLARE, ":=", pos)
                pos += 2
            elif char == '"':
                pos = self._lex_quote(pos)
            elif char == "`":
                pos = self._lex_raw_quote(pos)
            elif char == "'":
                pos = self._lex_char(pos)
            elif char == "$":
                pos = self._lex_variable(pos)
            elif char == ".":
                if pos + 1 < len(source) and source[pos + 1].isdigit():
                    pos = self._lex_number(pos)
                else:
                    pos = self._lex_field(pos)
            elif char in "+-" or char.isdigit():
                pos = self._lex_number(pos)
            elif _is_alphanumeric(char):
                pos = self._lex_identifier(pos)
            elif char == "(":
                self._paren_depth += 1
                self._emit(TokenType.LEFT_PAREN, char, pos)
                pos += 1
            elif char == ")":
                self._paren_depth -= 1
                if self._paren_depth < 0:
                    raise self._error("unexpected right paren", pos, ErrorCode.UNBALANCED_PAREN)
                self._emit(TokenType.RIGHT_PAREN, char, pos)
                pos += 1
            elif char.isascii() and char.isprintable():
                self._emit(TokenType.CHAR, char, pos)
                pos += 1
            else:
                raise self._error(
                    f"unrecognized character in action: {char!r}", pos, ErrorCode.BAD_CHARACTER
                )

    def _lex_comment(self, start: int, pos: int) -> int:
        end = self._source.find(_RIGHT_COMMENT, pos + len(_LEFT_COMMENT))
        if end == -1:
            raise self._error("unclosed comment", start, ErrorCode.UNCLOSED_COMMENT)
        pos = end + len(_RIGHT_COMMENT)
        at_delim, trim_after = self._at_right_delim(pos)
        if not at_delim:
            raise self._error(
                "comment ends before closing delimiter", pos, ErrorCode.UNCLOSED_COMMENT
            )
        if trim_after:
            pos += _TRIM_MARKER_LEN
        pos += len(self._right)
        return self._skip_space(pos) if trim_after else pos

    def _lex_space(self, pos: int) -> int:
        """Emit a run of spaces, leaving the space of a ' -' trim marker unconsumed."""
        start = pos
        end = self._skip_space(pos)
        if end > start and self._at_right_delim(end - 1) == (True, True):
            end -= 1
        if end > start:
            self._emit(TokenType.SPACE, self._source[start:end], start)
        return end

    def _lex_quote(self, start: int) -> int:
        source = self._source
        pos = start + 1
        while True:
            if pos >= len(source) or source[pos] == "\n":
                raise self._error(
                    "unterminated quoted string", start, ErrorCode.UNTERMINATED_QUOTE
                )
            char = source[pos]
            if char == "\\":
                if pos + 1 >= len(source) or source[pos + 1] == "\n":
                    raise self._error(
                        "unterminated quoted string", start, ErrorCode.UNTERMINATED_QUOTE
                    )
                pos += 2
                continue
            pos += 1
            if char == '"':
                break
        self._emit(TokenType.STRING, source[start:pos], start)
        return pos

    def _lex_raw_quote(self, start: int) -> int:
        end = self._source.find("`", start + 1)
        if end == -1:
            raise self._error(
                "unterminated raw quoted string", start, ErrorCode.UNTERMINATED_QUOTE
            )
        self._emit(TokenType.RAW_STRING, self._source[start : end + 1], start)
        return end + 1

    def _lex_char(self, start: int) -> int:
        source = self._source
        pos = start + 1
        while True:
            if pos >= len(source) or source[pos] == "\n":
                raise self._error(
                    "unterminated character constant", start, ErrorCode.UNTERMINATED_QUOTE
                )
            char = source[pos]
            if char == "\\" and pos + 1 < len(source) and source[pos + 1] != "\n":
                pos += 2
                continue
            pos += 1
            if char == "'":
                break
        self._emit(TokenType.CHAR_CONSTANT, source[start:pos], start)
        return pos

    def _scan_word(self, pos: int) -> int:
        source = self._source
        while pos < len(source) and _is_alphanumeric(source[pos]):
            pos += 1
        return pos

    def _lex_variable(self, start: int) -> int:
        end = self._scan_word(start + 1)
        self._check_terminator(end)
        self._emit(TokenType.VARIABLE, self._source[start:end], start)
        return end

    def _lex_field(self, start: int) -> int:
        end = self._scan_word(start + 1)
        if end == start + 1:
            self._emit(TokenType.DOT, ".", start)
            return end
        self._check_terminator(end)
        self._emit(TokenType.FIELD, self._source[start:end], start)
        return end

    def _lex_identifier(self, start: int) -> int:
        end = self._scan_word(start)
        self._check_terminator(end)
        word = self._source[start:end]
        if word in KEYWORDS:
            type_ = KEYWORDS[word]
        elif word in ("true", "false"):
            type_ = TokenType.BOOL
        else:
            type_ = TokenType.IDENTIFIER
        self._emit(type_, word, start)
        return end

    def _lex_number(self, start: int) -> int:
        match = _NUMBER_RE.match(self._source, start)
        end = match.end() if match else start
        text = self._source[start:end]
        if not any(ch.isdigit() for ch in text) or (
            end < len(self._source) and _is_alphanumeric(self._source[end])
        ):
            bad_end = self._scan_word(end) if end < len(self._source) else end
            bad = self._source[start : max(bad_end, start + 1)]
            raise self._error(f"bad number syntax: {bad!r}", start, ErrorCode.BAD_NUMBER)
        self._emit(TokenType.NUMBER, text, start)
        return end


def tokenize(source: str, left_delim: str = "{{", right_delim: str = "}}") -> list[Token]:
    """Convenience wrapper around :class:`Lexer`."""
    return Lexer(source, left_delim, right_delim).tokenize()
