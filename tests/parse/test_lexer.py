"""Tests for the template lexer."""

from __future__ import annotations

import pytest

from tmplcheck._types import TokenType
from tmplcheck.exceptions import ErrorCode, TemplateSyntaxError
from tmplcheck.parse.lexer import Lexer, tokenize


def types(source: str, **kwargs) -> list[TokenType]:
    return [t.type for t in Lexer(source, **kwargs).tokenize()]


def values(source: str) -> list[str]:
    return [t.value for t in tokenize(source) if t.type is not TokenType.EOF]


class TestText:
    def test_empty_source(self):
        assert types("") == [TokenType.EOF]

    def test_text_only(self):
        tokens = tokenize("hello world")
        assert tokens[0].type is TokenType.TEXT
        assert tokens[0].value == "hello world"
        assert tokens[-1].type is TokenType.EOF

    def test_text_around_action(self):
        assert types("a{{.X}}b") == [
            TokenType.TEXT,
            TokenType.LEFT_DELIM,
            TokenType.FIELD,
            TokenType.RIGHT_DELIM,
            TokenType.TEXT,
            TokenType.EOF,
        ]

    def test_positions_and_lines(self):
        tokens = tokenize("ab\ncd{{.X}}")
        field = next(t for t in tokens if t.type is TokenType.FIELD)
        assert field.pos == 7
        assert field.lineno == 2


class TestActions:
    def test_field_chain_is_separate_tokens(self):
        assert values("{{.A.B}}") == ["{{", ".A", ".B", "}}"]

    def test_dot(self):
        assert types("{{.}}")[1] is TokenType.DOT

    def test_variables(self):
        assert values("{{$x := $}}") == ["{{", "$x", " ", ":=", " ", "$", "}}"]

    def test_keywords_and_bools(self):
        tokens = tokenize("{{if true}}{{else}}{{end}}")
        kinds = [t.type for t in tokens]
        assert TokenType.IF in kinds
        assert TokenType.BOOL in kinds
        assert TokenType.ELSE in kinds
        assert TokenType.END in kinds

    def test_identifier(self):
        assert types("{{len .Items}}")[1] is TokenType.IDENTIFIER

    def test_strings(self):
        tokens = tokenize('{{"a\\"b" `raw`}}')
        assert tokens[1].type is TokenType.STRING
        assert tokens[1].value == '"a\\"b"'
        assert tokens[3].type is TokenType.RAW_STRING

    def test_char_constant(self):
        assert types("{{'x'}}")[1] is TokenType.CHAR_CONSTANT

    @pytest.mark.parametrize("number", ["42", "-1", "0x1F", "0o17", "0b101", "1.5e3", "1_000", ".5", "2i"])
    def test_numbers(self, number):
        tokens = tokenize("{{" + number + "}}")
        assert tokens[1].type is TokenType.NUMBER
        assert tokens[1].value == number

    def test_pipe_and_parens(self):
        assert types("{{(.A) | len}}")[1:6] == [
            TokenType.LEFT_PAREN,
            TokenType.FIELD,
            TokenType.RIGHT_PAREN,
            TokenType.SPACE,
            TokenType.PIPE,
        ]

    def test_range_comma(self):
        tokens = tokenize("{{range $i, $e := .Items}}{{end}}")
        comma = next(t for t in tokens if t.type is TokenType.CHAR)
        assert comma.value == ","

    def test_custom_delimiters(self):
        assert values("a[[.X]]b") == ["a[[.X]]b"]
        tokens = Lexer("a[[.X]]b", left_delim="[[", right_delim="]]").tokenize()
        assert [t.value for t in tokens[:-1]] == ["a", "[[", ".X", "]]", "b"]


class TestTrimAndComments:
    def test_left_trim(self):
        assert values("a  \n {{- .X}}") == ["a", "{{", ".X", "}}"]

    def test_right_trim(self):
        assert values("{{.X -}} \n b") == ["{{", ".X", "}}", "b"]

    def test_minus_without_space_is_a_number(self):
        assert values("{{-3}}") == ["{{", "-3", "}}"]

    def test_comment_dropped(self):
        assert values("a{{/* note */}}b") == ["a", "b"]

    def test_trimmed_comment(self):
        assert values("a {{- /* note */ -}} b") == ["a", "b"]


class TestErrors:
    def test_unclosed_action(self):
        with pytest.raises(TemplateSyntaxError) as exc_info:
            tokenize("{{.X")
        assert exc_info.value.code is ErrorCode.UNCLOSED_ACTION

    def test_unclosed_comment(self):
        with pytest.raises(TemplateSyntaxError) as exc_info:
            tokenize("{{/* never")
        assert exc_info.value.code is ErrorCode.UNCLOSED_COMMENT

    def test_unterminated_string(self):
        with pytest.raises(TemplateSyntaxError) as exc_info:
            tokenize('{{"abc}}')
        assert exc_info.value.code is ErrorCode.UNTERMINATED_QUOTE

    def test_unbalanced_paren(self):
        with pytest.raises(TemplateSyntaxError) as exc_info:
            tokenize("{{(.X}}")
        assert exc_info.value.code is ErrorCode.UNBALANCED_PAREN

    def test_unrecognized_character(self):
        with pytest.raises(TemplateSyntaxError) as exc_info:
            tokenize("{{.X €}}")
        assert exc_info.value.code is ErrorCode.BAD_CHARACTER

    def test_bad_field_terminator(self):
        with pytest.raises(TemplateSyntaxError):
            tokenize('{{.X"y"}}')

    def test_error_location(self):
        with pytest.raises(TemplateSyntaxError) as exc_info:
            Lexer("line one\n{{.X", name="page.html").tokenize()
        err = exc_info.value
        assert err.lineno == 2
        assert err.col_offset == 0
        assert "page.html:2" in str(err)
