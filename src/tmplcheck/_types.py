"""Token types shared by the template lexer and parser."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto


class TokenType(Enum):
    """Kinds of token produced by the template lexer."""

    EOF = auto()
    TEXT = auto()
    LEFT_DELIM = auto()
    RIGHT_DELIM = auto()
    SPACE = auto()

    # Operands
    BOOL = auto()
    CHAR_CONSTANT = auto()
    DOT = auto()
    FIELD = auto()
    IDENTIFIER = auto()
    NUMBER = auto()
    RAW_STRING = auto()
    STRING = auto()
    VARIABLE = auto()

    # Punctuation
    ASSIGN = auto()
    CHAR = auto()
    DECLARE = auto()
    LEFT_PAREN = auto()
    PIPE = auto()
    RIGHT_PAREN = auto()

    # Keywords
    BLOCK = auto()
    BREAK = auto()
    CONTINUE = auto()
    DEFINE = auto()
    ELSE = auto()
    END = auto()
    IF = auto()
    NIL = auto()
    RANGE = auto()
    TEMPLATE = auto()
    WITH = auto()


KEYWORDS: dict[str, TokenType] = {
    "block": TokenType.BLOCK,
    "break": TokenType.BREAK,
    "continue": TokenType.CONTINUE,
    "define": TokenType.DEFINE,
    "else": TokenType.ELSE,
    "end": TokenType.END,
    "if": TokenType.IF,
    "nil": TokenType.NIL,
    "range": TokenType.RANGE,
    "template": TokenType.TEMPLATE,
    "with": TokenType.WITH,
}


@dataclass(frozen=True, slots=True)
class Token:
    """A lexed token.

    Attributes:
        type: Token kind.
        value: Source text of the token.
        pos: Character offset of the token in the template source.
        lineno: 1-based line number of the token.
    """

    type: TokenType
    value: str
    pos: int
    lineno: int

    def __str__(self) -> str:
        if self.type is TokenType.EOF:
            return "EOF"
        if self.type is TokenType.TEXT and len(self.value) > 10:
            return f"{self.value[:10]!r}..."
        return repr(self.value)
