"""Template parsing: lexer, parser, node vocabulary and tree walker.

Example:
    >>> tree = parse("Hello, {{.Name}}!", name="hello.html")
    >>> [type(n).__name__ for n in tree.root.nodes]
    ['Text', 'Action', 'Text']
"""

from __future__ import annotations

from tmplcheck.parse.lexer import Lexer, tokenize
from tmplcheck.parse.nodes import NODE_TYPES, Node, Tree
from tmplcheck.parse.parser import BUILTIN_FUNCTIONS, Parser
from tmplcheck.parse.walk import walk

__all__ = [
    "BUILTIN_FUNCTIONS",
    "Lexer",
    "NODE_TYPES",
    "Node",
    "Parser",
    "Tree",
    "parse",
    "tokenize",
    "walk",
]


def parse(
    source: str,
    name: str = "",
    left_delim: str = "{{",
    right_delim: str = "}}",
) -> Tree:
    """Parse template source into a :class:`Tree`.

    Raises:
        TemplateSyntaxError: If the source does not lex or parse.
    """
    tokens = Lexer(source, left_delim, right_delim, name=name or None).tokenize()
    return Parser(tokens, name=name, source=source).parse()
