"""Template parser.

Builds an immutable node tree from the lexer's token list. Follows
text/template semantics:

- Identifiers name functions and must be builtins (no function map)
- Variables must be declared before use; declarations persist until
  the enclosing control structure's {{end}}
- ``{{else if}}`` / ``{{else with}}`` nest a new branch in the else list
- ``{{define}}`` and ``{{block}}`` bodies are separate trees

Spaces are tokens, so the parser navigates with explicit skip-space
lookahead and can rewind to any earlier token index.
"""

from __future__ import annotations

import ast
from collections.abc import Sequence
from dataclasses import dataclass

from tmplcheck._types import Token, TokenType
from tmplcheck.exceptions import ErrorCode, TemplateSyntaxError
from tmplcheck.parse.nodes import (
    Action,
    Bool,
    Chain,
    Command,
    Dot,
    Field,
    Identifier,
    If,
    List,
    Nil,
    Node,
    Number,
    Pipe,
    Range,
    String,
    TemplateInvocation,
    Text,
    Tree,
    Variable,
    With,
)

# Functions available to every template. No user-supplied function map is
# supported, so any identifier that parses is one of these.
BUILTIN_FUNCTIONS: frozenset[str] = frozenset(
    {
        "and",
        "call",
        "html",
        "index",
        "slice",
        "js",
        "len",
        "not",
        "or",
        "print",
        "printf",
        "println",
        "urlquery",
        "eq",
        "ge",
        "gt",
        "le",
        "lt",
        "ne",
    }
)

# Tokens that can start a pipeline command.
_OPERAND_STARTS = frozenset(
    {
        TokenType.BOOL,
        TokenType.CHAR_CONSTANT,
        TokenType.DOT,
        TokenType.FIELD,
        TokenType.IDENTIFIER,
        TokenType.NUMBER,
        TokenType.NIL,
        TokenType.RAW_STRING,
        TokenType.STRING,
        TokenType.VARIABLE,
        TokenType.LEFT_PAREN,
    }
)

# Values that cannot be executed as a later pipeline stage.
_NON_EXECUTABLE = (Bool, Dot, Nil, Number, String)


@dataclass(frozen=True, slots=True)
class _End:
    """{{end}} marker; closes a list, never stored in the tree."""

    pos: int
    lineno: int


@dataclass(frozen=True, slots=True)
class _Else:
    """{{else}} marker; closes a list, never stored in the tree."""

    pos: int
    lineno: int


def _unquote(text: str) -> str:
    if text.startswith("`"):
        return text[1:-1].replace("\r", "")
    value = ast.literal_eval(text)
    if not isinstance(value, str):
        raise ValueError(text)
    return value


def _parse_number(text: str, type_: TokenType) -> int | float | complex:
    if type_ is TokenType.CHAR_CONSTANT:
        value = _unquote('"' + text[1:-1] + '"') if text.startswith("'\\") else text[1:-1]
        if len(value) != 1:
            raise ValueError(text)
        return ord(value)

    cleaned = text.replace("_", "")
    if cleaned.endswith("i"):
        return complex(0, float(_parse_number(cleaned[:-1], TokenType.NUMBER)))

    digits = cleaned.lstrip("+-")
    try:
        return int(cleaned, 0)
    except ValueError:
        pass
    if digits[:1] == "0" and digits.isdigit():
        try:
            return int(cleaned, 8)
        except ValueError:
            pass
    if digits[:2] in ("0x", "0X"):
        return float.fromhex(cleaned)
    return float(cleaned)


class Parser:
    """Parse a token list into a :class:`Tree`.

    Example:
        >>> tokens = Lexer("{{.Name}}").tokenize()
        >>> tree = Parser(tokens, name="hello.html").parse()
        >>> tree.root.nodes[0].pipe.cmds[0].args[0].ident
        ('Name',)
    """

    def __init__(self, tokens: Sequence[Token], name: str = "", source: str | None = None):
        self._tokens = tokens
        self._name = name
        self._source = source
        self._index = 0
        self._vars: list[str] = ["$"]
        self._defines: dict[str, List] = {}

    def parse(self) -> Tree:
        """Parse the whole token stream."""
        nodes: list[Node] = []
        start = self._peek()
        while self._peek().type is not TokenType.EOF:
            if self._peek().type is TokenType.LEFT_DELIM:
                mark = self._index
                self._next()
                if self._next_non_space().type is TokenType.DEFINE:
                    self._parse_definition()
                    continue
                self._index = mark
            node = self._text_or_action()
            if isinstance(node, (_End, _Else)):
                raise self._error(f"unexpected {self._describe(node)}", node.pos)
            nodes.append(node)
        root = List(pos=start.pos, lineno=start.lineno, nodes=tuple(nodes))
        return Tree(name=self._name, root=root, defines=dict(self._defines))

    # ------------------------------------------------------------------
    # Token navigation
    # ------------------------------------------------------------------

    def _peek(self) -> Token:
        return self._tokens[self._index]

    def _next(self) -> Token:
        token = self._tokens[self._index]
        if token.type is not TokenType.EOF:
            self._index += 1
        return token

    def _backup(self) -> None:
        self._index -= 1

    def _skip_space(self) -> None:
        while self._tokens[self._index].type is TokenType.SPACE:
            self._index += 1

    def _next_non_space(self) -> Token:
        self._skip_space()
        return self._next()

    def _peek_non_space(self) -> Token:
        self._skip_space()
        return self._peek()

    def _expect(self, expected: TokenType, context: str) -> Token:
        token = self._next_non_space()
        if token.type is not expected:
            raise self._unexpected(token, context)
        return token

    # ------------------------------------------------------------------
    # Errors
    # ------------------------------------------------------------------

    def _error(
        self,
        message: str,
        pos: int,
        code: ErrorCode = ErrorCode.UNEXPECTED_TOKEN,
    ) -> TemplateSyntaxError:
        lineno = None
        col_offset = None
        if self._source is not None:
            lineno = self._source.count("\n", 0, pos) + 1
            col_offset = pos - (self._source.rfind("\n", 0, pos) + 1)
        return TemplateSyntaxError(
            message,
            lineno=lineno,
            name=self._name or None,
            source=self._source,
            col_offset=col_offset,
            code=code,
        )

    def _unexpected(self, token: Token, context: str) -> TemplateSyntaxError:
        return self._error(f"unexpected {token} in {context}", token.pos)

    @staticmethod
    def _describe(node: _End | _Else) -> str:
        return "{{end}}" if isinstance(node, _End) else "{{else}}"

    # ------------------------------------------------------------------
    # Lists and actions
    # ------------------------------------------------------------------

    def _item_list(self) -> tuple[List, _End | _Else]:
        """Parse nodes until {{end}} or {{else}}; return the list and the marker."""
        start = self._peek_non_space()
        nodes: list[Node] = []
        while self._peek_non_space().type is not TokenType.EOF:
            node = self._text_or_action()
            if isinstance(node, (_End, _Else)):
                return List(pos=start.pos, lineno=start.lineno, nodes=tuple(nodes)), node
            nodes.append(node)
        raise self._error("unexpected EOF", self._peek().pos, ErrorCode.MISSING_VALUE)

    def _text_or_action(self) -> Node | _End | _Else:
        token = self._next_non_space()
        if token.type is TokenType.TEXT:
            return Text(pos=token.pos, lineno=token.lineno, value=token.value)
        if token.type is TokenType.LEFT_DELIM:
            return self._action()
        raise self._unexpected(token, "input")

    def _action(self) -> Node | _End | _Else:
        token = self._next_non_space()
        handler = self._CONTROL_PARSERS.get(token.type)
        if handler is not None:
            return getattr(self, handler)(token)
        if token.type in (TokenType.BREAK, TokenType.CONTINUE):
            raise self._error(
                f"{{{{{token.value}}}}} is not supported", token.pos, ErrorCode.UNSUPPORTED_ACTION
            )
        self._backup()
        start = self._peek()
        # Variables declared here persist until the enclosing {{end}}.
        pipe = self._pipeline("command", TokenType.RIGHT_DELIM)
        return Action(pos=start.pos, lineno=start.lineno, pipe=pipe)

    _CONTROL_PARSERS: dict[TokenType, str] = {
        TokenType.BLOCK: "_parse_block",
        TokenType.ELSE: "_parse_else",
        TokenType.END: "_parse_end",
        TokenType.IF: "_parse_if",
        TokenType.RANGE: "_parse_range",
        TokenType.TEMPLATE: "_parse_template",
        TokenType.WITH: "_parse_with",
    }

    # ------------------------------------------------------------------
    # Control structures
    # ------------------------------------------------------------------

    def _parse_end(self, token: Token) -> _End:
        end = self._expect(TokenType.RIGHT_DELIM, "end")
        return _End(pos=end.pos, lineno=end.lineno)

    def _parse_else(self, token: Token) -> _Else:
        peek = self._peek_non_space()
        # {{else if ...}} and {{else with ...}} leave the keyword pending.
        if peek.type in (TokenType.IF, TokenType.WITH):
            return _Else(pos=peek.pos, lineno=peek.lineno)
        end = self._expect(TokenType.RIGHT_DELIM, "else")
        return _Else(pos=end.pos, lineno=end.lineno)

    def _parse_control(self, context: str) -> tuple[Pipe, List, List | None]:
        saved_vars = len(self._vars)
        try:
            pipe = self._pipeline(context, TokenType.RIGHT_DELIM)
            body, marker = self._item_list()
            else_: List | None = None
            if isinstance(marker, _Else):
                # {{if a}}_{{else if b}}_{{end}} is {{if a}}_{{else}}{{if b}}_{{end}}{{end}}:
                # the nested branch consumes the single {{end}}.
                nested = {"if": TokenType.IF, "with": TokenType.WITH}.get(context)
                if nested is not None and self._peek().type is nested:
                    keyword = self._next()
                    branch = self._parse_if(keyword) if context == "if" else self._parse_with(keyword)
                    else_ = List(pos=marker.pos, lineno=marker.lineno, nodes=(branch,))
                else:
                    else_, marker = self._item_list()
                    if not isinstance(marker, _End):
                        raise self._error(
                            f"expected end; found {self._describe(marker)}", marker.pos
                        )
            return pipe, body, else_
        finally:
            del self._vars[saved_vars:]

    def _parse_if(self, token: Token) -> If:
        pipe, body, else_ = self._parse_control("if")
        return If(pos=pipe.pos, lineno=pipe.lineno, pipe=pipe, body=body, else_=else_)

    def _parse_range(self, token: Token) -> Range:
        pipe, body, else_ = self._parse_control("range")
        return Range(pos=pipe.pos, lineno=pipe.lineno, pipe=pipe, body=body, else_=else_)

    def _parse_with(self, token: Token) -> With:
        pipe, body, else_ = self._parse_control("with")
        return With(pos=pipe.pos, lineno=pipe.lineno, pipe=pipe, body=body, else_=else_)

    def _parse_template_name(self, token: Token, context: str) -> str:
        if token.type not in (TokenType.STRING, TokenType.RAW_STRING):
            raise self._unexpected(token, context)
        try:
            return _unquote(token.value)
        except (ValueError, SyntaxError):
            raise self._error(f"invalid template name {token.value}", token.pos) from None

    def _parse_template(self, token: Token) -> TemplateInvocation:
        context = "template clause"
        name_token = self._next_non_space()
        name = self._parse_template_name(name_token, context)
        pipe = None
        if self._next_non_space().type is not TokenType.RIGHT_DELIM:
            self._backup()
            pipe = self._pipeline(context, TokenType.RIGHT_DELIM)
        return TemplateInvocation(
            pos=name_token.pos, lineno=name_token.lineno, name=name, pipe=pipe
        )

    def _parse_block(self, token: Token) -> TemplateInvocation:
        context = "block clause"
        name_token = self._next_non_space()
        name = self._parse_template_name(name_token, context)
        pipe = self._pipeline(context, TokenType.RIGHT_DELIM)
        self._add_define(name, context, name_token)
        return TemplateInvocation(
            pos=name_token.pos, lineno=name_token.lineno, name=name, pipe=pipe
        )

    def _parse_definition(self) -> None:
        """Parse {{define "name"}}...{{end}}; the 'define' keyword is consumed."""
        context = "define clause"
        name_token = self._next_non_space()
        name = self._parse_template_name(name_token, context)
        self._expect(TokenType.RIGHT_DELIM, context)
        self._add_define(name, context, name_token)

    def _add_define(self, name: str, context: str, token: Token) -> None:
        saved_vars = self._vars
        self._vars = ["$"]
        try:
            body, marker = self._item_list()
        finally:
            self._vars = saved_vars
        if not isinstance(marker, _End):
            raise self._error(f"unexpected {self._describe(marker)} in {context}", marker.pos)

        existing = self._defines.get(name)
        if existing is not None and _is_empty(existing):
            existing = None
        if existing is not None:
            if _is_empty(body):
                return
            raise self._error(f"multiple definition of template {name!r}", token.pos)
        self._defines[name] = body

    # ------------------------------------------------------------------
    # Pipelines
    # ------------------------------------------------------------------

    def _pipeline(self, context: str, end: TokenType) -> Pipe:
        start = self._peek_non_space()
        is_assign = False
        decl: list[Variable] = []

        while self._peek_non_space().type is TokenType.VARIABLE:
            mark = self._index
            variable = self._next()
            following = self._peek_non_space()
            if following.type in (TokenType.ASSIGN, TokenType.DECLARE):
                is_assign = following.type is TokenType.ASSIGN
                self._next_non_space()
                decl.append(
                    Variable(pos=variable.pos, lineno=variable.lineno, ident=(variable.value,))
                )
                self._vars.append(variable.value)
                break
            if following.type is TokenType.CHAR and following.value == ",":
                self._next_non_space()
                decl.append(
                    Variable(pos=variable.pos, lineno=variable.lineno, ident=(variable.value,))
                )
                self._vars.append(variable.value)
                if context == "range" and len(decl) < 2:
                    if self._peek_non_space().type in (
                        TokenType.VARIABLE,
                        TokenType.RIGHT_DELIM,
                        TokenType.RIGHT_PAREN,
                    ):
                        continue
                    raise self._error("range can only initialize variables", following.pos)
                raise self._error(f"too many declarations in {context}", following.pos)
            # Not a declaration: $x is the first operand.
            self._index = mark
            break

        cmds: list[Command] = []
        while True:
            token = self._next_non_space()
            if token.type is end:
                break
            if token.type in _OPERAND_STARTS:
                self._backup()
                cmds.append(self._command())
            else:
                raise self._unexpected(token, context)

        pipe = Pipe(
            pos=start.pos,
            lineno=start.lineno,
            is_assign=is_assign,
            decl=tuple(decl),
            cmds=tuple(cmds),
        )
        self._check_pipeline(pipe, context)
        return pipe

    def _check_pipeline(self, pipe: Pipe, context: str) -> None:
        if not pipe.cmds:
            raise self._error(f"missing value for {context}", pipe.pos, ErrorCode.MISSING_VALUE)
        for stage, cmd in enumerate(pipe.cmds[1:], start=2):
            if isinstance(cmd.args[0], _NON_EXECUTABLE):
                raise self._error(
                    f"non executable command in pipeline stage {stage}", cmd.pos
                )

    def _command(self) -> Command:
        start = self._peek_non_space()
        args: list[Node] = []
        while True:
            self._skip_space()
            operand = self._operand()
            if operand is not None:
                args.append(operand)
            token = self._next()
            if token.type is TokenType.SPACE:
                continue
            if token.type in (TokenType.RIGHT_DELIM, TokenType.RIGHT_PAREN):
                self._backup()
            elif token.type is not TokenType.PIPE:
                raise self._unexpected(token, "operand")
            break
        if not args:
            raise self._error("empty command", start.pos, ErrorCode.MISSING_VALUE)
        return Command(pos=start.pos, lineno=start.lineno, args=tuple(args))

    def _operand(self) -> Node | None:
        node = self._term()
        if node is None or self._peek().type is not TokenType.FIELD:
            return node

        fields: list[str] = []
        while self._peek().type is TokenType.FIELD:
            fields.append(self._next().value[1:])

        # Fields on fields and variables fold into one chain; other
        # operands keep a Chain node.
        if isinstance(node, Field):
            return Field(pos=node.pos, lineno=node.lineno, ident=(*node.ident, *fields))
        if isinstance(node, Variable):
            return Variable(pos=node.pos, lineno=node.lineno, ident=(*node.ident, *fields))
        if isinstance(node, _NON_EXECUTABLE):
            raise self._error(f"unexpected . after term {type(node).__name__}", node.pos)
        return Chain(pos=node.pos, lineno=node.lineno, node=node, field=tuple(fields))

    def _term(self) -> Node | None:
        token = self._next_non_space()
        type_ = token.type
        if type_ is TokenType.IDENTIFIER:
            if token.value not in BUILTIN_FUNCTIONS:
                raise self._error(
                    f"function {token.value!r} not defined",
                    token.pos,
                    ErrorCode.UNDEFINED_FUNCTION,
                )
            return Identifier(pos=token.pos, lineno=token.lineno, ident=token.value)
        if type_ is TokenType.DOT:
            return Dot(pos=token.pos, lineno=token.lineno)
        if type_ is TokenType.NIL:
            return Nil(pos=token.pos, lineno=token.lineno)
        if type_ is TokenType.VARIABLE:
            return self._use_var(token)
        if type_ is TokenType.FIELD:
            return Field(pos=token.pos, lineno=token.lineno, ident=(token.value[1:],))
        if type_ is TokenType.BOOL:
            return Bool(pos=token.pos, lineno=token.lineno, value=token.value == "true")
        if type_ in (TokenType.NUMBER, TokenType.CHAR_CONSTANT):
            try:
                value = _parse_number(token.value, type_)
            except (ValueError, SyntaxError, OverflowError):
                raise self._error(
                    f"illegal number syntax: {token.value!r}", token.pos, ErrorCode.BAD_NUMBER
                ) from None
            return Number(pos=token.pos, lineno=token.lineno, text=token.value, value=value)
        if type_ is TokenType.LEFT_PAREN:
            return self._pipeline("parenthesized pipeline", TokenType.RIGHT_PAREN)
        if type_ in (TokenType.STRING, TokenType.RAW_STRING):
            try:
                text = _unquote(token.value)
            except (ValueError, SyntaxError):
                raise self._error(f"invalid string {token.value}", token.pos) from None
            return String(pos=token.pos, lineno=token.lineno, quoted=token.value, text=text)
        self._backup()
        return None

    def _use_var(self, token: Token) -> Variable:
        name = token.value
        if name not in self._vars:
            raise self._error(
                f"undefined variable {name!r}", token.pos, ErrorCode.UNDEFINED_VARIABLE
            )
        return Variable(pos=token.pos, lineno=token.lineno, ident=(name,))


def _is_empty(body: List) -> bool:
    """A define body is empty when it holds only whitespace text."""
    return all(isinstance(n, Text) and not n.value.strip() for n in body.nodes)
