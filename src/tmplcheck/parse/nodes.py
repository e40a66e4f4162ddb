"""Template syntax tree nodes.

The vocabulary is closed: these are the only node kinds the parser
produces and the only kinds the walker accepts. Nodes are immutable.

Every node tracks ``pos`` (character offset of the construct in the
template source) and ``lineno`` (1-based line).
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class Node:
    """Base class for all template nodes."""

    pos: int
    lineno: int


@dataclass(frozen=True, slots=True)
class Text(Node):
    """Plain text between actions."""

    value: str


@dataclass(frozen=True, slots=True)
class List(Node):
    """Sequence of nodes: a template body, or a branch's body."""

    nodes: Sequence[Node] = ()


@dataclass(frozen=True, slots=True)
class Dot(Node):
    """The cursor: {{.}}"""


@dataclass(frozen=True, slots=True)
class Nil(Node):
    """Untyped nil constant: {{nil}}"""


@dataclass(frozen=True, slots=True)
class Bool(Node):
    """Boolean constant: {{true}}"""

    value: bool


@dataclass(frozen=True, slots=True)
class Number(Node):
    """Numeric or character constant: {{42}}, {{0x1F}}, {{'a'}}"""

    text: str
    value: int | float | complex


@dataclass(frozen=True, slots=True)
class String(Node):
    """String constant: {{"hello"}}

    ``quoted`` keeps the original source spelling, ``text`` the unquoted value.
    """

    quoted: str
    text: str


@dataclass(frozen=True, slots=True)
class Field(Node):
    """Field chain on the cursor: {{.Foo.Bar}} -> ident ("Foo", "Bar")"""

    ident: Sequence[str]


@dataclass(frozen=True, slots=True)
class Identifier(Node):
    """Identifier: {{printf ...}}

    Identifiers name functions unless ``func`` is False. The parser only
    accepts identifiers that name a builtin function.
    """

    ident: str
    func: bool = True


@dataclass(frozen=True, slots=True)
class Variable(Node):
    """Variable with optional field chain: {{$x.Foo}} -> ident ("$x", "Foo")"""

    ident: Sequence[str]


@dataclass(frozen=True, slots=True)
class Chain(Node):
    """Field access on a non-field operand: {{(index .Items 0).Name}}"""

    node: Node
    field: Sequence[str] = ()


@dataclass(frozen=True, slots=True)
class Command(Node):
    """One pipeline stage: an operand followed by arguments."""

    args: Sequence[Node] = ()


@dataclass(frozen=True, slots=True)
class Pipe(Node):
    """Pipeline with optional variable declarations: {{$x := .A | printf "%v"}}"""

    is_assign: bool = False
    decl: Sequence[Variable] = ()
    cmds: Sequence[Command] = ()


@dataclass(frozen=True, slots=True)
class Action(Node):
    """Non-control action: {{.Name}}"""

    pipe: Pipe


@dataclass(frozen=True, slots=True)
class Branch(Node):
    """Common shape of if/range/with.

    Never produced on its own; If, Range and With are the concrete kinds.
    """

    pipe: Pipe
    body: List
    else_: List | None = None


@dataclass(frozen=True, slots=True)
class If(Branch):
    """Conditional: {{if .A}}...{{else}}...{{end}}"""


@dataclass(frozen=True, slots=True)
class Range(Branch):
    """Loop: {{range .Items}}...{{else}}...{{end}}"""


@dataclass(frozen=True, slots=True)
class With(Branch):
    """Cursor rebinding: {{with .User}}...{{else}}...{{end}}"""


@dataclass(frozen=True, slots=True)
class TemplateInvocation(Node):
    """Template invocation: {{template "name" .}}"""

    name: str
    pipe: Pipe | None = None


@dataclass(frozen=True, slots=True)
class Tree:
    """A parsed template.

    Attributes:
        name: Template name (usually its relative path).
        root: Top-level node list.
        defines: Templates declared with {{define}} or {{block}}, by name.
    """

    name: str
    root: List
    defines: Mapping[str, List] = field(default_factory=dict)


NODE_TYPES: tuple[type[Node], ...] = (
    Text,
    Action,
    Pipe,
    Command,
    Chain,
    Field,
    Identifier,
    Variable,
    Dot,
    Nil,
    Bool,
    Number,
    String,
    If,
    Range,
    With,
    TemplateInvocation,
    List,
)
