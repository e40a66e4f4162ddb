"""Pre-order traversal of template trees.

Each node is visited before its children. Children are visited in
source order:

- List: its nodes
- Action, TemplateInvocation: the pipe
- Pipe: declarations, then commands
- Command: arguments
- Chain: the inner operand
- If, Range, With: the pipe, the body, then the else list

Leaves (Text, Field, Identifier, Variable, Dot, Nil, Bool, Number,
String) have no children. A missing child (``None``) is skipped.

A bare :class:`Branch`, or any class outside the node vocabulary, is a
broken traversal assumption and raises :class:`TraversalError`.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator

from tmplcheck.exceptions import TraversalError
from tmplcheck.parse.nodes import (
    Action,
    Bool,
    Branch,
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
    Variable,
    With,
)

Visitor = Callable[[Node], None]


def _no_children(node: Node) -> Iterator[Node | None]:
    return iter(())


def _list_children(node: List) -> Iterator[Node | None]:
    yield from node.nodes


def _pipe_holder_children(node: Action | TemplateInvocation) -> Iterator[Node | None]:
    yield node.pipe


def _pipe_children(node: Pipe) -> Iterator[Node | None]:
    yield from node.decl
    yield from node.cmds


def _command_children(node: Command) -> Iterator[Node | None]:
    yield from node.args


def _chain_children(node: Chain) -> Iterator[Node | None]:
    yield node.node


def _branch_children(node: Branch) -> Iterator[Node | None]:
    yield node.pipe
    yield node.body
    yield node.else_


# Keyed by exact class: subclasses outside this table are rejected.
_CHILDREN: dict[type[Node], Callable[..., Iterator[Node | None]]] = {
    List: _list_children,
    Action: _pipe_holder_children,
    TemplateInvocation: _pipe_holder_children,
    Pipe: _pipe_children,
    Command: _command_children,
    Chain: _chain_children,
    If: _branch_children,
    Range: _branch_children,
    With: _branch_children,
    Text: _no_children,
    Field: _no_children,
    Identifier: _no_children,
    Variable: _no_children,
    Dot: _no_children,
    Nil: _no_children,
    Bool: _no_children,
    Number: _no_children,
    String: _no_children,
}


def walk(root: Node | None, visit: Visitor) -> None:
    """Call ``visit`` on every node reachable from ``root``, parents first.

    Raises:
        TraversalError: On a bare Branch or a node kind the walker does not know.
    """
    if root is None:
        return

    stack: list[Node | None] = [root]
    while stack:
        node = stack.pop()
        if node is None:
            continue
        children = _CHILDREN.get(type(node))
        if children is None:
            kind = type(node).__name__
            pos = getattr(node, "pos", "?")
            if type(node) is Branch:
                raise TraversalError(f"unexpected abstract branch node at offset {pos}")
            raise TraversalError(f"unknown template node kind {kind!r} at offset {pos}")
        visit(node)
        stack.extend(reversed(list(children(node))))
