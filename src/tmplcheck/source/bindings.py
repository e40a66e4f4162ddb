"""Capability registry: render APIs that tmplcheck recognizes.

Each :class:`Binding` names the receiver types and methods it matches
and carries the extractor that reads a matched call's template name and
supplied keys. The registry is a fixed tuple searched in order; the
first binding matching both type and method wins.

Registered:

- ``TEMPLATE_SET``: ``templates.Set.execute(name, out, args)``
- ``JINJA_TEMPLATE``: ``jinja2.Template.render(...)`` and friends.
  Recognized, but its keyword-style context is not analyzed; matching
  calls raise :class:`UnsupportedArgumentError`.
- ``STRING_TEMPLATE``: ``string.Template.substitute(...)``, likewise
  recognized but unsupported.

Argument shapes understood by ``TEMPLATE_SET``:

- name: a string literal, or a local name bound to one
- args: a dict display with constant keys, ``dict(a=..., b=...)``, a
  keyword-only call to a class defined in the analyzed package, ``None``,
  or a local name bound (one level) to one of these

Aliasing is followed one level only: ``ctx = other`` where ``other`` is
itself a name is rejected, as is any value mutated in place between its
assignment and the call.
"""

from __future__ import annotations

import ast
from collections.abc import Callable
from dataclasses import dataclass

from tmplcheck.exceptions import UnsupportedArgumentError
from tmplcheck.source.scopes import ModuleNames, NameBinding, Scope

_DICT_CONSTRUCTORS = frozenset({"dict", "builtins.dict"})


@dataclass(frozen=True, slots=True)
class ExtractContext:
    """What an extractor may consult about a call site.

    Attributes:
        scope: Innermost scope enclosing the call.
        names: Import table of the call's module.
        classes: Qualified names of classes defined in the analyzed package.
        lineno: Line of the call.
    """

    scope: Scope
    names: ModuleNames
    classes: frozenset[str]
    lineno: int

    def resolve(self, name: ast.Name) -> NameBinding:
        """Binding of ``name`` that has a plain initializer, unmutated up to the call."""
        binding = self.scope.lookup(name.id, self.lineno)
        if binding is None or binding.value is None:
            raise UnsupportedArgumentError(f"{name.id!r} is not bound to a literal value")
        if self.scope.is_mutated(binding, self.lineno):
            raise UnsupportedArgumentError(f"{name.id!r} is modified after assignment")
        return binding


Extractor = Callable[[ast.Call, ExtractContext], tuple[str, tuple[str, ...]]]


@dataclass(frozen=True, slots=True)
class Binding:
    """A recognized render API.

    Attributes:
        name: Registry name, for diagnostics.
        receiver_types: Qualified type names of the receiver.
        methods: Method names that render.
        extract: Returns ``(template_name, supplied_keys)`` for a matched
            call, or raises UnsupportedArgumentError.
    """

    name: str
    receiver_types: frozenset[str]
    methods: frozenset[str]
    extract: Extractor

    def matches(self, type_name: str, method: str) -> bool:
        return type_name in self.receiver_types and method in self.methods


def _describe(expr: ast.expr) -> str:
    text = ast.unparse(expr)
    return text if len(text) <= 40 else text[:37] + "..."


def _argument(call: ast.Call, position: int, keyword: str) -> ast.expr | None:
    """Positional or keyword argument of a call."""
    for arg in call.args[: position + 1]:
        if isinstance(arg, ast.Starred):
            raise UnsupportedArgumentError("argument unpacking with *")
    if len(call.args) > position:
        return call.args[position]
    for kw in call.keywords:
        if kw.arg is None:
            raise UnsupportedArgumentError("argument unpacking with **")
        if kw.arg == keyword:
            return kw.value
    return None


def template_name(expr: ast.expr, context: ExtractContext) -> str:
    """Template name from a string literal or a name bound to one."""
    if isinstance(expr, ast.Constant) and isinstance(expr.value, str):
        return expr.value
    if isinstance(expr, ast.Name):
        value = context.resolve(expr).value
        if isinstance(value, ast.Constant) and isinstance(value.value, str):
            return value.value
        raise UnsupportedArgumentError(f"template name {expr.id!r} is not bound to a string literal")
    raise UnsupportedArgumentError(f"template name {_describe(expr)!r} is not a string literal")


def supplied_keys(expr: ast.expr, context: ExtractContext, *, follow_names: bool = True) -> tuple[str, ...]:
    """Keys supplied by a render call's data argument."""
    if isinstance(expr, ast.Constant) and expr.value is None:
        return ()

    if isinstance(expr, ast.Dict):
        keys: list[str] = []
        for key in expr.keys:
            if key is None:
                raise UnsupportedArgumentError("dict unpacking with **")
            if not isinstance(key, ast.Constant):
                raise UnsupportedArgumentError(f"dynamic dict key {_describe(key)!r}")
            keys.append(str(key.value))
        return tuple(keys)

    if isinstance(expr, ast.Call):
        callee = context.names.qualify(expr.func)
        if callee in _DICT_CONSTRUCTORS or callee in context.classes:
            if expr.args:
                raise UnsupportedArgumentError(f"positional arguments to {callee}()")
            keys = []
            for kw in expr.keywords:
                if kw.arg is None:
                    raise UnsupportedArgumentError(f"keyword unpacking with ** in {callee}()")
                keys.append(kw.arg)
            return tuple(keys)
        raise UnsupportedArgumentError(f"function call {_describe(expr)!r}")

    if isinstance(expr, ast.Name):
        if not follow_names:
            raise UnsupportedArgumentError(f"{expr.id!r} is an alias of another name")
        binding = context.resolve(expr)
        return supplied_keys(binding.value, context, follow_names=False)

    raise UnsupportedArgumentError(f"cannot determine keys of {_describe(expr)!r}")


def _extract_template_set(call: ast.Call, context: ExtractContext) -> tuple[str, tuple[str, ...]]:
    name_arg = _argument(call, 0, "name")
    args_arg = _argument(call, 2, "args")
    if name_arg is None:
        raise UnsupportedArgumentError("missing template name argument")
    if args_arg is None:
        raise UnsupportedArgumentError("missing args argument")
    return template_name(name_arg, context), supplied_keys(args_arg, context)


def _unsupported_api(api: str) -> Extractor:
    def extract(call: ast.Call, context: ExtractContext) -> tuple[str, tuple[str, ...]]:
        raise UnsupportedArgumentError(f"{api} is recognized but its arguments are not analyzed")

    return extract


TEMPLATE_SET = Binding(
    name="TEMPLATE_SET",
    receiver_types=frozenset({"templates.Set", "templates.set.Set"}),
    methods=frozenset({"execute"}),
    extract=_extract_template_set,
)

JINJA_TEMPLATE = Binding(
    name="JINJA_TEMPLATE",
    receiver_types=frozenset({"jinja2.Template", "jinja2.environment.Template"}),
    methods=frozenset({"render", "render_async", "stream", "generate"}),
    extract=_unsupported_api("jinja2.Template"),
)

STRING_TEMPLATE = Binding(
    name="STRING_TEMPLATE",
    receiver_types=frozenset({"string.Template"}),
    methods=frozenset({"substitute", "safe_substitute"}),
    extract=_unsupported_api("string.Template"),
)

# Order matters: first match wins.
REGISTRY: tuple[Binding, ...] = (TEMPLATE_SET, JINJA_TEMPLATE, STRING_TEMPLATE)


def match(type_name: str, method: str) -> Binding | None:
    """First registered binding matching ``type_name`` and ``method``."""
    for binding in REGISTRY:
        if binding.matches(type_name, method):
            return binding
    return None
