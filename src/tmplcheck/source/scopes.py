"""Static name and type resolution for host modules.

Python carries no static types, so a receiver's type is recovered from
what the source states about it:

- an annotation on the binding (``s: templates.Set``, ``s: Set | None``)
- a constructor call on assignment (``s = templates.Set()``)

Names are qualified through the module's import table, so ``Set`` after
``from templates import Set`` and ``templates.Set`` after ``import
templates`` both resolve to ``templates.Set``.

Scopes mirror Python's own: module, class body, function body. A lookup
returns the nearest binding at or before a line. A function body falls
back to the module, skipping class bodies. A function body runs after
the module has finished executing, so from inside a function the
module's last binding of a name is the one seen, wherever it sits.
"""

from __future__ import annotations

import ast
import builtins
from bisect import bisect_right
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

# In-place mutators of mappings and lists.
MUTATING_METHODS = frozenset({"update", "setdefault", "pop", "clear", "popitem", "__setitem__"})

_OPTIONAL_WRAPPERS = frozenset({"typing.Optional", "typing.Union", "typing.Annotated"})
_BUILTIN_NAMES = frozenset(dir(builtins))


class ModuleNames:
    """Import table and top-level definitions of one module.

    Example:
        >>> names = ModuleNames.from_source("from templates import Set as S", "app")
        >>> names.qualify(ast.parse("S").body[0].value)
        'templates.Set'
    """

    __slots__ = ("module", "package", "imports", "definitions")

    def __init__(self, module: str, package: str, tree: ast.Module):
        self.module = module
        self.package = package
        self.imports: dict[str, str] = {}
        self.definitions: set[str] = set()

        for node in tree.body:
            if isinstance(node, (ast.ClassDef, ast.FunctionDef, ast.AsyncFunctionDef)):
                self.definitions.add(node.name)
        for node in ast.walk(tree):
            if isinstance(node, ast.Import):
                self._add_import(node)
            elif isinstance(node, ast.ImportFrom):
                self._add_import_from(node)

    @classmethod
    def from_source(cls, source: str, module: str, *, is_package: bool = False) -> ModuleNames:
        package = module if is_package else module.rpartition(".")[0]
        return cls(module, package, ast.parse(source))

    def _add_import(self, node: ast.Import) -> None:
        for alias in node.names:
            if alias.asname:
                self.imports[alias.asname] = alias.name
            else:
                # ``import a.b`` binds ``a``.
                top = alias.name.partition(".")[0]
                self.imports[top] = top

    def _add_import_from(self, node: ast.ImportFrom) -> None:
        base = self.resolve_relative(node.module, node.level)
        if base is None:
            return
        for alias in node.names:
            if alias.name == "*":
                continue
            target = f"{base}.{alias.name}" if base else alias.name
            self.imports[alias.asname or alias.name] = target

    def resolve_relative(self, module: str | None, level: int) -> str | None:
        """Absolute name of ``from <level dots><module> import ...``."""
        if level == 0:
            return module or ""
        parts = self.package.split(".") if self.package else []
        # Climbing past the top-level package is an import error.
        if level > len(parts):
            return None
        parts = parts[: len(parts) - (level - 1)]
        if module:
            parts.append(module)
        return ".".join(parts)

    def qualify(self, expr: ast.expr) -> str | None:
        """Dotted name of a name or attribute chain, resolved through imports."""
        if isinstance(expr, ast.Name):
            name = expr.id
            if name in self.imports:
                return self.imports[name]
            if name in self.definitions:
                return f"{self.module}.{name}" if self.module else name
            return name
        if isinstance(expr, ast.Attribute):
            base = self.qualify(expr.value)
            return f"{base}.{expr.attr}" if base else None
        return None

    def annotation_type(self, annotation: ast.expr | None) -> str | None:
        """Type name stated by an annotation, with Optional/None unions unwrapped."""
        if annotation is None:
            return None
        if isinstance(annotation, ast.Constant) and isinstance(annotation.value, str):
            try:
                parsed = ast.parse(annotation.value, mode="eval")
            except SyntaxError:
                return None
            return self.annotation_type(parsed.body)
        if isinstance(annotation, ast.BinOp) and isinstance(annotation.op, ast.BitOr):
            members = [m for m in _union_members(annotation) if not _is_none(m)]
            return self.annotation_type(members[0]) if len(members) == 1 else None
        if isinstance(annotation, ast.Subscript):
            wrapper = self.qualify(annotation.value)
            if wrapper in _OPTIONAL_WRAPPERS:
                args = annotation.slice
                members = list(args.elts) if isinstance(args, ast.Tuple) else [args]
                if wrapper == "typing.Annotated":
                    return self.annotation_type(members[0])
                members = [m for m in members if not _is_none(m)]
                return self.annotation_type(members[0]) if len(members) == 1 else None
            return wrapper
        return self.qualify(annotation)


def _union_members(expr: ast.expr) -> Iterable[ast.expr]:
    if isinstance(expr, ast.BinOp) and isinstance(expr.op, ast.BitOr):
        yield from _union_members(expr.left)
        yield from _union_members(expr.right)
    else:
        yield expr


def _is_none(expr: ast.expr) -> bool:
    return (isinstance(expr, ast.Constant) and expr.value is None) or (
        isinstance(expr, ast.Name) and expr.id == "None"
    )


class BindingKind(Enum):
    ASSIGN = "assign"
    PARAMETER = "parameter"
    OTHER = "other"


@dataclass(frozen=True, slots=True)
class NameBinding:
    """One place where a name is bound.

    ``value`` is the initializer for simple assignments (including
    walrus); ``annotation`` is set for annotated assignments and
    annotated parameters. Other bindings (loop targets, imports, tuple
    unpacking, ...) carry neither.
    """

    name: str
    lineno: int
    kind: BindingKind
    value: ast.expr | None = None
    annotation: ast.expr | None = None


class ScopeKind(Enum):
    MODULE = "module"
    CLASS = "class"
    FUNCTION = "function"


class Scope:
    """Bindings and in-place mutations of one module, class or function body."""

    __slots__ = ("kind", "parent", "_bindings", "_lines", "_mutations", "_globals")

    def __init__(self, kind: ScopeKind, parent: Scope | None = None):
        self.kind = kind
        self.parent = parent
        self._bindings: dict[str, list[NameBinding]] = defaultdict(list)
        self._lines: dict[str, list[int]] = defaultdict(list)
        self._mutations: dict[str, list[int]] = defaultdict(list)
        self._globals: set[str] = set()

    @classmethod
    def for_module(cls, tree: ast.Module) -> Scope:
        scope = cls(ScopeKind.MODULE)
        scope._collect(tree.body)
        return scope

    @classmethod
    def for_class(cls, node: ast.ClassDef, parent: Scope) -> Scope:
        scope = cls(ScopeKind.CLASS, parent)
        scope._collect(node.body)
        return scope

    @classmethod
    def for_function(
        cls,
        node: ast.FunctionDef | ast.AsyncFunctionDef | ast.Lambda,
        parent: Scope,
    ) -> Scope:
        scope = cls(ScopeKind.FUNCTION, parent)
        args = node.args
        for arg in (*args.posonlyargs, *args.args, *args.kwonlyargs):
            scope.add(NameBinding(arg.arg, node.lineno, BindingKind.PARAMETER, annotation=arg.annotation))
        for arg in (args.vararg, args.kwarg):
            if arg is not None:
                scope.add(NameBinding(arg.arg, node.lineno, BindingKind.OTHER))
        if isinstance(node, ast.Lambda):
            scope._collect([node.body])
        else:
            scope._collect(node.body)
        return scope

    def add(self, binding: NameBinding) -> None:
        # Keep both lists ordered by line for bisection.
        lines = self._lines[binding.name]
        index = bisect_right(lines, binding.lineno)
        lines.insert(index, binding.lineno)
        self._bindings[binding.name].insert(index, binding)

    def add_mutation(self, name: str, lineno: int) -> None:
        self._mutations[name].append(lineno)

    def _collect(self, body: Iterable[ast.AST]) -> None:
        collector = _BindingCollector(self)
        for stmt in body:
            collector.visit(stmt)

    def lookup(self, name: str, lineno: int | None) -> NameBinding | None:
        """Nearest binding of ``name`` at or before ``lineno``.

        A name bound anywhere in a function body is local to it; if no
        binding precedes ``lineno`` there is no usable binding. Names not
        bound locally are looked up in the enclosing non-class scope.
        Leaving a function body drops the line bound: the enclosing
        scope's last binding is used. ``lineno=None`` means no bound.
        """
        if name in self._globals and self.parent is not None:
            return self._module().lookup(name, None)
        lines = self._lines.get(name)
        if lines:
            index = len(lines) if lineno is None else bisect_right(lines, lineno)
            return self._bindings[name][index - 1] if index else None
        parent = self.parent
        if self.kind is not ScopeKind.MODULE:
            while parent is not None and parent.kind is ScopeKind.CLASS:
                parent = parent.parent
        if parent is None:
            return None
        return parent.lookup(name, None if self.kind is ScopeKind.FUNCTION else lineno)

    def is_mutated(self, binding: NameBinding, lineno: int) -> bool:
        """True if ``binding``'s value is changed in place before it is used at ``lineno``.

        For a binding reached from inside a function body, every later
        mutation in the binding's own scope counts.
        """
        scope, crossed_function = self._owner(binding)
        mutations = scope._mutations.get(binding.name, ())
        if crossed_function:
            return any(binding.lineno <= line for line in mutations)
        return any(binding.lineno <= line <= lineno for line in mutations)

    def _owner(self, binding: NameBinding) -> tuple[Scope, bool]:
        scope: Scope | None = self
        crossed_function = False
        while scope is not None:
            if binding in scope._bindings.get(binding.name, ()):
                return scope, crossed_function
            crossed_function = crossed_function or scope.kind is ScopeKind.FUNCTION
            scope = scope.parent
        return self, False

    def _module(self) -> Scope:
        scope = self
        while scope.parent is not None:
            scope = scope.parent
        return scope


class _BindingCollector(ast.NodeVisitor):
    """Record the bindings a body makes, without entering nested scopes."""

    def __init__(self, scope: Scope):
        self.scope = scope

    def _bind_target(self, target: ast.expr, lineno: int, value: ast.expr | None) -> None:
        if isinstance(target, ast.Name):
            kind = BindingKind.ASSIGN if value is not None else BindingKind.OTHER
            self.scope.add(NameBinding(target.id, lineno, kind, value=value))
        elif isinstance(target, (ast.Tuple, ast.List)):
            for element in target.elts:
                self._bind_target(element, lineno, None)
        elif isinstance(target, ast.Starred):
            self._bind_target(target.value, lineno, None)
        elif isinstance(target, ast.Subscript) and isinstance(target.value, ast.Name):
            self.scope.add_mutation(target.value.id, lineno)

    def visit_Assign(self, node: ast.Assign) -> None:
        self.visit(node.value)
        for target in node.targets:
            self._bind_target(target, node.lineno, node.value)

    def visit_AnnAssign(self, node: ast.AnnAssign) -> None:
        if node.value is not None:
            self.visit(node.value)
        if isinstance(node.target, ast.Name):
            self.scope.add(
                NameBinding(
                    node.target.id,
                    node.lineno,
                    BindingKind.ASSIGN,
                    value=node.value,
                    annotation=node.annotation,
                )
            )
        else:
            self._bind_target(node.target, node.lineno, None)

    def visit_AugAssign(self, node: ast.AugAssign) -> None:
        self.visit(node.value)
        target = node.target
        if isinstance(target, ast.Subscript):
            target = target.value
        if isinstance(target, ast.Name):
            self.scope.add_mutation(target.id, node.lineno)

    def visit_Delete(self, node: ast.Delete) -> None:
        for target in node.targets:
            if isinstance(target, ast.Subscript) and isinstance(target.value, ast.Name):
                self.scope.add_mutation(target.value.id, node.lineno)

    def visit_NamedExpr(self, node: ast.NamedExpr) -> None:
        self.visit(node.value)
        self.scope.add(NameBinding(node.target.id, node.lineno, BindingKind.ASSIGN, value=node.value))

    def visit_For(self, node: ast.For | ast.AsyncFor) -> None:
        self._bind_target(node.target, node.lineno, None)
        self.generic_visit(node)

    visit_AsyncFor = visit_For

    def visit_With(self, node: ast.With | ast.AsyncWith) -> None:
        for item in node.items:
            if item.optional_vars is not None:
                self._bind_target(item.optional_vars, node.lineno, None)
        self.generic_visit(node)

    visit_AsyncWith = visit_With

    def visit_ExceptHandler(self, node: ast.ExceptHandler) -> None:
        if node.name:
            self.scope.add(NameBinding(node.name, node.lineno, BindingKind.OTHER))
        self.generic_visit(node)

    def visit_Import(self, node: ast.Import | ast.ImportFrom) -> None:
        for alias in node.names:
            name = alias.asname or alias.name.partition(".")[0]
            if name != "*":
                self.scope.add(NameBinding(name, node.lineno, BindingKind.OTHER))

    visit_ImportFrom = visit_Import

    def visit_Global(self, node: ast.Global | ast.Nonlocal) -> None:
        if isinstance(node, ast.Global):
            self.scope._globals.update(node.names)

    visit_Nonlocal = visit_Global

    def visit_Call(self, node: ast.Call) -> None:
        func = node.func
        if (
            isinstance(func, ast.Attribute)
            and func.attr in MUTATING_METHODS
            and isinstance(func.value, ast.Name)
        ):
            self.scope.add_mutation(func.value.id, node.lineno)
        self.generic_visit(node)

    def visit_FunctionDef(self, node: ast.FunctionDef | ast.AsyncFunctionDef | ast.ClassDef) -> None:
        self.scope.add(NameBinding(node.name, node.lineno, BindingKind.OTHER))

    visit_AsyncFunctionDef = visit_FunctionDef
    visit_ClassDef = visit_FunctionDef

    def visit_Lambda(self, node: ast.Lambda) -> None:
        pass

    def _visit_comprehension(self, node: ast.expr) -> None:
        pass

    visit_ListComp = _visit_comprehension
    visit_SetComp = _visit_comprehension
    visit_DictComp = _visit_comprehension
    visit_GeneratorExp = _visit_comprehension


class TypeResolver:
    """Resolve the static type name of a local name."""

    __slots__ = ("names",)

    def __init__(self, names: ModuleNames):
        self.names = names

    def type_of(self, name: str, scope: Scope, lineno: int) -> str | None:
        """Qualified type name of ``name`` as seen at ``lineno``, or None.

        Builtin names never resolve; they carry no receiver type.
        """
        binding = scope.lookup(name, lineno)
        if binding is None:
            return None
        if binding.annotation is not None:
            return self.names.annotation_type(binding.annotation)
        value = binding.value
        if isinstance(value, ast.Call):
            callee = self.names.qualify(value.func)
            if callee is None or callee in _BUILTIN_NAMES:
                return None
            return callee
        return None
