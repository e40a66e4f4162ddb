"""Call-site extraction from host source.

Finds every render call in a parsed package: a method call on a simple
name (``s.execute(...)``) whose receiver resolves to a type the
capability registry knows. Calls are visited in source order, outer
calls before the calls nested in their arguments.
"""

from __future__ import annotations

import ast
import logging
from collections import defaultdict
from dataclasses import dataclass

from tmplcheck.config import UnsupportedPolicy
from tmplcheck.exceptions import UnsupportedArgumentError
from tmplcheck.source.bindings import ExtractContext, match
from tmplcheck.source.loader import Package, SourceFile
from tmplcheck.source.scopes import ModuleNames, Scope, TypeResolver

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CallSiteUsage:
    """One render call and the keys it supplies.

    Attributes:
        source_file: POSIX path of the module relative to the package root.
        line: 1-based line of the call.
        byte_offset: Offset of the call in the module's UTF-8 bytes.
        receiver_name: Local name the method is called on.
        method_name: Render method called.
        template_name: Template the call renders.
        supplied_keys: Data keys the call passes.
    """

    source_file: str
    line: int
    byte_offset: int
    receiver_name: str
    method_name: str
    template_name: str
    supplied_keys: tuple[str, ...]

    @property
    def call(self) -> str:
        return f"{self.receiver_name}.{self.method_name}"


class CallSiteVisitor(ast.NodeVisitor):
    """Collect the render calls of one module.

    Maintains a scope stack so receiver types and argument names resolve
    against the bindings visible at each call.
    """

    def __init__(
        self,
        file: SourceFile,
        package: Package,
        on_unsupported: UnsupportedPolicy = UnsupportedPolicy.ABORT,
    ):
        self._file = file
        self._classes = package.classes
        self._on_unsupported = on_unsupported
        package_name = file.module if file.is_package else file.module.rpartition(".")[0]
        self._names = ModuleNames(file.module, package_name, file.tree)
        self._resolver = TypeResolver(self._names)
        self._scopes: list[Scope] = [Scope.for_module(file.tree)]
        self.usages: list[CallSiteUsage] = []

    def visit_FunctionDef(self, node: ast.FunctionDef | ast.AsyncFunctionDef) -> None:
        # Decorators, defaults and annotations evaluate in the enclosing scope.
        for decorator in node.decorator_list:
            self.visit(decorator)
        self.visit(node.args)
        if node.returns is not None:
            self.visit(node.returns)
        self._scopes.append(Scope.for_function(node, self._scopes[-1]))
        for stmt in node.body:
            self.visit(stmt)
        self._scopes.pop()

    visit_AsyncFunctionDef = visit_FunctionDef

    def visit_Lambda(self, node: ast.Lambda) -> None:
        self.visit(node.args)
        self._scopes.append(Scope.for_function(node, self._scopes[-1]))
        self.visit(node.body)
        self._scopes.pop()

    def visit_ClassDef(self, node: ast.ClassDef) -> None:
        for expr in (*node.decorator_list, *node.bases, *node.keywords):
            self.visit(expr)
        self._scopes.append(Scope.for_class(node, self._scopes[-1]))
        for stmt in node.body:
            self.visit(stmt)
        self._scopes.pop()

    def visit_Call(self, node: ast.Call) -> None:
        self._check_call(node)
        self.generic_visit(node)

    def _check_call(self, node: ast.Call) -> None:
        func = node.func
        if not (isinstance(func, ast.Attribute) and isinstance(func.value, ast.Name)):
            return

        receiver = func.value.id
        scope = self._scopes[-1]
        type_name = self._resolver.type_of(receiver, scope, node.lineno)
        if type_name is None:
            return
        binding = match(type_name, func.attr)
        if binding is None:
            return

        context = ExtractContext(
            scope=scope, names=self._names, classes=self._classes, lineno=node.lineno
        )
        try:
            template_name, keys = binding.extract(node, context)
        except UnsupportedArgumentError as e:
            located = e.at(
                call=f"{type_name}.{func.attr}",
                filename=self._file.relative_path,
                lineno=node.lineno,
                col_offset=node.col_offset,
                source=self._file.source,
            )
            if self._on_unsupported is UnsupportedPolicy.SKIP:
                logger.warning("skipping call site: %s", located)
                return
            raise located from e

        self.usages.append(
            CallSiteUsage(
                source_file=self._file.relative_path,
                line=node.lineno,
                byte_offset=self._file.byte_offset(node.lineno, node.col_offset),
                receiver_name=receiver,
                method_name=func.attr,
                template_name=template_name,
                supplied_keys=keys,
            )
        )


def extract_usages(
    package: Package,
    *,
    on_unsupported: UnsupportedPolicy = UnsupportedPolicy.ABORT,
) -> dict[str, list[CallSiteUsage]]:
    """Find the render calls of every module, grouped by template name.

    Within a template name, usages are in module order, then source order.

    Raises:
        UnsupportedArgumentError: On an unanalyzable call when the policy is ABORT.
    """
    usages: dict[str, list[CallSiteUsage]] = defaultdict(list)
    for file in package.files:
        visitor = CallSiteVisitor(file, package, on_unsupported)
        visitor.visit(file.tree)
        for usage in visitor.usages:
            usages[usage.template_name].append(usage)
        if visitor.usages:
            logger.debug("%s: %d render calls", file.relative_path, len(visitor.usages))
    return dict(usages)
