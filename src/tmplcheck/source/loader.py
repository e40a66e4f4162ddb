"""Host package loading.

Locates a Python package on disk and parses every module with ``ast``.
Nothing is imported: the analyzed code never runs.

A package is named either by a filesystem path (a directory or a single
``.py`` file) or by a dotted module name, which is searched for in
``sys.path`` the way the import system would find a source package.
"""

from __future__ import annotations

import ast
import logging
import os
import sys
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass
from pathlib import Path

from tmplcheck.exceptions import ErrorCode, HostSourceError, build_source_snippet

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SourceFile:
    """A parsed module of the host package.

    Attributes:
        path: Path of the file on disk.
        relative_path: POSIX path relative to the package root, used in reports.
        module: Dotted module name (``hello.views``).
        is_package: True for ``__init__.py`` files.
        source: Decoded source text.
        tree: Parsed module.
        line_starts: Byte offset of the start of each line.
    """

    path: Path
    relative_path: str
    module: str
    is_package: bool
    source: str
    tree: ast.Module
    line_starts: tuple[int, ...]

    def byte_offset(self, lineno: int, col_offset: int) -> int:
        """Byte offset of an ``ast`` position (``col_offset`` is already in bytes)."""
        return self.line_starts[lineno - 1] + col_offset


@dataclass(frozen=True, slots=True)
class Package:
    """All modules of a host package.

    Attributes:
        name: Top-level package (or module) name.
        root: Directory that relative paths are computed from.
        files: Parsed modules in sorted path order.
        classes: Qualified names of every class defined in the package.
    """

    name: str
    root: Path
    files: tuple[SourceFile, ...]
    classes: frozenset[str]


def locate_package(target: str, search_path: Sequence[str] | None = None) -> Path:
    """Find the package named by ``target``.

    An existing path is used as is. Otherwise ``target`` is treated as a
    dotted module name and each ``search_path`` entry (``sys.path`` by
    default) is tried for a package directory, then a module file.

    Raises:
        HostSourceError: If nothing matches.
    """
    path = Path(target)
    if path.exists():
        if path.is_dir() or (path.is_file() and path.suffix == ".py"):
            return path
        raise HostSourceError(f"{target!r} is neither a directory nor a .py file")

    parts = target.split(".")
    if all(part.isidentifier() for part in parts):
        for entry in sys.path if search_path is None else search_path:
            base = Path(entry or os.curdir).joinpath(*parts)
            if base.is_dir():
                return base
            module = base.parent / f"{parts[-1]}.py"
            if module.is_file():
                return module

    raise HostSourceError(f"package {target!r} not found")


def _iter_python_files(root: Path) -> Iterator[Path]:
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(
            d for d in dirnames if not d.startswith(".") and d != "__pycache__"
        )
        for filename in sorted(filenames):
            if filename.endswith(".py"):
                yield Path(dirpath) / filename


def _module_name(relative: Path, package: str) -> tuple[str, bool]:
    parts = list(relative.with_suffix("").parts)
    is_package = parts[-1] == "__init__"
    if is_package:
        parts.pop()
    return ".".join([package, *parts]) if package else ".".join(parts), is_package


def _line_starts(data: bytes) -> tuple[int, ...]:
    starts = [0]
    index = data.find(b"\n")
    while index != -1:
        starts.append(index + 1)
        index = data.find(b"\n", index + 1)
    return tuple(starts)


def load_source_file(path: Path, root: Path, package: str) -> SourceFile:
    """Read and parse one module.

    Raises:
        HostSourceError: If the file is unreadable, not UTF-8, or not valid Python.
    """
    relative = path.relative_to(root)
    relative_path = relative.as_posix()
    try:
        data = path.read_bytes()
        source = data.decode("utf-8")
    except OSError as e:
        raise HostSourceError(
            f"cannot read source file: {e.strerror or e}",
            filename=relative_path,
            code=ErrorCode.SOURCE_SYNTAX,
        ) from e
    except UnicodeDecodeError as e:
        raise HostSourceError(
            f"source file is not valid UTF-8: {e.reason}",
            filename=relative_path,
            code=ErrorCode.SOURCE_SYNTAX,
        ) from e

    try:
        tree = ast.parse(source, filename=str(path))
    except SyntaxError as e:
        snippet = None
        if e.lineno:
            column = e.offset - 1 if e.offset else None
            snippet = build_source_snippet(source, e.lineno, column=column)
        raise HostSourceError(
            f"invalid syntax: {e.msg}",
            filename=relative_path,
            lineno=e.lineno,
            source_snippet=snippet,
            code=ErrorCode.SOURCE_SYNTAX,
        ) from e

    module, is_package = _module_name(relative, package)
    return SourceFile(
        path=path,
        relative_path=relative_path,
        module=module,
        is_package=is_package,
        source=source,
        tree=tree,
        line_starts=_line_starts(data),
    )


def _class_names(body: Iterable[ast.stmt], prefix: str) -> Iterator[str]:
    for node in body:
        if isinstance(node, ast.ClassDef):
            qualname = f"{prefix}.{node.name}" if prefix else node.name
            yield qualname
            yield from _class_names(node.body, qualname)


def load_package(target: str, search_path: Sequence[str] | None = None) -> Package:
    """Locate and parse a host package.

    Directories are walked recursively in sorted order, skipping hidden
    directories and ``__pycache__``. A single ``.py`` file is loaded on
    its own, relative to its parent directory.

    Raises:
        HostSourceError: If the package cannot be found or a module does not parse.
    """
    location = locate_package(target, search_path)
    if location.is_dir():
        root = location
        name = location.resolve().name
        files = tuple(load_source_file(p, root, name) for p in _iter_python_files(root))
    else:
        root = location.parent
        name = location.stem
        files = (load_source_file(location, root, ""),)

    classes = frozenset(
        qualname for f in files for qualname in _class_names(f.tree.body, f.module)
    )
    logger.debug("loaded package %s: %d modules, %d classes", name, len(files), len(classes))
    return Package(name=name, root=root, files=files, classes=classes)
