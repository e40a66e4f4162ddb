"""Template field extraction.

Collects the data fields a template reads: every ``Field`` node
(``.Foo.Bar``) and every identifier that does not name a function.
References keep the order in which the walker meets them.

Positions are reported as byte offsets into the template file together
with a line/column pair derived from them, so a reference can be located
without re-decoding the file.

Example:
    >>> tree = parse("Hi {{.User.Name}}", name="hi.html")
    >>> [r.chain for r in extract_fields(tree, "Hi {{.User.Name}}", "hi.html")]
    [('User', 'Name')]
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from tmplcheck.exceptions import TemplateLoadError
from tmplcheck.parse import parse, walk
from tmplcheck.parse.nodes import Field, Identifier, Node, Tree

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class FieldReference:
    """A data field read by a template.

    Attributes:
        template_path: POSIX path of the template relative to the templates root.
        byte_offset: Offset of the reference in the template's UTF-8 bytes.
        line: 1-based line of the reference.
        col: Column of the reference, as computed by :func:`line_col`.
        chain: Field names in access order (``.Foo.Bar`` -> ``("Foo", "Bar")``).
    """

    template_path: str
    byte_offset: int
    line: int
    col: int
    chain: tuple[str, ...]


def line_col(byte_offset: int, lines: Sequence[bytes]) -> tuple[int, int]:
    """Map a byte offset to a (line, col) pair.

    ``lines`` is the template's raw bytes split on ``b"\\n"``. Line lengths
    (plus one for each terminator) are accumulated until the running total
    reaches the offset; the column is the offset minus the running total
    at the start of that line.

    Example:
        >>> line_col(4, b"A\\nBC\\nDEF".split(b"\\n"))
        (2, 2)
    """
    line = 1
    line_start = 0
    total = 0
    for segment in lines:
        line_start = total
        total += len(segment) + 1
        if total >= byte_offset:
            break
        line += 1
    return line, byte_offset - line_start


def extract_fields(tree: Tree, source: str, relative_path: str) -> list[FieldReference]:
    """Return the field references of a parsed template, in traversal order.

    Only the root tree is walked. ``{{define}}`` bodies are templates of
    their own and are not attributed to this file.
    """
    lines = source.encode("utf-8").split(b"\n")
    refs: list[FieldReference] = []

    def reference(node: Node, chain: tuple[str, ...]) -> FieldReference:
        byte_offset = len(source[: node.pos].encode("utf-8"))
        line, col = line_col(byte_offset, lines)
        return FieldReference(
            template_path=relative_path,
            byte_offset=byte_offset,
            line=line,
            col=col,
            chain=chain,
        )

    def visit(node: Node) -> None:
        if isinstance(node, Field):
            refs.append(reference(node, tuple(node.ident)))
        elif isinstance(node, Identifier) and not node.func:
            refs.append(reference(node, (node.ident,)))

    walk(tree.root, visit)
    return refs


def _read_template(path: Path) -> str:
    try:
        return path.read_bytes().decode("utf-8")
    except OSError as e:
        raise TemplateLoadError(f"cannot read template {path}: {e.strerror or e}") from e
    except UnicodeDecodeError as e:
        raise TemplateLoadError(f"template {path} is not valid UTF-8: {e.reason}") from e


def parse_templates(
    root: str | Path,
    left_delim: str = "{{",
    right_delim: str = "}}",
) -> dict[str, list[FieldReference]]:
    """Parse every file under ``root`` and extract its field references.

    Files are visited in sorted order and keyed by their POSIX path
    relative to ``root``.

    Raises:
        TemplateLoadError: If a file cannot be read or decoded.
        TemplateSyntaxError: If a file is not a valid template.
    """
    root = Path(root)
    if not root.is_dir():
        raise TemplateLoadError(f"templates path {root} is not a directory")

    result: dict[str, list[FieldReference]] = {}
    for path in sorted(p for p in root.rglob("*") if p.is_file()):
        relative = path.relative_to(root).as_posix()
        source = _read_template(path)
        tree = parse(source, name=relative, left_delim=left_delim, right_delim=right_delim)
        result[relative] = extract_fields(tree, source, relative)
        logger.debug("parsed template %s: %d field references", relative, len(result[relative]))
    return result
