"""Pytest configuration and fixtures for tmplcheck tests."""

from __future__ import annotations

import textwrap
from collections.abc import Callable
from pathlib import Path

import pytest

from tmplcheck import terminal
from tmplcheck.config import UnsupportedPolicy
from tmplcheck.source.loader import load_package
from tmplcheck.source.usages import CallSiteUsage, extract_usages

TESTDATA = Path(__file__).parent / "testdata"


@pytest.fixture(autouse=True)
def no_colors(monkeypatch):
    """Keep report and error output free of ANSI codes."""
    monkeypatch.setattr(terminal, "_USE_COLORS", False)


@pytest.fixture
def testdata() -> Path:
    """Directory of on-disk fixtures (templates, host package, expected output)."""
    return TESTDATA


def _write_tree(root: Path, files: dict[str, str]) -> Path:
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(content), encoding="utf-8")
    root.mkdir(parents=True, exist_ok=True)
    return root


@pytest.fixture
def make_templates(tmp_path) -> Callable[[dict[str, str]], Path]:
    """Write a templates directory; returns its root."""

    def make(files: dict[str, str]) -> Path:
        return _write_tree(tmp_path / "templates", files)

    return make


@pytest.fixture
def make_package(tmp_path) -> Callable[..., Path]:
    """Write a host package; returns its root directory."""

    def make(files: dict[str, str], name: str = "app") -> Path:
        return _write_tree(tmp_path / name, files)

    return make


@pytest.fixture
def usages_of(make_package) -> Callable[..., dict[str, list[CallSiteUsage]]]:
    """Extract call-site usages from a single module's source."""

    def extract(
        source: str,
        on_unsupported: UnsupportedPolicy = UnsupportedPolicy.ABORT,
    ) -> dict[str, list[CallSiteUsage]]:
        root = make_package({"__init__.py": "", "views.py": source})
        return extract_usages(load_package(str(root)), on_unsupported=on_unsupported)

    return extract
