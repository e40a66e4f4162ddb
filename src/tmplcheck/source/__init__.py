"""Host source analysis: package loading, name resolution and call-site extraction."""

from __future__ import annotations

from tmplcheck.source.bindings import REGISTRY, Binding, match
from tmplcheck.source.loader import Package, SourceFile, load_package, locate_package
from tmplcheck.source.usages import CallSiteUsage, extract_usages

__all__ = [
    "REGISTRY",
    "Binding",
    "CallSiteUsage",
    "Package",
    "SourceFile",
    "extract_usages",
    "load_package",
    "locate_package",
    "match",
]
