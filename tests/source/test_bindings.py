"""Tests for the capability registry and argument extraction."""

from __future__ import annotations

import ast
import textwrap

import pytest

from tmplcheck.exceptions import UnsupportedArgumentError
from tmplcheck.source.bindings import (
    JINJA_TEMPLATE,
    REGISTRY,
    STRING_TEMPLATE,
    TEMPLATE_SET,
    ExtractContext,
    match,
    supplied_keys,
    template_name,
)
from tmplcheck.source.scopes import ModuleNames, Scope


def context_for(source: str, *, classes: frozenset[str] = frozenset()) -> tuple[ast.Call, ExtractContext]:
    """The call in a module's last statement, with the context the extractor would see."""
    tree = ast.parse(textwrap.dedent(source))
    call = tree.body[-1].value
    assert isinstance(call, ast.Call)
    context = ExtractContext(
        scope=Scope.for_module(tree),
        names=ModuleNames("app.views", "app", tree),
        classes=classes,
        lineno=call.lineno,
    )
    return call, context


def keys_of(source: str, **kwargs) -> tuple[str, ...]:
    call, context = context_for(source, **kwargs)
    return TEMPLATE_SET.extract(call, context)[1]


class TestRegistry:
    def test_order(self):
        assert REGISTRY == (TEMPLATE_SET, JINJA_TEMPLATE, STRING_TEMPLATE)

    @pytest.mark.parametrize(
        ("type_name", "method", "expected"),
        [
            ("templates.Set", "execute", TEMPLATE_SET),
            ("templates.set.Set", "execute", TEMPLATE_SET),
            ("jinja2.Template", "render", JINJA_TEMPLATE),
            ("string.Template", "safe_substitute", STRING_TEMPLATE),
            ("templates.Set", "render", None),
            ("app.Renderer", "execute", None),
        ],
    )
    def test_match(self, type_name, method, expected):
        assert match(type_name, method) is expected

    @pytest.mark.parametrize("binding", [JINJA_TEMPLATE, STRING_TEMPLATE])
    def test_recognized_but_unsupported(self, binding):
        call, context = context_for("t.render(a=1)")
        with pytest.raises(UnsupportedArgumentError, match="not analyzed"):
            binding.extract(call, context)


class TestTemplateName:
    def test_literal(self):
        call, context = context_for('s.execute("index.html", out, None)')
        assert template_name(call.args[0], context) == "index.html"

    def test_name_bound_to_literal(self):
        call, context = context_for(
            """
            PAGE = "index.html"
            s.execute(PAGE, out, None)
            """
        )
        assert template_name(call.args[0], context) == "index.html"

    def test_name_bound_to_non_string(self):
        call, context = context_for(
            """
            PAGE = pick()
            s.execute(PAGE, out, None)
            """
        )
        with pytest.raises(UnsupportedArgumentError, match="not bound to a string literal"):
            template_name(call.args[0], context)

    def test_expression(self):
        call, context = context_for('s.execute("a" + b, out, None)')
        with pytest.raises(UnsupportedArgumentError, match="not a string literal"):
            template_name(call.args[0], context)


class TestSuppliedKeys:
    def test_none(self):
        assert keys_of('s.execute("t", out, None)') == ()

    def test_dict_display(self):
        assert keys_of('s.execute("t", out, {"Title": t, "Teams": teams})') == ("Title", "Teams")

    def test_non_string_constant_key(self):
        assert keys_of('s.execute("t", out, {1: x})') == ("1",)

    def test_dict_call(self):
        assert keys_of('s.execute("t", out, dict(Title=t, Year=y))') == ("Title", "Year")

    def test_package_class(self):
        source = """
        from app.models import Page
        s.execute("t", out, Page(Title=t))
        """
        assert keys_of(source, classes=frozenset({"app.models.Page"})) == ("Title",)

    def test_keyword_arguments(self):
        assert keys_of('s.execute(name="t", out=out, args={"A": 1})') == ("A",)

    def test_name_one_level(self):
        source = """
        ctx = {"Title": t}
        s.execute("t", out, ctx)
        """
        assert keys_of(source) == ("Title",)

    @pytest.mark.parametrize(
        ("args", "message"),
        [
            ("{**base}", "dict unpacking"),
            ("{key: 1}", "dynamic dict key"),
            ("dict(base)", "positional arguments"),
            ("dict(**base)", "keyword unpacking"),
            ("build()", "function call"),
            ("Other(A=1)", "function call"),
            ("ctx or {}", "cannot determine keys"),
        ],
    )
    def test_unsupported_shapes(self, args, message):
        with pytest.raises(UnsupportedArgumentError, match=message):
            keys_of(f's.execute("t", out, {args})')

    def test_alias_of_alias(self):
        source = """
        base = {"A": 1}
        ctx = base
        s.execute("t", out, ctx)
        """
        with pytest.raises(UnsupportedArgumentError, match="alias of another name"):
            keys_of(source)

    def test_mutated_value(self):
        source = """
        ctx = {"A": 1}
        ctx["B"] = 2
        s.execute("t", out, ctx)
        """
        with pytest.raises(UnsupportedArgumentError, match="modified after assignment"):
            keys_of(source)

    def test_unbound_name(self):
        with pytest.raises(UnsupportedArgumentError, match="not bound to a literal value"):
            keys_of('s.execute("t", out, ctx)')

    def test_star_arguments(self):
        with pytest.raises(UnsupportedArgumentError, match=r"unpacking with \*"):
            keys_of('s.execute(*call_args)')

    def test_missing_args(self):
        with pytest.raises(UnsupportedArgumentError, match="missing args"):
            keys_of('s.execute("t", out)')

    def test_key_sets_are_direct(self):
        """Keys come straight from the argument; nothing is merged in."""
        call, context = context_for('s.execute("t", out, {"A": 1})')
        assert supplied_keys(call.args[2], context) == ("A",)
