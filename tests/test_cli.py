"""End-to-end tests for the tmplcheck command line."""

from __future__ import annotations

import json
import logging

import pytest

from tmplcheck.cli import build_parser, main


@pytest.fixture(autouse=True)
def restore_root_logger():
    """main() reconfigures the root logger; undo it after each test."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def hello(testdata) -> list[str]:
    return ["-t", str(testdata / "templates"), "-p", str(testdata / "src" / "hello")]


class TestOutput:
    def test_json_matches_expected(self, hello, testdata, capsys):
        assert main([*hello, "-format", "json"]) == 0
        out = capsys.readouterr().out
        expected = (testdata / "expected" / "nil0.json").read_text(encoding="utf-8")
        assert json.loads(out) == json.loads(expected)
        assert out.rstrip("\n") == expected.rstrip("\n")

    def test_plain(self, hello, capsys):
        assert main(hello) == 0
        assert capsys.readouterr().out == (
            "root.html\n"
            "Title missing: required by app.py:11 in template_set.execute\n"
            "Teams missing: required by app.py:11 in template_set.execute\n"
        )

    def test_plain_prints_nothing_when_clean(self, make_templates, make_package, capsys):
        templates = make_templates({"page.html": "{{.A}}"})
        package = make_package({"views.py": "from templates import Set\ns = Set()\ns.execute('page.html', out, {'A': 1})\n"})
        assert main(["-t", str(templates), "-p", str(package)]) == 0
        assert capsys.readouterr().out == ""

    def test_custom_delimiters(self, make_templates, make_package, capsys):
        templates = make_templates({"page.html": "{{ literal }} <% .A %>"})
        package = make_package({"views.py": "from templates import Set\ns = Set()\ns.execute('page.html', out, None)\n"})
        assert main(["-t", str(templates), "-p", str(package), "-ldelim", "<%", "-rdelim", "%>"]) == 0
        assert "A missing: required by views.py:3 in s.execute" in capsys.readouterr().out

    def test_double_dash_flags(self, testdata, capsys):
        argv = ["--t", str(testdata / "templates"), "--p", str(testdata / "src" / "hello"), "--format", "json"]
        assert main(argv) == 0
        assert json.loads(capsys.readouterr().out)[1]["template"] == "root.html"

    def test_head_mode(self, make_templates, make_package, capsys):
        templates = make_templates({"page.html": "{{.User.Name}}"})
        package = make_package({"views.py": "from templates import Set\ns = Set()\ns.execute('page.html', out, {'User': u})\n"})
        assert main(["-t", str(templates), "-p", str(package), "-chain", "head"]) == 0
        assert capsys.readouterr().out == ""


class TestExitCodes:
    def test_missing_required_flag(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["-t", "templates"])
        assert exc_info.value.code == 2
        assert "-p" in capsys.readouterr().err

    def test_invalid_choice(self, hello):
        with pytest.raises(SystemExit) as exc_info:
            main([*hello, "-format", "xml"])
        assert exc_info.value.code == 2

    def test_templates_not_a_directory(self, testdata, capsys):
        argv = ["-t", str(testdata / "expected" / "nil0.json"), "-p", str(testdata / "src" / "hello")]
        assert main(argv) == 2
        assert "T-CFG-001" in capsys.readouterr().err

    def test_template_syntax_error(self, make_templates, make_package, capsys):
        templates = make_templates({"page.html": "{{if .A}}"})
        package = make_package({"views.py": ""})
        assert main(["-t", str(templates), "-p", str(package)]) == 1
        err = capsys.readouterr().err
        assert "page.html" in err
        assert "T-PAR" in err

    def test_package_not_found(self, make_templates, capsys):
        templates = make_templates({})
        assert main(["-t", str(templates), "-p", "no_such_package_xyz"]) == 1
        assert "T-SRC-001" in capsys.readouterr().err

    def test_unsupported_argument(self, make_templates, make_package, capsys):
        templates = make_templates({"page.html": "{{.A}}"})
        package = make_package({"views.py": "from templates import Set\ns = Set()\ns.execute('page.html', out, build())\n"})
        assert main(["-t", str(templates), "-p", str(package)]) == 1
        err = capsys.readouterr().err
        assert "T-EXT-001" in err
        assert "views.py:3" in err
        assert main(["-t", str(templates), "-p", str(package), "-on-unsupported", "skip"]) == 0


class TestLogging:
    @pytest.mark.parametrize(
        ("flags", "level"),
        [([], logging.WARNING), (["-v"], logging.INFO), (["-vv"], logging.DEBUG)],
    )
    def test_verbosity(self, hello, flags, level):
        main([*hello, *flags])
        assert logging.getLogger().level == level

    def test_parser_rejects_abbreviations(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["-t", "x", "-p", "y", "-form", "json"])
