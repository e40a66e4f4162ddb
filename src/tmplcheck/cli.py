"""Command-line interface.

Usage:
    tmplcheck -t templates/ -p myapp [-ldelim '{{'] [-rdelim '}}']
              [-format plain|json] [-on-unsupported abort|skip]
              [-chain flat|head] [-v]

Flags take a single dash; the double-dash spelling is accepted too.

Exit status:
    0  check completed (findings do not change the status)
    1  a template or host module could not be parsed or analyzed
    2  invalid invocation or configuration
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence

from tmplcheck import __version__
from tmplcheck.config import ChainMode, CheckConfig, OutputFormat, UnsupportedPolicy
from tmplcheck.exceptions import ConfigError, TmplcheckError
from tmplcheck.report import render_json, render_plain
from tmplcheck.runner import run

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tmplcheck",
        description="Check that template call sites supply every field the templates use.",
        allow_abbrev=False,
    )
    parser.add_argument(
        "-t", "--t", dest="templates_path", required=True, help="path to templates directory"
    )
    parser.add_argument(
        "-p",
        "--p",
        dest="package",
        required=True,
        help="host package: a directory, a .py file, or a dotted module name",
    )
    parser.add_argument(
        "-ldelim", "--ldelim", dest="left_delim", default="{{", help="left delimiter in templates"
    )
    parser.add_argument(
        "-rdelim", "--rdelim", dest="right_delim", default="}}", help="right delimiter in templates"
    )
    parser.add_argument(
        "-format",
        "--format",
        dest="output_format",
        choices=[f.value for f in OutputFormat],
        default=OutputFormat.PLAIN.value,
        help="output format (default: plain)",
    )
    parser.add_argument(
        "-on-unsupported",
        "--on-unsupported",
        dest="on_unsupported",
        choices=[p.value for p in UnsupportedPolicy],
        default=UnsupportedPolicy.ABORT.value,
        help="abort the run, or skip the call site with a warning, on unanalyzable arguments",
    )
    parser.add_argument(
        "-chain",
        "--chain",
        dest="chain_mode",
        choices=[m.value for m in ChainMode],
        default=ChainMode.FLAT.value,
        help="check every element of a field chain (flat) or only its first (head)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="log progress (-v for info, -vv for debug)",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def _configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(name)s: %(message)s",
        stream=sys.stderr,
        force=True,
    )


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the ``tmplcheck`` console script."""
    args = build_parser().parse_args(argv)
    _configure_logging(args.verbose)

    try:
        config = CheckConfig(
            templates_path=args.templates_path,
            package=args.package,
            left_delim=args.left_delim,
            right_delim=args.right_delim,
            output_format=args.output_format,
            on_unsupported=args.on_unsupported,
            chain_mode=args.chain_mode,
        )
    except ConfigError as e:
        print(e.format_compact(), file=sys.stderr)
        return 2

    try:
        results = run(config)
    except TmplcheckError as e:
        print(e.format_compact(), file=sys.stderr)
        return 1

    logger.info(
        "checked %d templates, %d with missing fields",
        len(results),
        sum(1 for r in results if r.has_missing),
    )
    if config.output_format is OutputFormat.JSON:
        print(render_json(results))
    else:
        output = render_plain(results)
        if output:
            print(output)
    return 0
