"""Run a full check: parse both sides concurrently, then cross-check.

The host package and the templates directory are independent, so they
are parsed as two tasks on a two-worker thread pool. Both tasks finish
before either result is used; the host result is read first, so when
both fail the host error is the one raised.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor

from tmplcheck.check import CheckResult, check
from tmplcheck.config import CheckConfig
from tmplcheck.fields import FieldReference, parse_templates
from tmplcheck.source.loader import load_package
from tmplcheck.source.usages import CallSiteUsage, extract_usages

logger = logging.getLogger(__name__)


def _parse_source(config: CheckConfig) -> dict[str, list[CallSiteUsage]]:
    package = load_package(config.package)
    return extract_usages(package, on_unsupported=config.on_unsupported)


def _parse_templates(config: CheckConfig) -> dict[str, list[FieldReference]]:
    return parse_templates(config.templates_path, config.left_delim, config.right_delim)


def parse_all(
    config: CheckConfig,
) -> tuple[dict[str, list[CallSiteUsage]], dict[str, list[FieldReference]]]:
    """Parse the host package and the templates; return ``(usages, fields)``.

    Raises:
        TmplcheckError: The first failure, host source before templates.
    """
    with ThreadPoolExecutor(max_workers=2, thread_name_prefix="tmplcheck") as pool:
        source_future = pool.submit(_parse_source, config)
        templates_future = pool.submit(_parse_templates, config)

    usages = source_future.result()
    fields = templates_future.result()
    logger.debug(
        "parsed %d templates, %d rendered templates",
        len(fields),
        len(usages),
    )
    return usages, fields


def run(config: CheckConfig) -> list[CheckResult]:
    """Parse both sides and cross-check them."""
    usages, fields = parse_all(config)
    return check(fields, usages, chain_mode=config.chain_mode)
