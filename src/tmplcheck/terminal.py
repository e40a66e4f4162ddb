"""Terminal color helpers for reports and error messages.

ANSI colors with TTY detection and NO_COLOR / FORCE_COLOR support.
"""

from __future__ import annotations

import os
import re
import sys
from typing import Literal

_COLORS = {
    "reset": "\033[0m",
    "bold": "\033[1m",
    "dim": "\033[2m",
    "red": "\033[31m",
    "green": "\033[32m",
    "yellow": "\033[33m",
    "cyan": "\033[36m",
    "bright_red": "\033[91m",
}

ColorName = Literal["reset", "bold", "dim", "red", "green", "yellow", "cyan", "bright_red"]

_ANSI_ESCAPE = re.compile(r"\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])")


def _should_use_colors() -> bool:
    """Check if the terminal supports colors and the user allows them.

    Respects:
        - NO_COLOR environment variable (https://no-color.org/)
        - FORCE_COLOR environment variable (overrides NO_COLOR)
        - sys.stdout.isatty() for TTY detection
    """
    if os.environ.get("FORCE_COLOR"):
        return True
    if os.environ.get("NO_COLOR"):
        return False
    return sys.stdout.isatty()


_USE_COLORS = _should_use_colors()


def supports_color() -> bool:
    """Return True if colored output is enabled."""
    return _USE_COLORS


def colorize(text: str, *colors: ColorName) -> str:
    """Wrap text in ANSI codes, or return it unchanged when colors are off.

    Example:
        >>> colorize("Error", "red", "bold")
        '\033[31m\033[1mError\033[0m'  # if colors supported
        'Error'  # if colors not supported
    """
    if not _USE_COLORS or not colors:
        return text

    prefix = "".join(_COLORS.get(color, "") for color in colors)
    if not prefix:
        return text
    return f"{prefix}{text}{_COLORS['reset']}"


def strip_colors(text: str) -> str:
    """Remove ANSI color codes from text."""
    return _ANSI_ESCAPE.sub("", text)


def error_code(text: str) -> str:
    """Color text as an error code (bright red + bold)."""
    return colorize(text, "bright_red", "bold")


def location(text: str) -> str:
    """Color text as a file location (cyan)."""
    return colorize(text, "cyan")


def line_number(text: str) -> str:
    return colorize(text, "yellow")


def error_line(text: str) -> str:
    return colorize(text, "bright_red")


def missing_key(text: str) -> str:
    """Color text as a missing key name (bold)."""
    return colorize(text, "bold")


def hint(text: str) -> str:
    return colorize(text, "green")


def dim_text(text: str) -> str:
    return colorize(text, "dim")


def format_error_header(code: str | None, message: str) -> str:
    """Format an error header with an optional code prefix.

    Example:
        >>> format_error_header("T-PAR-001", "unexpected EOF")
        '\033[91m\033[1mT-PAR-001\033[0m: unexpected EOF'
    """
    if code:
        return f"{error_code(code)}: {message}"
    return message


def format_source_line(lineno: int, content: str, is_error: bool = False) -> str:
    """Format one numbered source line, marking the error line with '>'."""
    marker = ">" if is_error else " "
    num_colored = line_number(f"{marker}{lineno:>3}")
    content_colored = error_line(content) if is_error else dim_text(content)
    return f"{num_colored} | {content_colored}"
