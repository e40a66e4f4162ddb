"""Run configuration.

A single immutable :class:`CheckConfig` is built once at startup (by the
CLI, or directly by library callers) and handed to every component that
needs a setting. Validation happens on construction; an invalid value
raises :class:`ConfigError`.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TypeVar

from tmplcheck.exceptions import ConfigError

E = TypeVar("E", bound=Enum)


class OutputFormat(Enum):
    """How results are written to stdout."""

    PLAIN = "plain"
    JSON = "json"


class UnsupportedPolicy(Enum):
    """What to do with a render call whose arguments cannot be analyzed.

    ABORT stops the whole run with an UnsupportedArgumentError. SKIP logs a
    warning and leaves the call site out of the check.
    """

    ABORT = "abort"
    SKIP = "skip"


class ChainMode(Enum):
    """How field chains are compared against supplied keys.

    FLAT checks every element of ``.A.B`` against the call site's keys.
    HEAD checks only the first element.
    """

    FLAT = "flat"
    HEAD = "head"


def _coerce(enum: type[E], value: E | str, option: str) -> E:
    if isinstance(value, enum):
        return value
    try:
        return enum(value)
    except ValueError:
        choices = ", ".join(member.value for member in enum)
        raise ConfigError(f"invalid value {value!r} for {option} (choose from {choices})") from None


@dataclass(frozen=True, slots=True)
class CheckConfig:
    """Settings for one tmplcheck run.

    Attributes:
        templates_path: Directory holding the template files.
        package: Host package, as a filesystem path or a dotted module name.
        left_delim: Left action delimiter in templates.
        right_delim: Right action delimiter in templates.
        output_format: Output format for results.
        on_unsupported: Policy for unanalyzable render calls.
        chain_mode: Field chain comparison mode.

    Example:
        >>> config = CheckConfig(templates_path="templates", package="app", output_format="json")
        >>> config.output_format
        <OutputFormat.JSON: 'json'>
    """

    templates_path: Path
    package: str
    left_delim: str = "{{"
    right_delim: str = "}}"
    output_format: OutputFormat = OutputFormat.PLAIN
    on_unsupported: UnsupportedPolicy = UnsupportedPolicy.ABORT
    chain_mode: ChainMode = ChainMode.FLAT

    def __post_init__(self) -> None:
        if not self.templates_path:
            raise ConfigError("-t is required")
        if not self.package:
            raise ConfigError("-p is required")
        if not self.left_delim or not self.right_delim:
            raise ConfigError("delimiters must not be empty")

        templates_path = Path(self.templates_path)
        if not templates_path.is_dir():
            raise ConfigError(f"templates path {str(templates_path)!r} is not a directory")

        # Frozen dataclass: normalize through object.__setattr__.
        object.__setattr__(self, "templates_path", templates_path)
        object.__setattr__(
            self, "output_format", _coerce(OutputFormat, self.output_format, "-format")
        )
        object.__setattr__(
            self,
            "on_unsupported",
            _coerce(UnsupportedPolicy, self.on_unsupported, "-on-unsupported"),
        )
        object.__setattr__(self, "chain_mode", _coerce(ChainMode, self.chain_mode, "-chain"))
