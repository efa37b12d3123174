"""Shared CLI utilities for commands.

This module provides common utilities used across CLI command implementations:
- Standardized exit codes
- Config loading with error reporting
- Console utilities for error handling
"""

from __future__ import annotations

from enum import IntEnum
from pathlib import Path  # noqa: TC003 - Used in cyclopts parameter annotations
from typing import TYPE_CHECKING, Annotated, Never

from cyclopts import Parameter

from dpr.config import load_config
from dpr.exceptions import (
    CircularDependencyError,
    ConfigLoadError,
    ConfigNotFoundError,
    ConfigValidationError,
)

if TYPE_CHECKING:
    from rich.console import Console

    from dpr.config import Config

__all__ = [
    "ConfigOption",
    "ExitCode",
    "exit_with_error",
    "get_error_console",
    "load_config_or_exit",
]

ConfigOption = Annotated[
    Path | None,
    Parameter(name=["--config", "-c"], help="Path to the config file."),
]


class ExitCode(IntEnum):
    """Standard exit codes for dpr CLI commands."""

    SUCCESS = 0
    LOAD_ERROR = 1
    VALIDATION_ERROR = 2


def get_error_console() -> Console:
    """Get a Rich console configured for error output to stderr.

    Returns:
        Console instance writing to stderr.
    """
    from rich.console import Console

    return Console(stderr=True)


def exit_with_error(
    message: str,
    code: ExitCode = ExitCode.LOAD_ERROR,
    *,
    console: Console | None = None,
) -> Never:
    """Print an error message and exit with the specified code.

    Args:
        message: The error message to display.
        code: The exit code to use (defaults to LOAD_ERROR).
        console: Optional Rich console for output. If not provided,
            a new stderr console will be created.

    Raises:
        SystemExit: Always raised with the specified exit code.
    """
    if console is None:
        console = get_error_console()

    console.print(f"[red]Error:[/red] {message}", highlight=False)
    raise SystemExit(code)


def load_config_or_exit(path: Path | None) -> Config:
    """Load the config file, exiting with a matching code on failure.

    Not-found and parse errors exit with LOAD_ERROR; validation issues
    and dependency cycles exit with VALIDATION_ERROR.
    """
    try:
        return load_config(path)
    except (ConfigNotFoundError, ConfigLoadError) as e:
        exit_with_error(str(e), ExitCode.LOAD_ERROR)
    except (ConfigValidationError, CircularDependencyError) as e:
        exit_with_error(str(e), ExitCode.VALIDATION_ERROR)
