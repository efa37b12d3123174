"""dpr CLI commands."""
# pyright: reportUnusedCallResult=false

from __future__ import annotations

from typing import TYPE_CHECKING

from ._order import order
from ._run import run
from ._shared import (
    ExitCode,
    exit_with_error,
    get_error_console,
    load_config_or_exit,
)
from ._validate import validate

if TYPE_CHECKING:
    from cyclopts import App

__all__ = [
    "ExitCode",
    "exit_with_error",
    "get_error_console",
    "load_config_or_exit",
    "order",
    "register_commands",
    "run",
    "validate",
]


def register_commands(app: App) -> None:
    app.command(run, name="run")
    app.command(validate, name="validate")
    app.command(order, name="order")
