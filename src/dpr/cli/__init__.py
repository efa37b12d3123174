"""The command-line interface for dpr."""

from ._app import app, create_app, main

__all__ = ["app", "create_app", "main"]
