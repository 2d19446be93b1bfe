"""Command-line interface for readygate."""

from ._app import create_app, main

__all__ = ["create_app", "main"]
