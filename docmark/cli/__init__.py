# docmark/cli/__init__.py
"""Command line interface."""

from docmark.cli.cli import app, main

__all__ = ["app", "main"]
