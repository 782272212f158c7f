# docmark/logging/__init__.py
"""Logging helpers shared across docmark."""

from .logger import configure_logging, get_logger

__all__ = ["configure_logging", "get_logger"]
