# docmark/logging/logger.py
"""
Unified logging setup for docmark.

All modules use:
    from docmark.logging.logger import get_logger
    logger = get_logger(__name__)

Configuration happens once, at the entrypoint (CLI or embedding application).
"""

from __future__ import annotations

import logging
import sys

DEFAULT_FORMAT = "[%(levelname)s] %(name)s: %(message)s"

# Third-party loggers that are far too chatty at INFO
NOISY_LOGGERS = (
    "docling",
    "docling_core",
    "docling_parse",
    "httpx",
    "httpcore",
    "PIL",
)


def configure_logging(
    level: int = logging.INFO,
    fmt: str = DEFAULT_FORMAT,
    stream=sys.stderr,
) -> None:
    """
    Configure root logging handler.

    Safe to call multiple times; a handler is only installed once.
    """
    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler(stream)
        handler.setFormatter(logging.Formatter(fmt))
        root.addHandler(handler)

    root.setLevel(level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def get_logger(name: str) -> logging.Logger:
    """
    Modules call this to get a logger.

    Do NOT configure logging here; configuration happens in configure_logging().
    """
    return logging.getLogger(name)


__all__ = ["DEFAULT_FORMAT", "configure_logging", "get_logger"]
