# docmark/core/cancellation.py
"""Cooperative cancellation for conversions."""

from __future__ import annotations

import threading
from typing import Optional

from docmark.core.exceptions import ConversionCancelled


class CancellationToken:
    """
    Cancellation signal checked between units of work.

    Thread-safe: archive members and enrichment calls running in worker
    threads observe the same token.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason: Optional[str] = None

    def cancel(self, reason: str = "Conversion cancelled") -> None:
        self._reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        """Raise ConversionCancelled if cancel() has been called."""
        if self._event.is_set():
            raise ConversionCancelled(self._reason or "Conversion cancelled")

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self.cancelled})"


__all__ = ["CancellationToken"]
