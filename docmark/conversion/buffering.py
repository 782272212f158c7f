# docmark/conversion/buffering.py
"""
Stream buffering for inputs that cannot seek.

Dispatch sniffs content and then re-reads it from the start, so every input
must be seekable. Non-seekable streams are copied into a spooled temporary
file that stays in memory up to ``memory_limit`` and then spills to disk
(inside the workspace when a directory is given).
"""

from __future__ import annotations

import tempfile
from pathlib import Path
from typing import IO, BinaryIO, Optional

from docmark.core.cancellation import CancellationToken
from docmark.core.exceptions import ResourceLimitError

CHUNK_SIZE = 64 * 1024


def is_seekable(stream: IO) -> bool:
    try:
        return bool(stream.seekable())
    except (AttributeError, ValueError):
        return False


def buffer_stream(
    stream: BinaryIO,
    memory_limit: int,
    max_bytes: Optional[int] = None,
    directory: Optional[Path] = None,
    cancel: Optional[CancellationToken] = None,
    force: bool = False,
) -> BinaryIO:
    """
    Return a seekable stream positioned at the start of the content.

    Seekable inputs are returned unchanged unless ``force`` is set. Otherwise
    the content is copied into a SpooledTemporaryFile; the caller owns and
    must close it.

    Raises:
        ResourceLimitError: If the input is larger than ``max_bytes``.
    """
    if not force and is_seekable(stream):
        return stream

    buffer = tempfile.SpooledTemporaryFile(
        max_size=memory_limit, dir=str(directory) if directory else None
    )
    total = 0
    try:
        while True:
            if cancel is not None:
                cancel.raise_if_cancelled()
            chunk = stream.read(CHUNK_SIZE)
            if not chunk:
                break
            total += len(chunk)
            if max_bytes is not None and total > max_bytes:
                raise ResourceLimitError(
                    f"Input exceeds the buffer ceiling of {max_bytes} bytes", limit=max_bytes
                )
            buffer.write(chunk)
    except BaseException:
        buffer.close()
        raise

    buffer.seek(0)
    return buffer  # type: ignore[return-value]


def peek_prefix(stream: BinaryIO, size: int) -> bytes:
    """Read up to ``size`` bytes and restore the stream position."""
    position = stream.tell()
    try:
        return stream.read(size)
    finally:
        stream.seek(position)


__all__ = ["buffer_stream", "is_seekable", "peek_prefix"]
