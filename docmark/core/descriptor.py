# docmark/core/descriptor.py
"""
Input descriptor: what we know about an input before reading it.

Extractors decide acceptance from the descriptor first (cheap), and only then
sniff the content. Everything is optional; the descriptor fills in what it can
derive (extension from file name, mime type from extension).
"""

from __future__ import annotations

import mimetypes
from dataclasses import dataclass, replace
from pathlib import Path, PurePosixPath
from typing import Any, Optional
from urllib.parse import urlparse


def normalize_extension(extension: Optional[str]) -> Optional[str]:
    """Normalize an extension to lowercase with a leading dot ('PDF' -> '.pdf')."""
    if not extension:
        return None
    ext = extension.strip().lower()
    if not ext:
        return None
    return ext if ext.startswith(".") else f".{ext}"


@dataclass(frozen=True)
class InputDescriptor:
    """
    Metadata about an input document.

    Attributes:
        mime_type: Declared or guessed MIME type.
        extension: File extension, lowercase with leading dot.
        charset: Declared character set for text inputs.
        filename: File name (no directory).
        local_path: Path on disk, when the input is a local file.
        url: Source URL, when the input came from the network.
    """

    mime_type: Optional[str] = None
    extension: Optional[str] = None
    charset: Optional[str] = None
    filename: Optional[str] = None
    local_path: Optional[Path] = None
    url: Optional[str] = None

    def __post_init__(self) -> None:
        filename = self.filename
        if filename is None and self.local_path is not None:
            filename = Path(self.local_path).name
        if filename is None and self.url:
            url_name = PurePosixPath(urlparse(self.url).path).name
            filename = url_name or None

        extension = normalize_extension(self.extension)
        if extension is None and filename:
            extension = normalize_extension(PurePosixPath(filename).suffix)

        mime_type = self.mime_type.strip().lower() if self.mime_type else None
        if mime_type is None and extension:
            mime_type = mimetypes.types_map.get(extension)

        object.__setattr__(self, "filename", filename)
        object.__setattr__(self, "extension", extension)
        object.__setattr__(self, "mime_type", mime_type)
        if self.local_path is not None:
            object.__setattr__(self, "local_path", Path(self.local_path))

    @classmethod
    def from_path(cls, path: Path | str, **kwargs: Any) -> "InputDescriptor":
        """Build a descriptor for a local file."""
        return cls(local_path=Path(path), **kwargs)

    @property
    def stem(self) -> Optional[str]:
        """File name without extension."""
        if not self.filename:
            return None
        return PurePosixPath(self.filename).stem or None

    @property
    def display_name(self) -> str:
        """Best human-readable name for the input."""
        return self.filename or self.url or (str(self.local_path) if self.local_path else "document")

    def copy_with(self, **changes: Any) -> "InputDescriptor":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)

    def matches_mime(self, *prefixes: str) -> bool:
        """True if the mime type starts with any of the given prefixes."""
        if not self.mime_type:
            return False
        return any(self.mime_type.startswith(p) for p in prefixes)


__all__ = ["InputDescriptor", "normalize_extension"]
