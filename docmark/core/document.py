# docmark/core/document.py
"""
Core document types shared by extractors, the enrichment pipeline and the composer.

A conversion produces an ordered list of Segments plus a ConversionArtifacts
side channel. A segment's position in that list is its identity: artifacts
point back to their owning segment by index, so the list must never be
reordered once artifacts have been created.

Flow: Extractor → (segments, artifacts) → EnrichmentPipeline → Composer
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional


class SegmentType(str, Enum):
    """Kinds of output segments."""

    UNKNOWN = "unknown"
    PAGE = "page"
    SLIDE = "slide"
    SHEET = "sheet"
    SECTION = "section"
    TABLE = "table"
    CHAPTER = "chapter"
    AUDIO = "audio"
    IMAGE = "image"
    METADATA = "metadata"


@dataclass
class Segment:
    """
    One ordered unit of output content (page, slide, chapter, cell, ...).

    ``markdown`` is mutable after creation; the enrichment pipeline splices
    text into it. Everything else is descriptive.
    """

    markdown: str
    type: SegmentType = SegmentType.UNKNOWN
    number: Optional[int] = None  # 1-based ordinal within its type
    label: Optional[str] = None
    start_time: Optional[float] = None  # seconds, time-bounded media only
    end_time: Optional[float] = None
    source: Optional[str] = None  # originating file name
    additional_metadata: Dict[str, str] = field(default_factory=dict)

    def copy_with(self, **changes: Any) -> "Segment":
        """Return a copy with the given fields replaced."""
        if "additional_metadata" not in changes:
            changes["additional_metadata"] = dict(self.additional_metadata)
        return replace(self, **changes)

    def __repr__(self) -> str:
        preview = self.markdown[:40] + "..." if len(self.markdown) > 40 else self.markdown
        return f"Segment({self.type.value}, number={self.number}, {preview!r})"


@dataclass
class ImageArtifact:
    """
    An image extracted from a document.

    ``placeholder_markdown`` is the exact substring embedded in
    ``segments[segment_index].markdown``; enrichment output is spliced
    directly after it.
    """

    content: Optional[bytes] = None
    content_type: Optional[str] = None
    file_path: Optional[str] = None
    page_number: Optional[int] = None
    label: Optional[str] = None
    source: Optional[str] = None
    segment_index: Optional[int] = None
    placeholder_markdown: Optional[str] = None
    detailed_description: Optional[str] = None
    raw_text: Optional[str] = None  # OCR text
    metadata: Dict[str, str] = field(default_factory=dict)

    def read_bytes(self) -> Optional[bytes]:
        """Return the image content, loading it from ``file_path`` when needed."""
        if self.content is not None:
            return self.content
        if self.file_path:
            with open(self.file_path, "rb") as f:
                return f.read()
        return None


@dataclass
class TableArtifact:
    """
    A table extracted from a document, header row first.

    Rows are self-contained: merged cells have already been expanded so
    every row has ``column_count`` entries.
    """

    rows: List[List[str]] = field(default_factory=list)
    page_number: Optional[int] = None
    source: Optional[str] = None
    segment_index: Optional[int] = None
    placeholder_markdown: Optional[str] = None
    detailed_description: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)

    @property
    def header(self) -> List[str]:
        return self.rows[0] if self.rows else []

    @property
    def row_count(self) -> int:
        """Number of data rows (excluding header)."""
        return max(len(self.rows) - 1, 0)

    @property
    def column_count(self) -> int:
        return max((len(r) for r in self.rows), default=0)

    def __repr__(self) -> str:
        return f"TableArtifact({self.column_count} cols, {self.row_count} rows, page={self.page_number})"


@dataclass
class TextArtifact:
    """A block of raw text captured alongside the markdown (e.g. a text layer)."""

    text: str
    page_number: Optional[int] = None
    source: Optional[str] = None


@dataclass
class ConversionArtifacts:
    """Side-channel content produced during extraction."""

    images: List[ImageArtifact] = field(default_factory=list)
    tables: List[TableArtifact] = field(default_factory=list)
    text_blocks: List[TextArtifact] = field(default_factory=list)
    metadata: Dict[str, str] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not (self.images or self.tables or self.text_blocks or self.metadata)

    def extend(self, other: "ConversionArtifacts", segment_offset: int = 0) -> None:
        """
        Merge a nested artifact set into this one.

        Used by container extractors: the nested segments were appended to the
        parent list starting at ``segment_offset``, so back-references are
        shifted by the same amount. Metadata keys already present are kept.
        """
        for image in other.images:
            if image.segment_index is not None:
                image.segment_index += segment_offset
            self.images.append(image)
        for table in other.tables:
            if table.segment_index is not None:
                table.segment_index += segment_offset
            self.tables.append(table)
        self.text_blocks.extend(other.text_blocks)
        for key, value in other.metadata.items():
            self.metadata.setdefault(key, value)


__all__ = [
    "SegmentType",
    "Segment",
    "ImageArtifact",
    "TableArtifact",
    "TextArtifact",
    "ConversionArtifacts",
]
