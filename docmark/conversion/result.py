# docmark/conversion/result.py
"""
ConversionResult - the outcome of one conversion call.

The result owns the artifact workspace for the rest of its life. Markdown is
recomposed from the current segments on every access, so edits made to
segments or artifacts after conversion show up without re-extracting.

Usage:
    with converter.convert("report.pdf") as result:
        print(result.title)
        print(result.markdown)
    # workspace released here (deleted unless storage.delete_on_release is off)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from docmark.config.schema import SegmentOptions
from docmark.conversion.composer import ComposedMarkdown, compose
from docmark.conversion.workspace import ArtifactWorkspace, sanitize_name
from docmark.core.descriptor import InputDescriptor
from docmark.core.document import ConversionArtifacts, Segment
from docmark.core.metadata import MetadataKeys


@dataclass
class ConversionResult:
    """
    Segments, artifacts and metadata for one converted document.

    Attributes:
        segments: Ordered segments (index order is document order)
        artifacts: Image and table artifacts referencing segments by index
        descriptor: The input descriptor the conversion ran with
        options: Markdown composition options
        title_hint: Title supplied by the extractor, if any
        generated_at: Timestamp written into the front matter
        metadata: Document-level string metadata
        workspace: Artifact workspace, released by close()
        extractor: Name of the extractor that produced the segments
    """

    segments: List[Segment]
    artifacts: ConversionArtifacts
    descriptor: InputDescriptor
    options: SegmentOptions = field(default_factory=SegmentOptions)
    title_hint: Optional[str] = None
    generated_at: Optional[datetime] = None
    metadata: Dict[str, str] = field(default_factory=dict)
    workspace: Optional[ArtifactWorkspace] = field(default=None, repr=False)
    extractor: Optional[str] = None

    # -------------------------------------------------------------------------
    # Rendering
    # -------------------------------------------------------------------------

    def compose(self) -> ComposedMarkdown:
        return compose(
            self.segments,
            self.artifacts,
            self.descriptor,
            options=self.options,
            title_hint=self.title_hint,
            generated_at=self.generated_at,
        )

    @property
    def markdown(self) -> str:
        """Markdown composed from the current segment state."""
        return self.compose().markdown

    @property
    def title(self) -> Optional[str]:
        return self.compose().title

    @property
    def workspace_directory(self) -> Optional[Path]:
        if self.workspace is None or self.workspace.released:
            return None
        return self.workspace.directory

    def persist_markdown(self, name: Optional[str] = None) -> Optional[str]:
        """
        Write the current markdown into the workspace.

        Returns:
            Path of the written file, or None without a live workspace.
        """
        if self.workspace is None or self.workspace.released:
            return None
        name = name or f"{sanitize_name(self.descriptor.stem, fallback='document')}.md"
        path = self.workspace.persist_text(name, self.markdown)
        self.metadata[MetadataKeys.WORKSPACE_MARKDOWN_FILE] = path
        return path

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def close(self) -> None:
        """Release the workspace. Safe to call more than once."""
        if self.workspace is not None:
            self.workspace.release()

    async def aclose(self) -> None:
        if self.workspace is not None:
            await self.workspace.arelease()

    def __enter__(self) -> "ConversionResult":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    async def __aenter__(self) -> "ConversionResult":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()


__all__ = ["ConversionResult"]
