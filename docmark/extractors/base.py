# docmark/extractors/base.py
"""
Extractor protocol and the types extractors exchange with the engine.

Acceptance is two-phase:
    1. accepts_metadata(descriptor)      - cheap, extension / mime type only
    2. accepts_content(stream, descriptor) - may read a bounded prefix and
       must leave the stream position where it found it

Flow: ExtractorRegistry.select() → Extractor.convert() → ExtractionResult
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, BinaryIO, Dict, List, Optional, Protocol, Set, runtime_checkable

from docmark.config.schema import DocmarkConfig
from docmark.core.cancellation import CancellationToken
from docmark.core.descriptor import InputDescriptor
from docmark.core.document import ConversionArtifacts, Segment

if TYPE_CHECKING:
    from docmark.conversion.workspace import ArtifactWorkspace
    from docmark.extractors.registry import ExtractorRegistry


@dataclass
class ExtractionResult:
    """What an extractor hands over: it gives up ownership of segments and artifacts."""

    segments: List[Segment] = field(default_factory=list)
    artifacts: ConversionArtifacts = field(default_factory=ConversionArtifacts)
    metadata: Dict[str, str] = field(default_factory=dict)
    title: Optional[str] = None

    def __repr__(self) -> str:
        return (
            f"ExtractionResult({len(self.segments)} segments, "
            f"{len(self.artifacts.images)} images, {len(self.artifacts.tables)} tables)"
        )


@dataclass
class ExtractionContext:
    """
    Per-call resources available to an extractor.

    Attributes:
        workspace: Staging area for large payloads
        config: Effective configuration
        registry: Registry for nested dispatch (archives)
        cancel: Cancellation signal to check between units of work
    """

    workspace: "ArtifactWorkspace"
    config: DocmarkConfig = field(default_factory=DocmarkConfig)
    registry: Optional["ExtractorRegistry"] = None
    cancel: Optional[CancellationToken] = None

    def raise_if_cancelled(self) -> None:
        if self.cancel is not None:
            self.cancel.raise_if_cancelled()

    def materialize(self, stream: BinaryIO, descriptor: InputDescriptor) -> Path:
        """
        A local file with the stream's content, for libraries that want a path.

        Uses ``descriptor.local_path`` when it exists, otherwise copies the
        stream into the workspace. The stream position is restored.
        """
        if descriptor.local_path is not None and descriptor.local_path.is_file():
            return descriptor.local_path
        position = stream.tell()
        try:
            name = descriptor.filename or f"input{descriptor.extension or ''}"
            return Path(self.workspace.persist_stream(name, stream, cancel=self.cancel))
        finally:
            stream.seek(position)

    def child(self, name: str) -> "ExtractionContext":
        """Context for a nested document (archive member) with its own sub-workspace."""
        return ExtractionContext(
            workspace=self.workspace.child(name),
            config=self.config,
            registry=self.registry,
            cancel=self.cancel,
        )


@runtime_checkable
class Extractor(Protocol):
    """
    Protocol for format-specific extractors.

    Implementations are plain classes (usually dataclasses) with a
    ``plugin_name`` and the three methods below. They are registered on an
    ExtractorRegistry with a priority.
    """

    plugin_name: str
    supported_extensions: Set[str]

    def accepts_metadata(self, descriptor: InputDescriptor) -> bool:
        """Cheap check based on extension / mime type."""
        ...

    def accepts_content(self, stream: BinaryIO, descriptor: InputDescriptor) -> bool:
        """Content sniff; must restore the stream position."""
        ...

    def convert(
        self,
        stream: BinaryIO,
        descriptor: InputDescriptor,
        context: ExtractionContext,
    ) -> ExtractionResult:
        """
        Produce segments and artifacts.

        Raises:
            Exception: Any failure; the registry wraps it in ConversionError
                       naming this extractor.
        """
        ...


__all__ = ["ExtractionResult", "ExtractionContext", "Extractor"]
