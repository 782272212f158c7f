# docmark/providers/base.py
"""
Enrichment provider contract.

A provider takes binary content plus the input descriptor and returns an
optional structured result. It may raise to signal failure; the enrichment
failure policy decides whether that is fatal. Providers do their own
retrying, if any.

    class MyProvider:
        provider_name = "my_provider"

        def analyze(self, content, descriptor, kind):
            return EnrichmentResult(description="A cat")
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Protocol, runtime_checkable

from docmark.core.descriptor import InputDescriptor


class ArtifactKind(str, Enum):
    """What the provider is being asked to look at."""

    IMAGE = "image"
    TABLE = "table"


@dataclass
class EnrichmentResult:
    """
    Structured provider output. Every field is optional.

    Attributes:
        description: Caption / detailed description text
        ocr_text: Text visible in the content
        tags: Short labels
        table_rows: Structured rows (header first) for table content
        metadata: Arbitrary string key/values merged into the artifact metadata
    """

    description: Optional[str] = None
    ocr_text: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    table_rows: Optional[List[List[str]]] = None
    metadata: Dict[str, str] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not (self.description or self.ocr_text or self.tags or self.table_rows or self.metadata)


@runtime_checkable
class EnrichmentProvider(Protocol):
    """Protocol for enrichment providers."""

    provider_name: str

    def analyze(
        self,
        content: bytes,
        descriptor: InputDescriptor,
        kind: ArtifactKind,
    ) -> Optional[EnrichmentResult]:
        """
        Analyze content.

        Args:
            content: Image bytes, or UTF-8 table markdown for tables
            descriptor: Descriptor of the artifact (mime type, file name)
            kind: Artifact kind

        Returns:
            EnrichmentResult, or None when the provider has nothing to add.
        """
        ...


class CallableProvider:
    """Adapt a plain function ``fn(content, descriptor) -> EnrichmentResult | None``."""

    def __init__(
        self,
        fn: Callable[[bytes, InputDescriptor], Optional[EnrichmentResult]],
        provider_name: Optional[str] = None,
    ):
        self._fn = fn
        self.provider_name = provider_name or getattr(fn, "__name__", "callable")

    def analyze(
        self,
        content: bytes,
        descriptor: InputDescriptor,
        kind: ArtifactKind,
    ) -> Optional[EnrichmentResult]:
        return self._fn(content, descriptor)

    def __repr__(self) -> str:
        return f"CallableProvider({self.provider_name!r})"


__all__ = ["ArtifactKind", "EnrichmentResult", "EnrichmentProvider", "CallableProvider"]
