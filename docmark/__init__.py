"""
docmark - convert documents into normalized markdown.

Quick Start:
    >>> from docmark import DocumentConverter
    >>> with DocumentConverter().convert("report.pdf") as result:
    ...     print(result.title)
    ...     print(result.markdown)

Public API:
    Engine:
        - DocumentConverter: Dispatch, extraction, enrichment
        - ConversionResult: Segments, artifacts, lazily composed markdown

    Model:
        - Segment / SegmentType: Ordered output units
        - ImageArtifact / TableArtifact / ConversionArtifacts
        - InputDescriptor: What is known about an input

    Extension points:
        - Extractor / ExtractorRegistry: Format plugins
        - EnrichmentPipeline / EnrichmentProvider: Post-extraction enrichment

Architecture:
    docmark/
    ├── core/          # Data model, descriptors, errors, HTTP helpers
    ├── config/        # Pydantic schema + YAML defaults
    ├── extractors/    # Registry and format plugins
    ├── conversion/    # Workspace, tables, enrichment, composer, engine
    ├── providers/     # Enrichment providers (vision model)
    └── cli/           # Typer CLI
"""

__version__ = "0.1.0"

from docmark.config import DocmarkConfig, load_config
from docmark.conversion import (
    ArtifactWorkspace,
    ConversionResult,
    DocumentConverter,
    EnrichmentPipeline,
    compose,
)
from docmark.core import (
    CancellationToken,
    ConversionArtifacts,
    ConversionCancelled,
    ConversionError,
    DocmarkError,
    EnrichmentError,
    ImageArtifact,
    InputDescriptor,
    MetadataKeys,
    ResourceError,
    Segment,
    SegmentType,
    TableArtifact,
    UnsupportedFormatError,
)
from docmark.extractors import Extractor, ExtractorRegistry
from docmark.providers import EnrichmentProvider, EnrichmentResult

__all__ = [
    "__version__",
    "DocmarkConfig",
    "load_config",
    "DocumentConverter",
    "ConversionResult",
    "ArtifactWorkspace",
    "EnrichmentPipeline",
    "compose",
    "CancellationToken",
    "ConversionArtifacts",
    "ImageArtifact",
    "TableArtifact",
    "Segment",
    "SegmentType",
    "InputDescriptor",
    "MetadataKeys",
    "DocmarkError",
    "UnsupportedFormatError",
    "ConversionError",
    "EnrichmentError",
    "ResourceError",
    "ConversionCancelled",
    "Extractor",
    "ExtractorRegistry",
    "EnrichmentProvider",
    "EnrichmentResult",
]
