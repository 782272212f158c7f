# docmark/core/__init__.py
"""Shared vocabulary: documents, descriptors, metadata keys, errors."""

from docmark.core.cancellation import CancellationToken
from docmark.core.descriptor import InputDescriptor, normalize_extension
from docmark.core.document import (
    ConversionArtifacts,
    ImageArtifact,
    Segment,
    SegmentType,
    TableArtifact,
    TextArtifact,
)
from docmark.core.exceptions import (
    ConfigError,
    ConversionCancelled,
    ConversionError,
    DocmarkError,
    EnrichmentError,
    MissingDependencyError,
    ResourceError,
    ResourceLimitError,
    UnsupportedFormatError,
)
from docmark.core.metadata import MetadataKeys

__all__ = [
    "CancellationToken",
    "InputDescriptor",
    "normalize_extension",
    "ConversionArtifacts",
    "ImageArtifact",
    "Segment",
    "SegmentType",
    "TableArtifact",
    "TextArtifact",
    "ConfigError",
    "ConversionCancelled",
    "ConversionError",
    "DocmarkError",
    "EnrichmentError",
    "MissingDependencyError",
    "ResourceError",
    "ResourceLimitError",
    "UnsupportedFormatError",
    "MetadataKeys",
]
