# docmark/config/__init__.py
"""Configuration models and loading."""

from docmark.config.loader import coerce_config, deep_merge, load_config
from docmark.config.schema import (
    ArchiveOptions,
    BufferOptions,
    DocmarkConfig,
    EnrichmentOptions,
    ProviderConfig,
    SegmentOptions,
    StorageOptions,
)

__all__ = [
    "coerce_config",
    "deep_merge",
    "load_config",
    "ArchiveOptions",
    "BufferOptions",
    "DocmarkConfig",
    "EnrichmentOptions",
    "ProviderConfig",
    "SegmentOptions",
    "StorageOptions",
]
