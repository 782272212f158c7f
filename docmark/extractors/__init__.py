# docmark/extractors/__init__.py
"""
Format extractors and the registry that dispatches inputs to them.

Extractors handle the "how" of extraction: turning one input stream into
ordered segments plus image and table artifacts.
"""

from docmark.extractors.base import ExtractionContext, ExtractionResult, Extractor
from docmark.extractors.registry import (
    PRIORITY_GENERIC_FORMAT,
    PRIORITY_SPECIFIC_FORMAT,
    ExtractorRegistration,
    ExtractorRegistry,
)

__all__ = [
    "Extractor",
    "ExtractionContext",
    "ExtractionResult",
    "ExtractorRegistry",
    "ExtractorRegistration",
    "PRIORITY_SPECIFIC_FORMAT",
    "PRIORITY_GENERIC_FORMAT",
]
