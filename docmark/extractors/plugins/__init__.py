# docmark/extractors/plugins/__init__.py
"""
Built-in extractor plugins.
"""

from typing import List, Tuple

from docmark.extractors.plugins.archive import ZipExtractor
from docmark.extractors.plugins.csv import CSVExtractor
from docmark.extractors.plugins.docling import DoclingExtractor
from docmark.extractors.plugins.image import ImageExtractor
from docmark.extractors.plugins.notebook import NotebookExtractor
from docmark.extractors.plugins.plaintext import PlainTextExtractor


def default_extractors() -> List[Tuple[object, float]]:
    """Fresh instances of the built-in extractors with their priorities."""
    extractors = [
        ZipExtractor(),
        CSVExtractor(),
        NotebookExtractor(),
        ImageExtractor(),
        DoclingExtractor(),
        PlainTextExtractor(),
    ]
    return [(e, e.priority) for e in extractors]


__all__ = [
    "default_extractors",
    "ZipExtractor",
    "CSVExtractor",
    "DoclingExtractor",
    "ImageExtractor",
    "NotebookExtractor",
    "PlainTextExtractor",
]
