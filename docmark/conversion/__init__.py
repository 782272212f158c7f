# docmark/conversion/__init__.py
"""
Conversion engine: workspace, buffering, tables, enrichment and composition.
"""

from docmark.conversion.composer import ComposedMarkdown, compose, derive_title
from docmark.conversion.converter import DocumentConverter
from docmark.conversion.enrichment import (
    EnrichmentContext,
    EnrichmentMiddleware,
    EnrichmentPipeline,
    ImageEnrichmentMiddleware,
    TableEnrichmentMiddleware,
    failure_policy,
    splice_enrichment,
)
from docmark.conversion.result import ConversionResult
from docmark.conversion.workspace import ArtifactWorkspace, create_workspace

__all__ = [
    "ArtifactWorkspace",
    "ComposedMarkdown",
    "ConversionResult",
    "DocumentConverter",
    "EnrichmentContext",
    "EnrichmentMiddleware",
    "EnrichmentPipeline",
    "ImageEnrichmentMiddleware",
    "TableEnrichmentMiddleware",
    "compose",
    "create_workspace",
    "derive_title",
    "failure_policy",
    "splice_enrichment",
]
