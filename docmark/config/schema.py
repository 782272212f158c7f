# docmark/config/schema.py
"""
Configuration schemas for docmark.

This module defines Pydantic models for:
- StorageOptions: Artifact workspace policy (deletion, source copy, markdown copy)
- SegmentOptions: How segments are rendered into markdown
- BufferOptions: Ceilings for buffering non-seekable inputs
- ArchiveOptions: Archive member limits and parallelism
- ProviderConfig / EnrichmentOptions: Enrichment provider wiring
- DocmarkConfig: Top-level configuration
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

MEBIBYTE = 1024 * 1024


class StorageOptions(BaseModel):
    """
    Artifact workspace storage policy.

    Example YAML:
        storage:
          delete_on_release: false
          artifact_directory: ./artifacts
    """

    delete_on_release: bool = Field(
        default=True, description="Delete the workspace directory when it is released"
    )
    copy_source_document: bool = Field(
        default=True, description="Persist a copy of the source document in the workspace"
    )
    persist_markdown: bool = Field(
        default=True, description="Write the rendered markdown into the workspace"
    )
    artifact_directory: Optional[str] = Field(
        default=None, description="Root for workspaces (default: <cwd>/.docmark/artifacts)"
    )

    model_config = ConfigDict(extra="forbid")


class SegmentOptions(BaseModel):
    """Markdown composition options."""

    include_front_matter: bool = Field(default=True, description="Emit YAML front matter")
    include_segment_metadata: bool = Field(
        default=False, description="Annotate each segment with its type, number and label"
    )
    metadata_preamble: bool = Field(
        default=False, description="Render Metadata segments first, as a preamble block"
    )
    include_document_metadata: bool = Field(
        default=False, description="Append a document metadata comment at the end"
    )

    model_config = ConfigDict(extra="forbid")


class BufferOptions(BaseModel):
    """Ceilings for buffering non-seekable input streams."""

    memory_limit: int = Field(
        default=8 * MEBIBYTE, ge=0, description="Bytes kept in memory before spilling to disk"
    )
    max_bytes: Optional[int] = Field(
        default=None, gt=0, description="Hard ceiling for a buffered input (None: unlimited)"
    )

    model_config = ConfigDict(extra="forbid")


class ArchiveOptions(BaseModel):
    """Archive extraction limits."""

    max_member_bytes: int = Field(
        default=50 * MEBIBYTE, gt=0, description="Members larger than this are skipped"
    )
    parallel: bool = Field(default=False, description="Convert members on a thread pool")
    max_workers: int = Field(default=4, ge=1, description="Thread pool size when parallel")

    model_config = ConfigDict(extra="forbid")


class ProviderConfig(BaseModel):
    """
    Enrichment provider configuration.

    Example YAML:
        enrichment:
          provider:
            plugin_name: openai_vision
            kwargs:
              model: gpt-4o-mini
    """

    plugin_name: str = Field(..., description="Provider plugin name")
    kwargs: Dict[str, Any] = Field(default_factory=dict, description="Provider init kwargs")

    model_config = ConfigDict(extra="forbid")


class EnrichmentOptions(BaseModel):
    """Enrichment pipeline options."""

    enabled: bool = Field(default=False, description="Run the enrichment pipeline")
    images: bool = Field(default=True, description="Describe image artifacts")
    tables: bool = Field(default=False, description="Extract structured rows from tables")
    max_parallel: int = Field(default=4, ge=1, description="Concurrent provider calls")
    fatal_error_types: List[str] = Field(
        default_factory=list,
        description="Extra exception class names treated as fatal provider errors",
    )
    provider: Optional[ProviderConfig] = Field(default=None, description="Provider to use")

    model_config = ConfigDict(extra="forbid")


class DocmarkConfig(BaseModel):
    """Top-level docmark configuration."""

    storage: StorageOptions = Field(default_factory=StorageOptions)
    segments: SegmentOptions = Field(default_factory=SegmentOptions)
    buffer: BufferOptions = Field(default_factory=BufferOptions)
    archive: ArchiveOptions = Field(default_factory=ArchiveOptions)
    enrichment: EnrichmentOptions = Field(default_factory=EnrichmentOptions)
    fallback_on_failure: bool = Field(
        default=False,
        description="Try the next accepting extractor when the chosen one fails",
    )
    disabled_extractors: List[str] = Field(
        default_factory=list, description="Extractor names to leave unregistered"
    )

    model_config = ConfigDict(extra="forbid")

    @field_validator("disabled_extractors", mode="before")
    @classmethod
    def normalize_names(cls, v: Any) -> Any:
        """Accept a single name or a list; compare names case-insensitively."""
        if v is None:
            return []
        if isinstance(v, str):
            v = [v]
        return [str(name).strip().lower() for name in v]


__all__ = [
    "StorageOptions",
    "SegmentOptions",
    "BufferOptions",
    "ArchiveOptions",
    "ProviderConfig",
    "EnrichmentOptions",
    "DocmarkConfig",
]
