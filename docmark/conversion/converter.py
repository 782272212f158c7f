# docmark/conversion/converter.py
"""
DocumentConverter - the conversion engine.

Flow for one call:

    source ──► descriptor ──► buffer (seekable) ──► workspace
                                                        │
                  ┌─────────────────────────────────────┘
                  ▼
          ExtractorRegistry.extract()  ──►  EnrichmentPipeline.execute() (once)
                                                        │
                                                        ▼
                                               ConversionResult
                                   (markdown composed on every access)

The workspace is released immediately when anything fails (including
cancellation). On success the ConversionResult owns it.

Usage:
    converter = DocumentConverter()
    with converter.convert("report.pdf") as result:
        print(result.markdown)
"""

from __future__ import annotations

import asyncio
import functools
import io
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO, Dict, Mapping, Optional, Tuple, Union

from docmark.config.loader import coerce_config
from docmark.config.schema import DocmarkConfig
from docmark.conversion.buffering import buffer_stream
from docmark.conversion.enrichment import EnrichmentContext, EnrichmentPipeline, FailurePolicy
from docmark.conversion.result import ConversionResult
from docmark.conversion.workspace import ArtifactWorkspace, create_workspace, sanitize_name
from docmark.core.cancellation import CancellationToken
from docmark.core.descriptor import InputDescriptor
from docmark.core.document import SegmentType
from docmark.core.exceptions import ConversionError, DocmarkError, EnrichmentError
from docmark.core.metadata import MetadataKeys
from docmark.extractors.base import ExtractionContext, ExtractionResult, Extractor
from docmark.extractors.registry import ExtractorRegistry
from docmark.logging.logger import get_logger
from docmark.logging.tags import DISPATCH, ENRICH
from docmark.providers import EnrichmentProvider, get_provider

logger = get_logger(__name__)

Source = Union[str, Path, bytes, bytearray, BinaryIO]


class DocumentConverter:
    """
    Converts documents to markdown.

    Args:
        registry: Extractor registry. Defaults to the built-in extractors
                  minus ``config.disabled_extractors``.
        config: DocmarkConfig, a mapping, a YAML path, or None for defaults.
        pipeline: Enrichment pipeline. Defaults to one built from
                  ``config.enrichment``.
        provider: Enrichment provider used when building the default
                  pipeline. Defaults to ``config.enrichment.provider``.
        is_fatal: Failure policy for provider errors.
    """

    def __init__(
        self,
        registry: Optional[ExtractorRegistry] = None,
        config: Optional[Union[DocmarkConfig, Mapping, str, Path]] = None,
        pipeline: Optional[EnrichmentPipeline] = None,
        provider: Optional[EnrichmentProvider] = None,
        is_fatal: Optional[FailurePolicy] = None,
    ):
        self.config = coerce_config(config)
        self.registry = registry or ExtractorRegistry(disabled=list(self.config.disabled_extractors))
        if pipeline is None:
            pipeline = EnrichmentPipeline.from_config(
                self.config.enrichment, provider or self._configured_provider(), is_fatal
            )
        self.pipeline = pipeline

    def _configured_provider(self) -> Optional[EnrichmentProvider]:
        options = self.config.enrichment
        if not options.enabled or options.provider is None:
            return None
        return get_provider(options.provider.plugin_name, **options.provider.kwargs)

    def register_extractor(self, extractor: Extractor, priority: Optional[float] = None) -> None:
        self.registry.register(extractor, priority)

    # -------------------------------------------------------------------------
    # Conversion
    # -------------------------------------------------------------------------

    def convert(
        self,
        source: Source,
        descriptor: Optional[InputDescriptor] = None,
        *,
        cancel: Optional[CancellationToken] = None,
    ) -> ConversionResult:
        """
        Convert one document.

        Args:
            source: Path, raw bytes, or a binary stream (seekable or not).
            descriptor: Input metadata; derived from the path when omitted.
            cancel: Cooperative cancellation token.

        Raises:
            UnsupportedFormatError: No extractor accepted the input.
            ConversionError: Extraction failed, or a fatal enrichment error.
            ResourceError: Buffering or workspace persistence failed.
            ConversionCancelled: ``cancel`` was triggered.
        """
        descriptor, stream, owned = self._open(source, descriptor)
        try:
            return self._convert_stream(stream, descriptor, cancel)
        finally:
            if owned:
                stream.close()

    async def aconvert(
        self,
        source: Source,
        descriptor: Optional[InputDescriptor] = None,
        *,
        cancel: Optional[CancellationToken] = None,
    ) -> ConversionResult:
        """
        Run convert() on a worker thread.

        Cancelling the awaiting task cancels the conversion token, waits for
        the worker, and releases the workspace of any result it still
        produced before re-raising.
        """
        token = cancel or CancellationToken()
        loop = asyncio.get_running_loop()
        future = loop.run_in_executor(None, functools.partial(self.convert, source, descriptor, cancel=token))
        try:
            return await asyncio.shield(future)
        except asyncio.CancelledError:
            token.cancel("Awaiting task was cancelled")
            try:
                result = await future
            except DocmarkError as e:
                logger.debug(f"{DISPATCH} Worker stopped after cancellation: {e}")
            else:
                await result.aclose()
            raise

    def _open(
        self,
        source: Source,
        descriptor: Optional[InputDescriptor],
    ) -> Tuple[InputDescriptor, BinaryIO, bool]:
        if isinstance(source, (str, Path)):
            path = Path(source)
            if descriptor is None:
                descriptor = InputDescriptor.from_path(path)
            elif descriptor.local_path is None:
                descriptor = descriptor.copy_with(local_path=path.resolve())
            return descriptor, open(path, "rb"), True
        if isinstance(source, (bytes, bytearray)):
            return descriptor or InputDescriptor(), io.BytesIO(bytes(source)), True
        if descriptor is None:
            name = getattr(source, "name", None)
            descriptor = InputDescriptor(filename=Path(name).name) if isinstance(name, str) else InputDescriptor()
        return descriptor, source, False

    def _convert_stream(
        self,
        stream: BinaryIO,
        descriptor: InputDescriptor,
        cancel: Optional[CancellationToken],
    ) -> ConversionResult:
        if cancel is not None:
            cancel.raise_if_cancelled()

        storage = self.config.storage
        workspace = create_workspace(descriptor, storage)
        logger.debug(f"{DISPATCH} Converting {descriptor.display_name} in {workspace.directory}")

        try:
            buffered = buffer_stream(
                stream,
                memory_limit=self.config.buffer.memory_limit,
                max_bytes=self.config.buffer.max_bytes,
                directory=workspace.directory,
                cancel=cancel,
            )
            try:
                result = self._run(buffered, descriptor, workspace, cancel)
            finally:
                if buffered is not stream:
                    buffered.close()
            if storage.persist_markdown:
                result.persist_markdown()
        except BaseException:
            workspace.release()
            raise

        logger.info(
            f"{DISPATCH} Converted {descriptor.display_name} via '{result.extractor}' "
            f"({len(result.segments)} segments)"
        )
        return result

    def _run(
        self,
        stream: BinaryIO,
        descriptor: InputDescriptor,
        workspace: ArtifactWorkspace,
        cancel: Optional[CancellationToken],
    ) -> ConversionResult:
        metadata: Dict[str, str] = {}
        if self.config.storage.copy_source_document:
            metadata[MetadataKeys.WORKSPACE_SOURCE_FILE] = self._copy_source(
                stream, descriptor, workspace, cancel
            )

        context = ExtractionContext(
            workspace=workspace, config=self.config, registry=self.registry, cancel=cancel
        )
        extractor, extraction = self.registry.extract(stream, descriptor, context)
        self._enrich(extractor.plugin_name, descriptor, extraction, cancel)

        metadata.update(self._document_metadata(extractor.plugin_name, extraction, workspace))
        return ConversionResult(
            segments=extraction.segments,
            artifacts=extraction.artifacts,
            descriptor=descriptor,
            options=self.config.segments,
            title_hint=extraction.title,
            generated_at=datetime.now(timezone.utc),
            metadata=metadata,
            workspace=workspace,
            extractor=extractor.plugin_name,
        )

    def _copy_source(
        self,
        stream: BinaryIO,
        descriptor: InputDescriptor,
        workspace: ArtifactWorkspace,
        cancel: Optional[CancellationToken],
    ) -> str:
        name = "source-" + sanitize_name(descriptor.filename, fallback=f"input{descriptor.extension or ''}")
        if descriptor.local_path is not None and descriptor.local_path.is_file():
            return workspace.persist_file(name, descriptor.local_path)
        position = stream.tell()
        try:
            return workspace.persist_stream(name, stream, cancel=cancel)
        finally:
            stream.seek(position)

    def _enrich(
        self,
        extractor_name: str,
        descriptor: InputDescriptor,
        extraction: ExtractionResult,
        cancel: Optional[CancellationToken],
    ) -> None:
        if not self.pipeline.is_enabled:
            return
        context = EnrichmentContext(
            descriptor=descriptor,
            segments=extraction.segments,
            artifacts=extraction.artifacts,
            cancel=cancel,
        )
        try:
            self.pipeline.execute(context)
        except EnrichmentError as e:
            logger.error(f"{ENRICH} Fatal provider error on {descriptor.display_name}: {e}")
            raise ConversionError(
                f"Enrichment provider '{e.provider}' failed: {e}",
                extractor=extractor_name,
                provider=e.provider,
                cause=e.cause or e,
            ) from e

    def _document_metadata(
        self,
        extractor_name: str,
        extraction: ExtractionResult,
        workspace: ArtifactWorkspace,
    ) -> Dict[str, str]:
        segments = extraction.segments
        artifacts = extraction.artifacts
        metadata = {str(k): str(v) for k, v in extraction.metadata.items()}
        metadata.update({str(k): str(v) for k, v in artifacts.metadata.items()})

        if MetadataKeys.DOCUMENT_PAGES not in metadata:
            pages = sum(1 for s in segments if s.type in (SegmentType.PAGE, SegmentType.SLIDE))
            metadata[MetadataKeys.DOCUMENT_PAGES] = str(pages or len(segments))
        metadata[MetadataKeys.DOCUMENT_SEGMENTS] = str(len(segments))
        metadata[MetadataKeys.DOCUMENT_IMAGES] = str(len(artifacts.images))
        metadata[MetadataKeys.DOCUMENT_TABLES] = str(len(artifacts.tables))
        metadata[MetadataKeys.EXTRACTOR] = extractor_name
        if extraction.title:
            metadata[MetadataKeys.DOCUMENT_TITLE_HINT] = extraction.title
        if not workspace.delete_on_release:
            metadata[MetadataKeys.WORKSPACE_DIRECTORY] = str(workspace.directory)
        return metadata

    def __repr__(self) -> str:
        return f"DocumentConverter({self.registry!r}, {self.pipeline!r})"


__all__ = ["DocumentConverter", "Source"]
