# docmark/conversion/enrichment.py
"""
Enrichment pipeline: post-extraction mutation of segments and artifacts.

The pipeline runs once per successful extraction. Each middleware gets
sequential, exclusive access to the segment list and artifact set. Provider
calls may run on a thread pool, but their results are applied to segments
one artifact at a time, in artifact order.

Splice rule: enrichment text goes directly after the artifact's
``placeholder_markdown`` inside ``segments[segment_index]``; if the
placeholder is missing it is appended to the end of that segment instead.
Segments are never reordered or removed and ``segment_index`` never changes.

Failure rule: a provider error leaves the artifact unenriched and is logged,
unless the failure policy classifies it as fatal (authentication /
authorization by default), in which case an EnrichmentError(fatal=True)
propagates.
"""

from __future__ import annotations

import json
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import PurePath
from typing import (
    TYPE_CHECKING,
    Callable,
    Iterable,
    List,
    Optional,
    Protocol,
    Sequence,
    Tuple,
    TypeVar,
    runtime_checkable,
)

from docmark.conversion.formatting import format_image_enrichment, format_table_enrichment
from docmark.conversion.tables import render_markdown_table
from docmark.core.cancellation import CancellationToken
from docmark.core.descriptor import InputDescriptor
from docmark.core.document import ConversionArtifacts, ImageArtifact, Segment, TableArtifact
from docmark.core.exceptions import ConversionCancelled, EnrichmentError
from docmark.core.http import AuthenticationError, PermissionDeniedError
from docmark.core.metadata import MetadataKeys
from docmark.logging.logger import get_logger
from docmark.logging.tags import ENRICH
from docmark.providers.base import ArtifactKind, EnrichmentProvider, EnrichmentResult

if TYPE_CHECKING:
    from docmark.config.schema import EnrichmentOptions

logger = get_logger(__name__)

T = TypeVar("T")

# =============================================================================
# Failure policy
# =============================================================================

FailurePolicy = Callable[[BaseException], bool]

FATAL_ERROR_TYPES: Tuple[type, ...] = (AuthenticationError, PermissionDeniedError, PermissionError)


def default_is_fatal(exc: BaseException) -> bool:
    """Authentication / authorization failures are fatal; everything else degrades."""
    return isinstance(exc, FATAL_ERROR_TYPES)


def failure_policy(extra_fatal_names: Iterable[str] = ()) -> FailurePolicy:
    """
    Default policy extended with exception class names (matched along the MRO).

    Example:
        failure_policy(["QuotaExceededError"])
    """
    names = {n.strip() for n in extra_fatal_names if n and n.strip()}
    if not names:
        return default_is_fatal

    def is_fatal(exc: BaseException) -> bool:
        if default_is_fatal(exc):
            return True
        return any(cls.__name__ in names for cls in type(exc).__mro__)

    return is_fatal


# =============================================================================
# Splicing
# =============================================================================


def splice_enrichment(
    segments: List[Segment],
    segment_index: int,
    placeholder: Optional[str],
    text: str,
) -> bool:
    """
    Insert ``text`` right after ``placeholder`` in ``segments[segment_index]``.

    Returns True when the placeholder was found, False when the text had to
    be appended to the end of the segment.
    """
    if not text:
        return False
    segment = segments[segment_index]
    markdown = segment.markdown

    if placeholder and placeholder in markdown:
        end = markdown.index(placeholder) + len(placeholder)
        rest = markdown[end:]
        tail = "" if not rest or rest.startswith("\n") else "\n"
        segment.markdown = f"{markdown[:end]}\n{text}{tail}{rest}"
        return True

    separator = "" if not markdown or markdown.endswith("\n") else "\n"
    segment.markdown = f"{markdown}{separator}{text}"
    return False


# =============================================================================
# Context / Middleware protocol
# =============================================================================


@dataclass
class EnrichmentContext:
    """Everything a middleware may read or mutate for one document."""

    descriptor: InputDescriptor
    segments: List[Segment]
    artifacts: ConversionArtifacts
    cancel: Optional[CancellationToken] = None

    def raise_if_cancelled(self) -> None:
        if self.cancel is not None:
            self.cancel.raise_if_cancelled()


@runtime_checkable
class EnrichmentMiddleware(Protocol):
    """One step of the pipeline."""

    name: str

    def invoke(self, context: EnrichmentContext) -> None: ...


class _ProviderMiddleware:
    """Shared provider-calling logic for artifact middlewares."""

    name = "provider"
    kind = ArtifactKind.IMAGE

    def __init__(
        self,
        provider: EnrichmentProvider,
        *,
        max_parallel: int = 4,
        is_fatal: FailurePolicy = default_is_fatal,
    ):
        self.provider = provider
        self.max_parallel = max(1, max_parallel)
        self.is_fatal = is_fatal

    def _analyze(self, content: bytes, descriptor: InputDescriptor) -> Optional[EnrichmentResult]:
        name = self.provider.provider_name
        try:
            return self.provider.analyze(content, descriptor, self.kind)
        except ConversionCancelled:
            raise
        except Exception as e:
            if self.is_fatal(e):
                raise EnrichmentError(
                    f"Provider '{name}' failed: {e}", provider=name, fatal=True, cause=e
                ) from e
            logger.warning(f"{ENRICH} Provider '{name}' failed on {descriptor.display_name}: {e}")
            return None

    def _map(
        self,
        context: EnrichmentContext,
        fn: Callable[[T], Optional[EnrichmentResult]],
        items: Sequence[T],
    ) -> List[Optional[EnrichmentResult]]:
        def call(item: T) -> Optional[EnrichmentResult]:
            context.raise_if_cancelled()
            return fn(item)

        if self.max_parallel == 1 or len(items) <= 1:
            return [call(item) for item in items]

        with ThreadPoolExecutor(max_workers=min(self.max_parallel, len(items))) as pool:
            futures = [pool.submit(call, item) for item in items]
            try:
                return [f.result() for f in futures]
            except BaseException:
                for f in futures:
                    f.cancel()
                raise


class ImageEnrichmentMiddleware(_ProviderMiddleware):
    """Describe image artifacts and splice the description after each placeholder."""

    name = "image_enrichment"
    kind = ArtifactKind.IMAGE

    def invoke(self, context: EnrichmentContext) -> None:
        pending = [
            image
            for image in context.artifacts.images
            if image.metadata.get(MetadataKeys.IMAGE_ENRICHED) != "true"
        ]
        if not pending:
            return

        results = self._map(context, self._analyze_image, pending)

        enriched = 0
        for image, result in zip(pending, results):
            context.raise_if_cancelled()
            if result is None or result.is_empty:
                continue
            self._apply(image, result)
            enriched += 1
            text = format_image_enrichment(result.description, result.ocr_text)
            if image.segment_index is not None and text:
                splice_enrichment(context.segments, image.segment_index, image.placeholder_markdown, text)

        logger.info(f"{ENRICH} Enriched {enriched}/{len(pending)} images via {self.provider.provider_name}")

    def _analyze_image(self, image: ImageArtifact) -> Optional[EnrichmentResult]:
        content = image.read_bytes()
        if not content:
            return None
        filename = PurePath(image.file_path).name if image.file_path else image.label
        return self._analyze(content, InputDescriptor(mime_type=image.content_type, filename=filename))

    def _apply(self, image: ImageArtifact, result: EnrichmentResult) -> None:
        if result.description:
            image.detailed_description = result.description.strip()
            image.metadata[MetadataKeys.DETAILED_DESCRIPTION] = image.detailed_description
            image.metadata.setdefault(MetadataKeys.CAPTION, image.detailed_description.splitlines()[0])
        if result.ocr_text:
            image.raw_text = result.ocr_text.strip()
            image.metadata[MetadataKeys.OCR_TEXT] = image.raw_text
        if result.tags:
            image.metadata[MetadataKeys.TAGS] = ", ".join(result.tags)
        image.metadata.update({k: str(v) for k, v in result.metadata.items()})
        image.metadata[MetadataKeys.IMAGE_ENRICHED] = "true"
        image.metadata[MetadataKeys.ENRICHMENT_PROVIDER] = self.provider.provider_name


class TableEnrichmentMiddleware(_ProviderMiddleware):
    """Ask the provider for a description / structured rows of each table."""

    name = "table_enrichment"
    kind = ArtifactKind.TABLE

    def invoke(self, context: EnrichmentContext) -> None:
        pending = [
            table
            for table in context.artifacts.tables
            if table.rows and table.metadata.get(MetadataKeys.TABLE_ENRICHED) != "true"
        ]
        if not pending:
            return

        results = self._map(context, self._analyze_table, pending)

        for table, result in zip(pending, results):
            context.raise_if_cancelled()
            if result is None or result.is_empty:
                continue
            if result.description:
                table.detailed_description = result.description.strip()
                table.metadata[MetadataKeys.DETAILED_DESCRIPTION] = table.detailed_description
            if result.table_rows:
                table.metadata[MetadataKeys.STRUCTURED_TABLE] = json.dumps(
                    result.table_rows, ensure_ascii=False
                )
            table.metadata.update({k: str(v) for k, v in result.metadata.items()})
            table.metadata[MetadataKeys.TABLE_ENRICHED] = "true"
            table.metadata[MetadataKeys.ENRICHMENT_PROVIDER] = self.provider.provider_name

            text = format_table_enrichment(result.description, result.table_rows)
            if table.segment_index is not None and text:
                splice_enrichment(context.segments, table.segment_index, table.placeholder_markdown, text)

    def _analyze_table(self, table: TableArtifact) -> Optional[EnrichmentResult]:
        content = render_markdown_table(table.rows).encode("utf-8")
        return self._analyze(content, InputDescriptor(mime_type="text/markdown", extension=".md"))


# =============================================================================
# Pipeline
# =============================================================================


class EnrichmentPipeline:
    """
    Ordered middlewares, each invoked exactly once per document.

    An empty pipeline is a valid no-op.

    Usage:
        pipeline = EnrichmentPipeline([ImageEnrichmentMiddleware(provider)])
        pipeline.execute(EnrichmentContext(descriptor, segments, artifacts))
    """

    def __init__(self, middlewares: Iterable[EnrichmentMiddleware] = ()):
        self.middlewares: List[EnrichmentMiddleware] = list(middlewares)

    @classmethod
    def from_config(
        cls,
        options: Optional["EnrichmentOptions"],
        provider: Optional[EnrichmentProvider] = None,
        is_fatal: Optional[FailurePolicy] = None,
    ) -> "EnrichmentPipeline":
        """Build the pipeline described by config; disabled or provider-less config is a no-op."""
        if options is None or not options.enabled or provider is None:
            return cls()

        policy = is_fatal or failure_policy(options.fatal_error_types)
        middlewares: List[EnrichmentMiddleware] = []
        if options.images:
            middlewares.append(
                ImageEnrichmentMiddleware(provider, max_parallel=options.max_parallel, is_fatal=policy)
            )
        if options.tables:
            middlewares.append(
                TableEnrichmentMiddleware(provider, max_parallel=options.max_parallel, is_fatal=policy)
            )
        logger.debug(f"{ENRICH} Pipeline: {[m.name for m in middlewares]}")
        return cls(middlewares)

    @property
    def is_enabled(self) -> bool:
        return bool(self.middlewares)

    def execute(self, context: EnrichmentContext) -> None:
        """
        Run every middleware once, in order.

        Raises:
            EnrichmentError: A fatal provider error (``fatal=True``).
            ConversionCancelled: The context's token was cancelled.
        """
        for middleware in self.middlewares:
            context.raise_if_cancelled()
            try:
                middleware.invoke(context)
            except ConversionCancelled:
                raise
            except EnrichmentError as e:
                if e.fatal:
                    raise
                logger.warning(f"{ENRICH} Middleware '{middleware.name}' failed: {e}")
            except Exception as e:
                logger.warning(f"{ENRICH} Middleware '{middleware.name}' failed: {e}")

    def __repr__(self) -> str:
        return f"EnrichmentPipeline({[m.name for m in self.middlewares]})"


__all__ = [
    "FailurePolicy",
    "FATAL_ERROR_TYPES",
    "default_is_fatal",
    "failure_policy",
    "splice_enrichment",
    "EnrichmentContext",
    "EnrichmentMiddleware",
    "ImageEnrichmentMiddleware",
    "TableEnrichmentMiddleware",
    "EnrichmentPipeline",
]
