# tests/unit/test_enrichment.py
"""
Tests for the enrichment pipeline.

Verifies:
1. Splice places text right after the placeholder, or appends it
2. Provider failures degrade unless classified as fatal
3. Middlewares run once, in order; cancellation stops the run
"""

import json
import threading

import pytest

from docmark.config.schema import EnrichmentOptions
from docmark.conversion.enrichment import (
    EnrichmentContext,
    EnrichmentPipeline,
    ImageEnrichmentMiddleware,
    TableEnrichmentMiddleware,
    default_is_fatal,
    failure_policy,
    splice_enrichment,
)
from docmark.core.cancellation import CancellationToken
from docmark.core.descriptor import InputDescriptor
from docmark.core.document import ConversionArtifacts, ImageArtifact, Segment, TableArtifact
from docmark.core.exceptions import ConversionCancelled, EnrichmentError
from docmark.core.http import APIError, AuthenticationError, PermissionDeniedError, RateLimitError
from docmark.core.metadata import MetadataKeys
from docmark.providers.base import ArtifactKind, CallableProvider, EnrichmentResult

pytestmark = pytest.mark.tier1


class RecordingProvider:
    """Provider returning canned results, or raising, and recording calls."""

    provider_name = "recording"

    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = []
        self._lock = threading.Lock()

    def analyze(self, content, descriptor, kind):
        with self._lock:
            self.calls.append((content, kind))
        if self.error is not None:
            raise self.error
        return self.result


def _image_context(markdown="Intro\n![placeholder](x.png)\nOutro"):
    image = ImageArtifact(
        content=b"png-bytes",
        content_type="image/png",
        segment_index=0,
        placeholder_markdown="![placeholder](x.png)",
    )
    segments = [Segment(markdown=markdown)]
    return EnrichmentContext(
        descriptor=InputDescriptor(filename="doc.pdf"),
        segments=segments,
        artifacts=ConversionArtifacts(images=[image]),
    )


class TestSplice:
    """Tests for placeholder splicing."""

    def test_text_goes_right_after_placeholder(self):
        segments = [Segment(markdown="before ![placeholder](x) after")]

        found = splice_enrichment(segments, 0, "![placeholder](x)", "A cat")

        assert found
        assert segments[0].markdown == "before ![placeholder](x)\nA cat\n after"

    def test_placeholder_at_end_of_line(self):
        segments = [Segment(markdown="![placeholder](x)\nnext")]
        splice_enrichment(segments, 0, "![placeholder](x)", "A cat")

        assert segments[0].markdown == "![placeholder](x)\nA cat\nnext"

    def test_missing_placeholder_appends(self):
        segments = [Segment(markdown="some text"), Segment(markdown="untouched")]

        found = splice_enrichment(segments, 0, "![gone](x)", "A cat")

        assert not found
        assert segments[0].markdown == "some text\nA cat"
        assert segments[1].markdown == "untouched"

    def test_empty_text_is_noop(self):
        segments = [Segment(markdown="keep")]
        assert not splice_enrichment(segments, 0, "keep", "")
        assert segments[0].markdown == "keep"


class TestFailurePolicy:
    """Tests for fatal error classification."""

    @pytest.mark.parametrize(
        "error,fatal",
        [
            (AuthenticationError("denied"), True),
            (PermissionDeniedError("forbidden"), True),
            (PermissionError("no access"), True),
            (RateLimitError("slow down"), False),
            (APIError("server"), False),
            (TimeoutError(), False),
        ],
    )
    def test_default(self, error, fatal):
        assert default_is_fatal(error) is fatal

    def test_extra_names_match_along_mro(self):
        class QuotaError(RuntimeError):
            pass

        class HardQuotaError(QuotaError):
            pass

        policy = failure_policy(["QuotaError"])

        assert policy(HardQuotaError())
        assert policy(AuthenticationError("x"))
        assert not policy(RuntimeError())

    def test_no_extra_names_is_default(self):
        assert failure_policy([]) is default_is_fatal


class TestImageEnrichment:
    """Tests for ImageEnrichmentMiddleware."""

    def test_description_spliced_after_placeholder(self):
        context = _image_context()
        provider = RecordingProvider(EnrichmentResult(description="A cat", ocr_text="MEOW"))

        ImageEnrichmentMiddleware(provider).invoke(context)

        assert context.segments[0].markdown == (
            "Intro\n![placeholder](x.png)\nA cat\n\nVisible text:\n- MEOW\nOutro"
        )
        image = context.artifacts.images[0]
        assert image.detailed_description == "A cat"
        assert image.raw_text == "MEOW"
        assert image.metadata[MetadataKeys.IMAGE_ENRICHED] == "true"
        assert image.metadata[MetadataKeys.ENRICHMENT_PROVIDER] == "recording"
        assert provider.calls == [(b"png-bytes", ArtifactKind.IMAGE)]

    def test_enriched_images_are_skipped(self):
        context = _image_context()
        context.artifacts.images[0].metadata[MetadataKeys.IMAGE_ENRICHED] = "true"
        provider = RecordingProvider(EnrichmentResult(description="A cat"))

        ImageEnrichmentMiddleware(provider).invoke(context)

        assert provider.calls == []

    def test_none_result_leaves_segment_alone(self):
        context = _image_context()
        before = context.segments[0].markdown

        ImageEnrichmentMiddleware(RecordingProvider(None)).invoke(context)

        assert context.segments[0].markdown == before

    def test_non_fatal_error_degrades(self):
        context = _image_context()
        before = context.segments[0].markdown

        EnrichmentPipeline([ImageEnrichmentMiddleware(RecordingProvider(error=RateLimitError("429")))]).execute(
            context
        )

        assert context.segments[0].markdown == before
        assert MetadataKeys.IMAGE_ENRICHED not in context.artifacts.images[0].metadata

    def test_fatal_error_propagates(self):
        context = _image_context()
        pipeline = EnrichmentPipeline(
            [ImageEnrichmentMiddleware(RecordingProvider(error=AuthenticationError("bad key")))]
        )

        with pytest.raises(EnrichmentError) as exc_info:
            pipeline.execute(context)

        assert exc_info.value.fatal
        assert exc_info.value.provider == "recording"
        assert isinstance(exc_info.value.cause, AuthenticationError)

    def test_parallel_results_applied_in_artifact_order(self):
        images = [
            ImageArtifact(
                content=f"img{i}".encode(),
                segment_index=i,
                placeholder_markdown=f"![{i}](img{i}.png)",
            )
            for i in range(4)
        ]
        segments = [Segment(markdown=f"![{i}](img{i}.png)") for i in range(4)]
        context = EnrichmentContext(
            descriptor=InputDescriptor(), segments=segments, artifacts=ConversionArtifacts(images=images)
        )
        provider = CallableProvider(lambda content, descriptor: EnrichmentResult(description=content.decode()))

        ImageEnrichmentMiddleware(provider, max_parallel=4).invoke(context)

        assert [s.markdown for s in segments] == [f"![{i}](img{i}.png)\nimg{i}" for i in range(4)]


class TestTableEnrichment:
    """Tests for TableEnrichmentMiddleware."""

    def test_structured_rows_recorded_and_spliced(self):
        table = TableArtifact(
            rows=[["a", "b"], ["1", "2"]],
            segment_index=0,
            placeholder_markdown="| a | b |\n| --- | --- |\n| 1 | 2 |",
        )
        segments = [Segment(markdown=table.placeholder_markdown)]
        context = EnrichmentContext(
            descriptor=InputDescriptor(), segments=segments, artifacts=ConversionArtifacts(tables=[table])
        )
        provider = RecordingProvider(EnrichmentResult(description="Totals", table_rows=[["a", "b"], ["1", "2"]]))

        TableEnrichmentMiddleware(provider).invoke(context)

        assert json.loads(table.metadata[MetadataKeys.STRUCTURED_TABLE]) == [["a", "b"], ["1", "2"]]
        assert segments[0].markdown.startswith(table.placeholder_markdown + "\nTotals\n\n```json\n")
        assert provider.calls[0][1] == ArtifactKind.TABLE


class TestPipeline:
    """Tests for EnrichmentPipeline orchestration."""

    def test_empty_pipeline_is_noop(self):
        context = _image_context()
        pipeline = EnrichmentPipeline()

        pipeline.execute(context)

        assert not pipeline.is_enabled
        assert "Visible" not in context.segments[0].markdown

    def test_middlewares_run_once_in_order(self):
        order = []

        class Step:
            def __init__(self, name):
                self.name = name

            def invoke(self, context):
                order.append(self.name)

        EnrichmentPipeline([Step("first"), Step("second")]).execute(_image_context())

        assert order == ["first", "second"]

    def test_cancellation_stops_pipeline(self):
        context = _image_context()
        context.cancel = CancellationToken()
        context.cancel.cancel()
        provider = RecordingProvider(EnrichmentResult(description="A cat"))

        with pytest.raises(ConversionCancelled):
            EnrichmentPipeline([ImageEnrichmentMiddleware(provider)]).execute(context)
        assert provider.calls == []

    def test_from_config(self):
        provider = RecordingProvider()
        options = EnrichmentOptions(enabled=True, images=True, tables=True)

        pipeline = EnrichmentPipeline.from_config(options, provider)

        assert [m.name for m in pipeline.middlewares] == ["image_enrichment", "table_enrichment"]

    def test_from_config_disabled_or_without_provider(self):
        assert not EnrichmentPipeline.from_config(EnrichmentOptions(enabled=False), RecordingProvider()).is_enabled
        assert not EnrichmentPipeline.from_config(EnrichmentOptions(enabled=True), None).is_enabled
