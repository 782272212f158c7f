# tests/unit/test_registry.py
"""
Tests for ExtractorRegistry.

Verifies:
1. Dispatch is deterministic: priority first, then registration order
2. Content predicates always see the stream at its original position
3. Failures are wrapped with the extractor name; fallback aggregates them
"""

import io

import pytest

from docmark.core.descriptor import InputDescriptor
from docmark.core.exceptions import ConversionCancelled, ConversionError, UnsupportedFormatError
from docmark.core.cancellation import CancellationToken
from docmark.extractors.base import ExtractionContext
from docmark.extractors.registry import (
    PRIORITY_GENERIC_FORMAT,
    PRIORITY_SPECIFIC_FORMAT,
    ExtractorRegistry,
)

pytestmark = pytest.mark.tier1


@pytest.fixture
def empty_registry():
    return ExtractorRegistry(register_defaults=False)


class TestRegistration:
    """Tests for registering and ordering extractors."""

    def test_lower_priority_is_tried_first(self, empty_registry, fake_extractor_cls):
        generic = fake_extractor_cls(plugin_name="generic")
        specific = fake_extractor_cls(plugin_name="specific")
        empty_registry.register(generic, PRIORITY_GENERIC_FORMAT)
        empty_registry.register(specific, PRIORITY_SPECIFIC_FORMAT)

        assert [e.plugin_name for e in empty_registry.extractors] == ["specific", "generic"]

    def test_ties_keep_registration_order(self, empty_registry, fake_extractor_cls):
        for name in ("a", "b", "c"):
            empty_registry.register(fake_extractor_cls(plugin_name=name), 5.0)

        assert [e.plugin_name for e in empty_registry.extractors] == ["a", "b", "c"]

    def test_reregistering_replaces(self, empty_registry, fake_extractor_cls):
        empty_registry.register(fake_extractor_cls(plugin_name="a"), 1.0)
        replacement = fake_extractor_cls(plugin_name="a", markdown="new")
        empty_registry.register(replacement, 1.0)

        assert empty_registry.extractors == [replacement]
        assert empty_registry.get("a") is replacement

    def test_unregister(self, empty_registry, fake_extractor_cls):
        empty_registry.register(fake_extractor_cls(plugin_name="a"))
        assert empty_registry.unregister("a")
        assert not empty_registry.unregister("a")
        assert empty_registry.get("a") is None

    def test_defaults_registered(self):
        names = [e.plugin_name for e in ExtractorRegistry().extractors]
        assert names[-1] == "plaintext"
        assert {"zip", "csv", "notebook", "image", "docling"} <= set(names)

    def test_disabled_defaults_are_skipped(self):
        registry = ExtractorRegistry(disabled=["docling"])
        assert registry.get("docling") is None


class TestSelect:
    """Tests for two-phase acceptance."""

    def test_metadata_then_content(self, empty_registry, fake_extractor_cls):
        empty_registry.register(fake_extractor_cls(plugin_name="zipish", magic=b"PK"), 0.0)
        empty_registry.register(fake_extractor_cls(plugin_name="anything"), 10.0)

        zipped = io.BytesIO(b"PK\x03\x04rest")
        other = io.BytesIO(b"hello")

        assert empty_registry.select(zipped, InputDescriptor()).plugin_name == "zipish"
        assert empty_registry.select(other, InputDescriptor()).plugin_name == "anything"

    def test_stream_position_restored(self, empty_registry, fake_extractor_cls):
        empty_registry.register(fake_extractor_cls(plugin_name="first", magic=b"XX"), 0.0)
        empty_registry.register(fake_extractor_cls(plugin_name="second", magic=b"ab"), 1.0)

        stream = io.BytesIO(b"abcdef")
        assert empty_registry.select(stream, InputDescriptor()).plugin_name == "second"
        assert stream.tell() == 0

    def test_same_input_same_choice(self, registry):
        descriptor = InputDescriptor(filename="data.csv")
        choices = {registry.select(io.BytesIO(b"a,b\n1,2\n"), descriptor).plugin_name for _ in range(5)}
        assert choices == {"csv"}

    def test_nothing_accepts(self, empty_registry, fake_extractor_cls):
        empty_registry.register(fake_extractor_cls(plugin_name="pdf", extensions={".pdf"}))

        with pytest.raises(UnsupportedFormatError):
            empty_registry.select(io.BytesIO(b"x"), InputDescriptor(filename="a.doc"))

    def test_predicate_errors_are_collected(self, empty_registry, fake_extractor_cls):
        class Exploding(fake_extractor_cls):
            def accepts_metadata(self, descriptor):
                raise ValueError("bad predicate")

        empty_registry.register(Exploding(plugin_name="boom"))

        with pytest.raises(UnsupportedFormatError) as exc_info:
            empty_registry.select(io.BytesIO(b"x"), InputDescriptor())

        assert len(exc_info.value.failures) == 1
        assert "bad predicate" in str(exc_info.value)


class TestExtract:
    """Tests for conversion dispatch and failure wrapping."""

    def test_failure_names_extractor(self, empty_registry, fake_extractor_cls, context):
        empty_registry.register(fake_extractor_cls(plugin_name="broken", error=KeyError("missing")))

        with pytest.raises(ConversionError) as exc_info:
            empty_registry.extract(io.BytesIO(b"x"), InputDescriptor(), context)

        error = exc_info.value
        assert error.extractor == "broken"
        assert isinstance(error.cause, KeyError)
        assert "broken" in str(error)

    def test_no_fallback_by_default(self, empty_registry, fake_extractor_cls, context):
        broken = fake_extractor_cls(plugin_name="broken", error=RuntimeError("nope"))
        working = fake_extractor_cls(plugin_name="working")
        empty_registry.register(broken, 0.0)
        empty_registry.register(working, 1.0)

        with pytest.raises(ConversionError):
            empty_registry.extract(io.BytesIO(b"x"), InputDescriptor(), context)
        assert working.calls == []

    def test_fallback_uses_next_extractor(self, empty_registry, fake_extractor_cls, context):
        empty_registry.register(fake_extractor_cls(plugin_name="broken", error=RuntimeError("nope")), 0.0)
        empty_registry.register(fake_extractor_cls(plugin_name="working", markdown="ok"), 1.0)

        extractor, result = empty_registry.extract(
            io.BytesIO(b"x"), InputDescriptor(), context, fallback_on_failure=True
        )

        assert extractor.plugin_name == "working"
        assert result.segments[0].markdown == "ok"

    def test_fallback_aggregates_every_failure(self, empty_registry, fake_extractor_cls, context):
        empty_registry.register(fake_extractor_cls(plugin_name="one", error=RuntimeError("first")), 0.0)
        empty_registry.register(fake_extractor_cls(plugin_name="two", error=ValueError("second")), 1.0)

        with pytest.raises(ConversionError) as exc_info:
            empty_registry.extract(io.BytesIO(b"x"), InputDescriptor(), context, fallback_on_failure=True)

        error = exc_info.value
        assert [f.extractor for f in error.failures] == ["one", "two"]
        assert "first" in str(error) and "second" in str(error)

    def test_fallback_keeps_acceptance_errors(self, empty_registry, fake_extractor_cls, context):
        class BadSniffer(fake_extractor_cls):
            def accepts_content(self, stream, descriptor):
                raise ValueError("sniff broke")

        empty_registry.register(BadSniffer(plugin_name="sniffer"), 0.0)
        empty_registry.register(fake_extractor_cls(plugin_name="flaky", error=RuntimeError("boom")), 1.0)

        with pytest.raises(ConversionError) as exc_info:
            empty_registry.extract(io.BytesIO(b"x"), InputDescriptor(), context, fallback_on_failure=True)

        error = exc_info.value
        assert error.extractor == "flaky"
        assert len(error.failures) == 2
        assert isinstance(error.failures[0], ValueError)
        assert isinstance(error.failures[1], ConversionError)
        assert "sniff broke" in str(error) and "boom" in str(error)

    def test_cancellation_passes_through(self, empty_registry, fake_extractor_cls, workspace, config):
        token = CancellationToken()
        token.cancel()
        context = ExtractionContext(workspace=workspace, config=config, registry=empty_registry, cancel=token)
        empty_registry.register(fake_extractor_cls(plugin_name="a"))

        with pytest.raises(ConversionCancelled):
            empty_registry.extract(io.BytesIO(b"x"), InputDescriptor(), context)
