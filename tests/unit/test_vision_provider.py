# tests/unit/test_vision_provider.py
"""
Tests for the OpenAI-compatible vision provider, using httpx.MockTransport.
"""

import json

import httpx
import pytest

from docmark.core.descriptor import InputDescriptor
from docmark.core.exceptions import ConfigError
from docmark.core.http import AuthenticationError, PermissionDeniedError, RateLimitError
from docmark.providers import VisionProvider, get_provider
from docmark.providers.base import ArtifactKind
from docmark.providers.vision import parse_answer, resolve_api_key

pytestmark = pytest.mark.tier2


def _provider(handler) -> VisionProvider:
    client = httpx.Client(transport=httpx.MockTransport(handler), base_url="https://api.test/v1")
    return VisionProvider(model="test-model", base_url="https://api.test/v1", client=client)


def _answer(content: str) -> httpx.Response:
    return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})


class TestAnalyze:
    """Request/response handling."""

    def test_image_request_and_json_answer(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return _answer('{"description": "A cat", "ocr_text": "MEOW", "tags": ["cat", "pet"]}')

        result = _provider(handler).analyze(
            b"\x89PNG", InputDescriptor(filename="cat.png"), ArtifactKind.IMAGE
        )

        assert seen["path"] == "/v1/chat/completions"
        assert seen["body"]["model"] == "test-model"
        image_part = seen["body"]["messages"][0]["content"][1]
        assert image_part["image_url"]["url"].startswith("data:image/png;base64,")
        assert result.description == "A cat"
        assert result.ocr_text == "MEOW"
        assert result.tags == ["cat", "pet"]

    def test_table_request_uses_text_prompt(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = json.loads(request.content)
            return _answer('```json\n{"description": "Headcount", "rows": [["a", "b"], [1, 2]]}\n```')

        result = _provider(handler).analyze(
            b"| a | b |", InputDescriptor(mime_type="text/markdown"), ArtifactKind.TABLE
        )

        content = seen["body"]["messages"][0]["content"]
        assert isinstance(content, str)
        assert content.endswith("| a | b |")
        assert result.description == "Headcount"
        assert result.table_rows == [["a", "b"], ["1", "2"]]

    def test_empty_answer_returns_none(self):
        result = _provider(lambda request: _answer("  ")).analyze(
            b"x", InputDescriptor(), ArtifactKind.IMAGE
        )
        assert result is None

    @pytest.mark.parametrize(
        "status,error_cls",
        [
            (401, AuthenticationError),
            (403, PermissionDeniedError),
            (429, RateLimitError),
        ],
    )
    def test_status_errors(self, status, error_cls):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(status, json={"error": {"message": "nope"}})

        with pytest.raises(error_cls) as exc_info:
            _provider(handler).analyze(b"x", InputDescriptor(), ArtifactKind.IMAGE)

        assert exc_info.value.status_code == status
        assert exc_info.value.provider == "openai_vision"
        assert exc_info.value.details == "nope"


class TestParseAnswer:
    """Answer parsing."""

    def test_plain_text_becomes_description(self):
        assert parse_answer("Just a photo of a dog.").description == "Just a photo of a dog."

    def test_non_object_json_becomes_description(self):
        assert parse_answer("[1, 2]").description == "[1, 2]"

    def test_scalar_tags(self):
        assert parse_answer('{"description": "x", "tags": "solo"}').tags == ["solo"]


class TestLookup:
    """Credentials and plugin lookup."""

    def test_explicit_key_wins(self, monkeypatch):
        monkeypatch.setenv("DOCMARK_VISION_API_KEY", "env-key")
        assert resolve_api_key("explicit") == "explicit"

    def test_env_order(self, monkeypatch):
        monkeypatch.delenv("DOCMARK_VISION_API_KEY", raising=False)
        monkeypatch.setenv("OPENAI_API_KEY", "openai-key")
        assert resolve_api_key() == "openai-key"

        monkeypatch.setenv("DOCMARK_VISION_API_KEY", "docmark-key")
        assert resolve_api_key() == "docmark-key"

    def test_unknown_provider(self):
        with pytest.raises(ConfigError, match="Unknown enrichment provider"):
            get_provider("nope")

    def test_get_provider_builds_vision(self):
        provider = get_provider("openai_vision", api_key="k", model="m")
        try:
            assert isinstance(provider, VisionProvider)
            assert provider.model == "m"
        finally:
            provider.close()
