# docmark/providers/vision.py
"""
OpenAI-compatible vision provider.

Sends images as base64 data URLs to ``/chat/completions`` and asks for a
JSON answer with a description, visible text and tags. Works with any
endpoint speaking the OpenAI chat format (OpenAI, Azure-compatible proxies,
Ollama, vLLM, ...).

Credential resolution order:
    1. explicit ``api_key``
    2. DOCMARK_VISION_API_KEY
    3. OPENAI_API_KEY
"""

from __future__ import annotations

import base64
import json
import os
import re
from typing import Any, Dict, List, Optional

import httpx

from docmark.core.descriptor import InputDescriptor
from docmark.core.http import create_api_client, handle_api_error, raise_for_status
from docmark.logging.logger import get_logger
from docmark.logging.tags import PROVIDER
from docmark.providers.base import ArtifactKind, EnrichmentResult

logger = get_logger(__name__)

API_KEY_ENV_VARS = ("DOCMARK_VISION_API_KEY", "OPENAI_API_KEY")
DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_MODEL = "gpt-4o-mini"
ENDPOINT = "/chat/completions"

IMAGE_PROMPT = (
    "Describe this image for a reader who cannot see it. "
    "Reply with JSON only: "
    '{"description": "...", "ocr_text": "all visible text, one line per line", "tags": ["..."]}'
)

TABLE_PROMPT = (
    "The following markdown table was extracted from a document. "
    "Reply with JSON only: "
    '{"description": "one sentence summary", "rows": [["header", "..."], ["value", "..."]]}'
    "\n\n"
)

_JSON_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


def resolve_api_key(api_key: Optional[str] = None) -> Optional[str]:
    if api_key:
        return api_key
    for name in API_KEY_ENV_VARS:
        value = os.environ.get(name)
        if value:
            return value
    return None


class VisionProvider:
    """
    Enrichment provider backed by an OpenAI-compatible chat endpoint.

    Args:
        model: Model name
        base_url: API base URL
        api_key: API key (see module docstring for fallbacks)
        timeout: Request timeout in seconds
        max_tokens: Completion budget per call
        client: Pre-built httpx.Client (tests, custom transports)
    """

    provider_name = "openai_vision"

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        base_url: str = DEFAULT_BASE_URL,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        max_tokens: int = 800,
        client: Optional[httpx.Client] = None,
    ):
        self.model = model
        self.base_url = base_url
        self.max_tokens = max_tokens
        self._client = client or create_api_client(
            base_url=base_url,
            api_key=resolve_api_key(api_key),
            timeout=timeout,
            timeout_type="vision",
        )

    def analyze(
        self,
        content: bytes,
        descriptor: InputDescriptor,
        kind: ArtifactKind,
    ) -> Optional[EnrichmentResult]:
        if kind == ArtifactKind.TABLE:
            message: Dict[str, Any] = {
                "role": "user",
                "content": TABLE_PROMPT + content.decode("utf-8", errors="replace"),
            }
        else:
            mime = descriptor.mime_type or "image/png"
            data_url = f"data:{mime};base64,{base64.b64encode(content).decode('ascii')}"
            message = {
                "role": "user",
                "content": [
                    {"type": "text", "text": IMAGE_PROMPT},
                    {"type": "image_url", "image_url": {"url": data_url}},
                ],
            }

        payload = {"model": self.model, "messages": [message], "max_tokens": self.max_tokens}

        try:
            response = self._client.post(ENDPOINT, json=payload)
        except httpx.HTTPError as e:
            raise handle_api_error(e, provider=self.provider_name, endpoint=ENDPOINT) from e
        raise_for_status(response, provider=self.provider_name, endpoint=ENDPOINT)

        text = _message_text(response.json())
        if not text:
            return None
        logger.debug(f"{PROVIDER} {self.provider_name} answered for {descriptor.display_name}")
        return parse_answer(text)

    def close(self) -> None:
        self._client.close()

    def __repr__(self) -> str:
        return f"VisionProvider(model={self.model!r}, base_url={self.base_url!r})"


def _message_text(data: Dict[str, Any]) -> Optional[str]:
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return None
    if isinstance(content, list):
        content = "".join(part.get("text", "") for part in content if isinstance(part, dict))
    return content.strip() if isinstance(content, str) else None


def parse_answer(text: str) -> EnrichmentResult:
    """
    Parse the model's answer. JSON (optionally fenced) is mapped field by
    field; anything else becomes the description verbatim.
    """
    fenced = _JSON_FENCE.match(text.strip())
    raw = fenced.group(1) if fenced else text
    try:
        data = json.loads(raw)
    except ValueError:
        return EnrichmentResult(description=text.strip())
    if not isinstance(data, dict):
        return EnrichmentResult(description=text.strip())

    rows: Optional[List[List[str]]] = None
    if isinstance(data.get("rows"), list):
        rows = [[str(c) for c in row] for row in data["rows"] if isinstance(row, list)]

    tags = data.get("tags") or []
    return EnrichmentResult(
        description=(data.get("description") or None),
        ocr_text=(data.get("ocr_text") or None),
        tags=[str(t) for t in tags] if isinstance(tags, list) else [str(tags)],
        table_rows=rows or None,
    )


__all__ = ["VisionProvider", "parse_answer", "resolve_api_key"]
