# docmark/providers/__init__.py
"""
Enrichment providers.

Providers are looked up by plugin name when built from configuration:

    provider = get_provider("openai_vision", model="gpt-4o-mini")
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List

from docmark.core.exceptions import ConfigError
from docmark.providers.base import (
    ArtifactKind,
    CallableProvider,
    EnrichmentProvider,
    EnrichmentResult,
)
from docmark.providers.vision import VisionProvider

PROVIDERS: Dict[str, Callable[..., EnrichmentProvider]] = {
    VisionProvider.provider_name: VisionProvider,
}


def get_provider(plugin_name: str, **kwargs: Any) -> EnrichmentProvider:
    """Instantiate a provider by plugin name."""
    try:
        factory = PROVIDERS[plugin_name]
    except KeyError:
        raise ConfigError(
            f"Unknown enrichment provider '{plugin_name}'. Available: {available_providers()}"
        ) from None
    return factory(**kwargs)


def available_providers() -> List[str]:
    return sorted(PROVIDERS)


__all__ = [
    "ArtifactKind",
    "CallableProvider",
    "EnrichmentProvider",
    "EnrichmentResult",
    "VisionProvider",
    "get_provider",
    "available_providers",
]
