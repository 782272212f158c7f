# docmark/config/loader.py
"""
Layered configuration loading.

    1. Package defaults (docmark/config/defaults.yaml) - always loaded
    2. User config (a YAML file or a dict) - overrides defaults

Usage:
    from docmark.config.loader import load_config

    config = load_config("docmark.yaml")
    config.storage.delete_on_release
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping, Optional, Union

import yaml
from pydantic import ValidationError

from docmark.config.schema import DocmarkConfig
from docmark.core.exceptions import ConfigError
from docmark.logging.logger import get_logger

logger = get_logger(__name__)

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"
ROOT_KEY = "docmark"


# =============================================================================
# Deep Merge
# =============================================================================


def deep_merge(base: dict, override: Mapping[str, Any]) -> dict:
    """
    Deep merge two dictionaries.

    Values from `override` take precedence over `base`. Nested dicts are
    merged recursively; lists are replaced entirely.

    Examples:
        >>> deep_merge({"a": 1, "b": {"c": 2, "d": 3}}, {"b": {"c": 10}})
        {'a': 1, 'b': {'c': 10, 'd': 3}}
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, Mapping):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


# =============================================================================
# Loading Functions
# =============================================================================


def _unwrap(raw: Any, origin: str) -> dict:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Config in {origin} must be a mapping, got {type(raw).__name__}")
    # Files may nest everything under a top-level "docmark:" key, or be flat
    if set(raw) == {ROOT_KEY} and isinstance(raw[ROOT_KEY], dict):
        return raw[ROOT_KEY]
    return raw


def load_defaults() -> dict[str, Any]:
    """Load the package defaults as a plain dict."""
    with DEFAULTS_PATH.open("r", encoding="utf-8") as f:
        return _unwrap(yaml.safe_load(f), str(DEFAULTS_PATH))


def load_config(
    source: Union[str, Path, Mapping[str, Any], None] = None,
) -> DocmarkConfig:
    """
    Load configuration: package defaults deep-merged with user overrides.

    Args:
        source: Path to a YAML file, a mapping of overrides, or None for defaults.

    Raises:
        ConfigError: If the file is missing, unparsable, or fails validation.
    """
    overrides: dict[str, Any]
    origin: str

    if source is None:
        overrides, origin = {}, "<defaults>"
    elif isinstance(source, Mapping):
        overrides, origin = _unwrap(dict(source), "<dict>"), "<dict>"
    else:
        path = Path(source)
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")
        try:
            with path.open("r", encoding="utf-8") as f:
                raw = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e
        overrides, origin = _unwrap(raw, str(path)), str(path)

    merged = deep_merge(load_defaults(), overrides)

    try:
        config = DocmarkConfig.model_validate(merged)
    except ValidationError as e:
        raise ConfigError(f"Invalid docmark config ({origin}): {e}") from e

    logger.debug(f"Loaded config from {origin}")
    return config


def coerce_config(config: Optional[Union[DocmarkConfig, Mapping[str, Any], str, Path]]) -> DocmarkConfig:
    """Accept a DocmarkConfig, mapping, path, or None and return a DocmarkConfig."""
    if isinstance(config, DocmarkConfig):
        return config
    return load_config(config)


__all__ = ["deep_merge", "load_defaults", "load_config", "coerce_config", "DEFAULTS_PATH"]
