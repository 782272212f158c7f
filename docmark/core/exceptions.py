# docmark/core/exceptions.py
"""
Exception hierarchy for docmark.

DocmarkError
├── UnsupportedFormatError      # no extractor accepted the input
├── ConversionError             # an accepted extractor (or a fatal provider) failed
├── EnrichmentError             # a provider failed while enriching an artifact
├── ResourceError               # workspace / buffer persistence failed
│   └── ResourceLimitError      # a configured size ceiling was exceeded
├── ConversionCancelled         # the caller cancelled the conversion
├── MissingDependencyError      # an optional extra is not installed
└── ConfigError                 # invalid configuration

Every error names the component responsible and keeps the underlying cause
chained (``raise ... from e``) so tooling can inspect it.
"""

from __future__ import annotations

from typing import List, Optional, Sequence


class DocmarkError(Exception):
    """Base exception for all docmark errors."""

    pass


# =============================================================================
# Dispatch / Conversion
# =============================================================================


class UnsupportedFormatError(DocmarkError):
    """
    No extractor accepted the input.

    ``failures`` holds every exception raised by an extractor while answering
    its acceptance predicates, in registry order.
    """

    def __init__(self, message: str, failures: Optional[Sequence[Exception]] = None):
        self.failures: List[Exception] = list(failures or [])
        if self.failures:
            details = "; ".join(f"{type(e).__name__}: {e}" for e in self.failures)
            message = f"{message} ({len(self.failures)} extractor error(s): {details})"
        super().__init__(message)


class ConversionError(DocmarkError):
    """
    An extractor accepted the input but failed to produce output.

    Also raised when enrichment hits a fatal (authentication-class) provider
    error; in that case ``provider`` is set instead of ``extractor``.
    """

    def __init__(
        self,
        message: str,
        extractor: Optional[str] = None,
        provider: Optional[str] = None,
        cause: Optional[BaseException] = None,
        failures: Optional[Sequence[Exception]] = None,
    ):
        super().__init__(message)
        self.extractor = extractor
        self.provider = provider
        self.cause = cause
        self.failures: List[Exception] = list(failures or [])


# =============================================================================
# Enrichment
# =============================================================================


class EnrichmentError(DocmarkError):
    """A provider failed while enriching an artifact."""

    def __init__(
        self,
        message: str,
        provider: str,
        fatal: bool = False,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.provider = provider
        self.fatal = fatal
        self.cause = cause


# =============================================================================
# Resources
# =============================================================================


class ResourceError(DocmarkError):
    """Workspace or buffer persistence failed."""

    pass


class ResourceLimitError(ResourceError):
    """A configured size ceiling was exceeded."""

    def __init__(self, message: str, limit: int):
        super().__init__(message)
        self.limit = limit


class ConversionCancelled(DocmarkError):
    """The conversion was cancelled by the caller."""

    pass


# =============================================================================
# Setup
# =============================================================================


class MissingDependencyError(DocmarkError):
    """An optional dependency needed by an extractor is not installed."""

    def __init__(self, extractor: str, package: str, extra: Optional[str] = None):
        hint = f"pip install docmark[{extra}]" if extra else f"pip install {package}"
        super().__init__(f"Extractor '{extractor}' requires '{package}'. Install with: {hint}")
        self.extractor = extractor
        self.package = package


class ConfigError(DocmarkError):
    """Configuration could not be loaded or validated."""

    pass


__all__ = [
    "DocmarkError",
    "UnsupportedFormatError",
    "ConversionError",
    "EnrichmentError",
    "ResourceError",
    "ResourceLimitError",
    "ConversionCancelled",
    "MissingDependencyError",
    "ConfigError",
]
