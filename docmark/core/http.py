# docmark/core/http.py
"""
HTTP client factory and error mapping for enrichment providers.

Usage:
    from docmark.core.http import create_api_client, raise_for_status

    with create_api_client(base_url, api_key=key, timeout_type="vision") as client:
        response = client.post("/chat/completions", json=payload)
        raise_for_status(response, provider="openai", endpoint="/chat/completions")

Providers never retry; a failed call surfaces as an APIError subclass and the
enrichment failure policy decides whether it is fatal.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from docmark.logging.logger import get_logger

logger = get_logger(__name__)


# =============================================================================
# Errors
# =============================================================================


@dataclass
class APIError(Exception):
    """
    Structured API error with details.

    Attributes:
        message: Human-readable error message
        status_code: HTTP status code (if available)
        provider: Provider name (e.g., "openai")
        endpoint: Endpoint that failed
        details: Additional error details from the response body
        original_error: The exception that caused this error
    """

    message: str
    status_code: Optional[int] = None
    provider: Optional[str] = None
    endpoint: Optional[str] = None
    details: Optional[str] = None
    original_error: Optional[Exception] = None

    def __str__(self) -> str:
        parts = [self.message]

        if self.status_code:
            parts.append(f"(HTTP {self.status_code})")

        if self.details:
            parts.append(f"- {self.details}")

        return " ".join(parts)


class AuthenticationError(APIError):
    """Raised when the provider rejects our credentials (HTTP 401)."""

    pass


class PermissionDeniedError(APIError):
    """Raised when credentials are valid but not authorized (HTTP 403)."""

    pass


class RateLimitError(APIError):
    """Raised when the provider rate limit is exceeded."""

    pass


# =============================================================================
# Default Configuration
# =============================================================================

DEFAULT_TIMEOUTS = {
    "default": 30.0,
    "vision": 120.0,  # image description can be slow
}

DEFAULT_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json",
}


# =============================================================================
# Client Factory
# =============================================================================


def create_api_client(
    base_url: str,
    api_key: Optional[str] = None,
    timeout: Optional[float] = None,
    timeout_type: str = "default",
    headers: Optional[Dict[str, str]] = None,
    auth_header: str = "Authorization",
    auth_scheme: str = "Bearer",
    **kwargs: Any,
) -> httpx.Client:
    """
    Create a configured HTTP client for provider calls.

    Args:
        base_url: Base URL for the API
        api_key: API key for authentication (optional)
        timeout: Request timeout in seconds (or use timeout_type)
        timeout_type: Preset timeout type ("default", "vision", ...)
        headers: Additional headers to include
        auth_header: Header name for authentication
        auth_scheme: Authentication scheme; empty string sends the bare key
        **kwargs: Passed through to httpx.Client (e.g. ``transport``)
    """
    if timeout is None:
        timeout = DEFAULT_TIMEOUTS.get(timeout_type, DEFAULT_TIMEOUTS["default"])

    final_headers = dict(DEFAULT_HEADERS)

    if api_key:
        final_headers[auth_header] = f"{auth_scheme} {api_key}" if auth_scheme else api_key

    if headers:
        final_headers.update(headers)

    client = httpx.Client(
        base_url=base_url,
        headers=final_headers,
        timeout=timeout,
        **kwargs,
    )

    logger.debug(f"Created HTTP client for {base_url} (timeout={timeout}s)")

    return client


# =============================================================================
# Error Handling
# =============================================================================


def _error_details(response: httpx.Response) -> Optional[str]:
    try:
        data = response.json()
    except ValueError:
        return response.text[:200] if response.text else None
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict):
            return error.get("message")
        return data.get("message") or (error if isinstance(error, str) else None)
    return None


def handle_api_error(
    exc: Exception,
    provider: str = "unknown",
    endpoint: str = "",
) -> APIError:
    """Convert an httpx exception to the matching APIError subclass."""
    if isinstance(exc, httpx.HTTPStatusError):
        status_code = exc.response.status_code
        details = _error_details(exc.response)

        error_types = {
            401: (AuthenticationError, f"{provider} authentication failed"),
            403: (PermissionDeniedError, f"{provider} permission denied"),
            429: (RateLimitError, f"{provider} rate limit exceeded"),
        }
        error_cls, message = error_types.get(
            status_code, (APIError, f"{provider} API request failed")
        )
        return error_cls(
            message=message,
            status_code=status_code,
            provider=provider,
            endpoint=endpoint,
            details=details,
            original_error=exc,
        )

    if isinstance(exc, httpx.ConnectError):
        return APIError(
            message=f"Failed to connect to {provider}",
            provider=provider,
            endpoint=endpoint,
            details=str(exc),
            original_error=exc,
        )

    if isinstance(exc, httpx.TimeoutException):
        return APIError(
            message=f"{provider} request timed out",
            provider=provider,
            endpoint=endpoint,
            details="Consider increasing the provider timeout",
            original_error=exc,
        )

    return APIError(
        message=f"{provider} request failed: {exc}",
        provider=provider,
        endpoint=endpoint,
        original_error=exc,
    )


def raise_for_status(
    response: httpx.Response,
    provider: str = "unknown",
    endpoint: str = "",
) -> None:
    """Raise the matching APIError if the response indicates failure."""
    try:
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        raise handle_api_error(exc, provider=provider, endpoint=endpoint) from exc


__all__ = [
    "APIError",
    "AuthenticationError",
    "PermissionDeniedError",
    "RateLimitError",
    "DEFAULT_TIMEOUTS",
    "create_api_client",
    "handle_api_error",
    "raise_for_status",
]
