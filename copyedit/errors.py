"""Error taxonomy for the copyedit pipeline and its callers.

LLM failures live in :mod:`copyedit.llm.provider` (``LLMProviderError`` is the
upstream error, with configuration and parse subclasses); this module adds
the request-level errors and a helper that turns any of them into the wire
error payload.
"""

from __future__ import annotations

from typing import Any

from .llm.provider import (
    LLMParseError,
    LLMProviderConfigurationError,
    LLMProviderError,
    LLMQuotaError,
)


class CopyeditError(Exception):
    """Base class for request-level failures."""

    error_type = "server_error"


class InvalidInputError(CopyeditError):
    """Raised when the text is empty or exceeds the maximum length."""

    error_type = "invalid_request"


class PipelineTimeoutError(CopyeditError):
    """Raised when the caller-supplied deadline elapses."""

    error_type = "timeout"


class RateLimitedError(CopyeditError):
    """Raised by the service when a rate-limit bucket is exhausted."""

    error_type = "rate_limited"

    def __init__(self, scope: str, retry_after_seconds: int) -> None:
        super().__init__(
            f"Rate limit exceeded ({scope}); retry after {retry_after_seconds}s"
        )
        self.scope = scope
        self.retry_after_seconds = retry_after_seconds


class ServiceUnavailableError(CopyeditError):
    """Raised when maintenance mode rejects expensive calls."""

    error_type = "service_unavailable"


def error_payload(exc: BaseException) -> dict[str, Any]:
    """Convert an exception into ``{"error": {"type": ..., "message": ...}}``."""
    error_type = getattr(exc, "error_type", None)
    if not isinstance(error_type, str):
        error_type = "server_error"
    if isinstance(exc, LLMParseError):
        # The full text carries the raw response; keep the payload short.
        message = exc.args[0] if exc.args else "Could not parse model response"
    elif error_type == "server_error":
        message = "Internal error"
    else:
        message = str(exc)
    payload: dict[str, Any] = {"error": {"type": error_type, "message": message}}
    if isinstance(exc, RateLimitedError):
        payload["error"]["scope"] = exc.scope
        payload["error"]["retry_after_seconds"] = exc.retry_after_seconds
    return payload


__all__ = [
    "CopyeditError",
    "InvalidInputError",
    "LLMParseError",
    "LLMProviderConfigurationError",
    "LLMProviderError",
    "LLMQuotaError",
    "PipelineTimeoutError",
    "RateLimitedError",
    "ServiceUnavailableError",
    "error_payload",
]
