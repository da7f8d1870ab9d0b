"""Model gateway interface and error taxonomy.

Callers (router, event extractor, API) depend on ``ModelGateway`` rather
than on the concrete Gemini client so tests can script model output.

Error policy:
- ``LLMRateLimitError`` / ``LLMModelUnavailableError`` are retryable and carry
  ``retry_after_ms``; they are the only errors that cross the router boundary.
- Everything else is a plain ``LLMClientError`` subclass that callers absorb
  into a user-facing message.
"""

from __future__ import annotations

from typing import Optional, Protocol


class LLMClientError(Exception):
    """Base exception for model gateway errors."""
    pass


class LLMConnectionError(LLMClientError):
    """Upstream unreachable (DNS, TLS, timeout, reset)."""
    pass


class LLMInvalidResponseError(LLMClientError):
    """Upstream answered with an unexpected status or an unparseable body."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class LLMRetryableError(LLMClientError):
    """Upstream asked us to back off; retry after ``retry_after_ms``."""

    reason = "retryable"

    def __init__(self, message: str, retry_after_ms: int = 0):
        super().__init__(message)
        self.retry_after_ms = max(0, int(retry_after_ms))


class LLMRateLimitError(LLMRetryableError):
    """HTTP 429 from upstream, or the shared cool-down clock is still armed."""

    reason = "quota_exhausted"


class LLMModelUnavailableError(LLMRetryableError):
    """HTTP 503 from upstream (model overloaded) and no fallback succeeded."""

    reason = "model_unavailable"


class ModelGateway(Protocol):
    """Structural type for anything that can answer a prompt."""

    def call(
        self,
        prompt: str,
        *,
        model: Optional[str] = None,
        system_prompt: Optional[str] = None,
        json: bool = False,
        temperature: float = 0.4,
        max_output_tokens: int = 512,
    ) -> str:
        ...
