"""Custom exception types for the GitHub PR metrics generator."""

from __future__ import annotations

from typing import Mapping, Optional


class PRMetricsError(Exception):
    """Base exception for all recoverable PR metrics errors."""


class ConfigurationError(PRMetricsError):
    """Raised when runtime configuration values are missing or invalid."""


class AuthenticationError(PRMetricsError):
    """Raised when GitHub credentials are unavailable."""


class ValidationError(PRMetricsError):
    """Raised when query filters are missing or malformed."""


class UpstreamError(PRMetricsError):
    """Raised when a GitHub API request fails or returns an unexpected response."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: str = "",
        headers: Optional[Mapping[str, str]] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body
        self.headers = dict(headers or {})


class RateLimitError(UpstreamError):
    """Raised when GitHub reports that the request quota is exhausted."""


def is_rate_limited(error: Exception) -> bool:
    """Return whether ``error`` represents a GitHub rate-limit condition.

    The structured signal is preferred: HTTP 429, or HTTP 403 together with an
    exhausted ``X-RateLimit-Remaining`` header. Secondary limits leave the
    header untouched, so the response body is then checked for GitHub's
    "rate limit" wording.
    """
    if isinstance(error, RateLimitError):
        return True
    if not isinstance(error, UpstreamError):
        return False

    if error.status_code == 429:
        return True

    remaining = None
    for name, value in error.headers.items():
        if name.lower() == "x-ratelimit-remaining":
            remaining = str(value).strip()
            break

    if error.status_code == 403 and remaining == "0":
        return True

    return "rate limit" in (error.body or str(error)).lower()
