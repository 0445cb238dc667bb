"""Centralized exception hierarchy for the content-crawler package.

All domain-specific exceptions inherit from ``CrawlerError`` so callers
can catch the entire family with a single ``except`` clause.
"""

from __future__ import annotations


class CrawlerError(Exception):
    """Base exception for all content-crawler errors."""


# ---------------------------------------------------------------------------
# Configuration errors
# ---------------------------------------------------------------------------


class ConfigError(CrawlerError):
    """Raised when the configuration cannot be read or parsed."""


class SourceConfigError(ConfigError):
    """Raised when a source adapter rejects its configuration at construction."""


# ---------------------------------------------------------------------------
# Fetch errors
# ---------------------------------------------------------------------------


class FetchError(CrawlerError):
    """Base exception for a fatal failure while fetching from a provider.

    Attributes:
        source_id: Identifier of the configured source that failed.
        url: The request URL, when known.
        status_code: HTTP status of the failing response, when there was one.
        body: Response body text kept for diagnostics.
    """

    def __init__(
        self,
        message: str,
        *,
        source_id: str = "",
        url: str | None = None,
        status_code: int | None = None,
        body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.source_id = source_id
        self.url = url
        self.status_code = status_code
        self.body = body

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.source_id:
            parts.append(f"source={self.source_id}")
        if self.status_code is not None:
            parts.append(f"status={self.status_code}")
        if self.url:
            parts.append(f"url={self.url}")
        return " | ".join(parts)


class RateLimitError(FetchError):
    """Raised when a provider keeps answering HTTP 429."""


class ServerError(FetchError):
    """Raised when a provider keeps answering with a 5xx status."""


class ClientError(FetchError):
    """Raised on a 4xx status other than 429. Never retried."""


class UnexpectedStatusError(FetchError):
    """Raised on a non-success status outside the 4xx/5xx ranges."""


class ResponseParseError(FetchError):
    """Raised when a provider response body does not have the expected shape."""


class TransportError(FetchError):
    """Raised when the HTTP request itself fails (connect, timeout, protocol)."""


# ---------------------------------------------------------------------------
# Output errors
# ---------------------------------------------------------------------------


class OutputError(CrawlerError):
    """Raised when results cannot be serialized or persisted."""
