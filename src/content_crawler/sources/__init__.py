"""Provider adapters and the factory that builds them from configuration."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from content_crawler.config import RedditSourceConfig, SemanticScholarSourceConfig
from content_crawler.exceptions import SourceConfigError
from content_crawler.sources.base import Source, SleepFunc, error_for_status
from content_crawler.sources.reddit import RedditSource
from content_crawler.sources.semantic_scholar import SemanticScholarSource

if TYPE_CHECKING:
    import httpx

__all__ = [
    "RedditSource",
    "SemanticScholarSource",
    "SleepFunc",
    "Source",
    "build_source",
    "error_for_status",
]


def build_source(
    entry: RedditSourceConfig | SemanticScholarSourceConfig,
    client: httpx.AsyncClient,
    *,
    default_user_agent: str | None = None,
    sleep: SleepFunc = asyncio.sleep,
) -> Source:
    """Build the adapter for one configured source.

    Args:
        entry: A validated source entry.
        client: Shared HTTP client (connection pool) for all adapters.
        default_user_agent: Crawler-wide User-Agent used when the entry has none.
        sleep: Awaitable sleep used for rate limiting and backoff.

    Returns:
        An object implementing ``Source``.

    Raises:
        SourceConfigError: If the entry is not usable by its adapter.
    """
    if isinstance(entry, RedditSourceConfig):
        return RedditSource(
            entry, client, default_user_agent=default_user_agent, sleep=sleep
        )
    if isinstance(entry, SemanticScholarSourceConfig):
        return SemanticScholarSource(entry, client, sleep=sleep)

    msg = f"Unknown source type: {getattr(entry, 'type', type(entry).__name__)}"
    raise SourceConfigError(msg)
