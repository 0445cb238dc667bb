"""Concurrent fetch orchestration across configured sources.

Builds one adapter per enabled source entry and runs their fetches under
a global ``asyncio.Semaphore``. Results are returned in source
declaration order regardless of completion order. The first fatal error
wins: sources still queued are skipped, sources already running are
allowed to finish, and the error is raised once everything has drained.
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING

import httpx
import structlog

from content_crawler.exceptions import SourceConfigError
from content_crawler.logging import source_logging_context
from content_crawler.sources import build_source

if TYPE_CHECKING:
    from collections.abc import Sequence

    from content_crawler.config import Settings
    from content_crawler.models import Content, SourceFilters
    from content_crawler.sources import SleepFunc, Source

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


class CrawlOrchestrator:
    """Run source fetches concurrently with a global concurrency ceiling."""

    def __init__(self, sources: Sequence[Source], max_concurrency: int = 5) -> None:
        if max_concurrency < 1:
            msg = f"max_concurrency must be greater than 0, got {max_concurrency}"
            raise ValueError(msg)
        self._sources = list(sources)
        self._max_concurrency = max_concurrency

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        client: httpx.AsyncClient,
        *,
        sleep: SleepFunc = asyncio.sleep,
    ) -> CrawlOrchestrator:
        """Build adapters for every enabled source, in declaration order.

        Raises:
            SourceConfigError: On the first entry its adapter rejects.
        """
        sources: list[Source] = []
        for index, entry in enumerate(settings.sources):
            if not entry.enabled:
                logger.debug("source_disabled", index=index, source_id=entry.source_id)
                continue
            try:
                source = build_source(
                    entry,
                    client,
                    default_user_agent=settings.crawler.user_agent,
                    sleep=sleep,
                )
            except SourceConfigError as exc:
                msg = f"sources[{index}] ({entry.source_id}): {exc}"
                raise SourceConfigError(msg) from exc
            sources.append(source)

        return cls(sources, max_concurrency=settings.crawler.max_concurrency)

    @property
    def sources(self) -> list[Source]:
        return list(self._sources)

    async def run(self, filters: SourceFilters) -> list[Content]:
        """Fetch every source and flatten the results in declaration order.

        Args:
            filters: Keyword filters shared read-only by all fetches.

        Returns:
            All sources' items, grouped by source in declaration order.

        Raises:
            Exception: The first fatal error raised by any source fetch.
        """
        semaphore = asyncio.Semaphore(self._max_concurrency)
        errors: list[Exception] = []
        started = time.monotonic()

        logger.info(
            "crawl_start",
            sources=len(self._sources),
            max_concurrency=self._max_concurrency,
            keywords=list(filters.keywords),
            match_mode=str(filters.match_mode),
        )

        async def _limited_fetch(source: Source) -> list[Content]:
            async with semaphore:
                if errors:
                    logger.info("source_skipped", source_id=source.source_id)
                    return []
                try:
                    with source_logging_context(
                        source.source_id, source.source_type
                    ) as log:
                        contents = await source.fetch(filters)
                        log.info("source_fetch_ok", items=len(contents))
                except Exception as exc:
                    errors.append(exc)
                    return []
                return contents

        results = await asyncio.gather(*(_limited_fetch(s) for s in self._sources))

        elapsed = round(time.monotonic() - started, 3)
        if errors:
            logger.error(
                "crawl_failed",
                failed_sources=len(errors),
                error=str(errors[0]),
                elapsed_seconds=elapsed,
            )
            raise errors[0]

        flattened = [item for contents in results for item in contents]
        logger.info("crawl_complete", items=len(flattened), elapsed_seconds=elapsed)
        return flattened


async def crawl(
    settings: Settings,
    filters: SourceFilters,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
    sleep: SleepFunc = asyncio.sleep,
) -> list[Content]:
    """Run one crawl with a shared HTTP client owned for its duration.

    Args:
        settings: Validated settings.
        filters: Keyword filters applied by every source.
        transport: Optional transport override (e.g. ``httpx.MockTransport``).
        sleep: Awaitable sleep used by adapters for rate limiting/backoff.

    Returns:
        The flattened content list in source declaration order.
    """
    async with httpx.AsyncClient(
        timeout=httpx.Timeout(settings.crawler.request_timeout),
        headers={"User-Agent": settings.crawler.user_agent},
        follow_redirects=True,
        transport=transport,
    ) as client:
        orchestrator = CrawlOrchestrator.from_settings(settings, client, sleep=sleep)
        return await orchestrator.run(filters)
