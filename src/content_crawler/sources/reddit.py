"""Reddit listing adapter with cursor pagination.

Walks ``/r/<subreddit>/<sort>.json`` pages using the ``after`` cursor
until the configured limit is reached or the listing is exhausted,
sleeping ``rate_limit_delay_ms`` between pages. HTTP 429 is fatal and
never retried.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

import httpx
import structlog
from pydantic import BaseModel, Field

from content_crawler.exceptions import (
    RateLimitError,
    ResponseParseError,
    SourceConfigError,
    TransportError,
)
from content_crawler.filters import apply_source_filters
from content_crawler.models import Content
from content_crawler.sources.base import error_for_status

if TYPE_CHECKING:
    from content_crawler.config import RedditSourceConfig
    from content_crawler.models import SourceFilters
    from content_crawler.sources.base import SleepFunc

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

REDDIT_BASE_URL = "https://www.reddit.com"
PAGE_SIZE = 100
_DEFAULT_TOP_WINDOW = "day"


# ---------------------------------------------------------------------------
# Listing payload
# ---------------------------------------------------------------------------


class _RedditPost(BaseModel):
    id: str
    title: str = ""
    selftext: str | None = ""
    url: str | None = None
    author: str | None = "[deleted]"
    created_utc: float = 0.0
    score: int = 0
    num_comments: int = 0


class _RedditChild(BaseModel):
    data: _RedditPost


class _RedditListingData(BaseModel):
    children: list[_RedditChild] = Field(default_factory=list)
    after: str | None = None


class _RedditListing(BaseModel):
    data: _RedditListingData


# ---------------------------------------------------------------------------
# Adapter
# ---------------------------------------------------------------------------


class RedditSource:
    """Fetch posts from one subreddit listing."""

    def __init__(
        self,
        config: RedditSourceConfig,
        client: httpx.AsyncClient,
        *,
        default_user_agent: str | None = None,
        sleep: SleepFunc = asyncio.sleep,
        base_url: str = REDDIT_BASE_URL,
    ) -> None:
        if not config.subreddit:
            msg = "subreddit cannot be empty"
            raise SourceConfigError(msg)

        user_agent = config.user_agent or default_user_agent or ""
        if not user_agent.strip():
            msg = f"user_agent cannot be empty for {config.source_id}"
            raise SourceConfigError(msg)

        self._config = config
        self._client = client
        self._user_agent = user_agent
        self._sleep = sleep
        self._base_url = base_url.rstrip("/")

    @property
    def source_type(self) -> str:
        return "reddit"

    @property
    def source_id(self) -> str:
        return self._config.source_id

    async def fetch(self, filters: SourceFilters) -> list[Content]:
        """Fetch up to ``limit`` posts, then apply the keyword filters."""
        contents = await self._fetch_posts()
        matched = apply_source_filters(contents, filters)
        logger.info(
            "reddit_fetch_complete",
            source_id=self.source_id,
            fetched=len(contents),
            matched=len(matched),
        )
        return matched

    def build_request(self, after: str | None = None) -> tuple[str, dict[str, Any]]:
        """Return the listing URL and query parameters for one page."""
        sort_by = self._config.sort_by
        url = f"{self._base_url}/r/{self._config.subreddit}/{sort_by}.json"

        params: dict[str, Any] = {"limit": PAGE_SIZE, "raw_json": 1}
        if sort_by == "top":
            params["t"] = self._config.time_filter or _DEFAULT_TOP_WINDOW
        if after:
            params["after"] = after
        return url, params

    async def _fetch_posts(self) -> list[Content]:
        target = self._config.limit
        delay_seconds = self._config.rate_limit_delay_ms / 1000
        collected: list[Content] = []
        after: str | None = None
        page = 0

        while True:
            listing = await self._fetch_page(after)
            page += 1

            contents = self._apply_config_filters(
                [self._to_content(child.data) for child in listing.children]
            )
            collected.extend(contents)
            logger.debug(
                "reddit_page_fetched",
                source_id=self.source_id,
                page=page,
                received=len(listing.children),
                kept=len(contents),
                total=len(collected),
            )

            if len(collected) >= target:
                del collected[target:]
                break

            if not listing.after or not listing.children:
                break

            after = listing.after
            await self._sleep(delay_seconds)

        return collected

    async def _fetch_page(self, after: str | None) -> _RedditListingData:
        url, params = self.build_request(after)
        try:
            response = await self._client.get(
                url,
                params=params,
                headers={"User-Agent": self._user_agent},
            )
        except httpx.RequestError as exc:
            msg = f"Failed to fetch from /r/{self._config.subreddit}: {exc}"
            raise TransportError(msg, source_id=self.source_id, url=url) from exc

        if response.status_code == 429:
            msg = (
                "Rate limited by Reddit API (429 Too Many Requests). "
                "Please wait before trying again."
            )
            raise RateLimitError(
                msg,
                source_id=self.source_id,
                url=str(response.request.url),
                status_code=429,
            )
        if not response.is_success:
            raise error_for_status(response, self.source_id)

        try:
            return _RedditListing.model_validate(response.json()).data
        except ValueError as exc:
            msg = f"Failed to parse Reddit JSON response: {exc}"
            raise ResponseParseError(
                msg,
                source_id=self.source_id,
                url=str(response.request.url),
                status_code=response.status_code,
            ) from exc

    def _apply_config_filters(self, contents: list[Content]) -> list[Content]:
        return [
            c
            for c in contents
            if c.score >= self._config.min_score
            and c.num_comments >= self._config.min_comments
        ]

    def _to_content(self, post: _RedditPost) -> Content:
        return Content(
            id=post.id,
            title=post.title,
            body=post.selftext or "",
            url=post.url,
            author=post.author or "[deleted]",
            created_utc=int(post.created_utc),
            score=post.score,
            num_comments=post.num_comments,
            source_type=self.source_type,
            source_id=self.source_id,
        )
