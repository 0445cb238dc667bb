"""Semantic Scholar adapter: paper search and recommendations.

Search mode pages through ``/graph/v1/paper/search`` using the ``next``
offset returned by the API; recommendations mode issues a single request
for a seed paper. Every request goes through a tenacity retry loop that
retries 429 (honouring ``Retry-After``) and 5xx responses with
exponential backoff.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, TypeVar
from urllib.parse import quote

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, Field
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
)

from content_crawler.exceptions import (
    RateLimitError,
    ResponseParseError,
    ServerError,
    SourceConfigError,
    TransportError,
)
from content_crawler.filters import apply_source_filters
from content_crawler.models import Content
from content_crawler.sources.base import error_for_status

if TYPE_CHECKING:
    from content_crawler.config import SemanticScholarSourceConfig
    from content_crawler.models import SourceFilters
    from content_crawler.sources.base import SleepFunc

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

SEMANTIC_SCHOLAR_API_URL = "https://api.semanticscholar.org"
PAPER_FIELDS = "paperId,title,abstract,authors,year,citationCount,url"
MAX_RETRIES = 3
API_PAGE_SIZE = 100
MAX_OFFSET = 10_000
SECONDS_PER_YEAR = 365 * 24 * 3600
UNKNOWN_AUTHOR = "Unknown"
_MAX_ERROR_BODY_CHARS = 500

_ModelT = TypeVar("_ModelT", bound=BaseModel)


# ---------------------------------------------------------------------------
# Response payloads
# ---------------------------------------------------------------------------


class _Author(BaseModel):
    author_id: str | None = Field(default=None, alias="authorId")
    name: str | None = None


class _Paper(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    paper_id: str = Field(alias="paperId")
    title: str | None = None
    abstract: str | None = None
    year: int | None = None
    citation_count: int | None = Field(default=None, alias="citationCount")
    url: str | None = None
    authors: list[_Author] = Field(default_factory=list)


class _SearchResponse(BaseModel):
    total: int | None = None
    offset: int | None = None
    next: int | None = None
    data: list[_Paper] = Field(default_factory=list)


class _RecommendationsResponse(BaseModel):
    recommended_papers: list[_Paper] = Field(
        default_factory=list, alias="recommendedPapers"
    )


class _RetryableStatus(Exception):
    """A 429 or 5xx response that the retry loop may try again."""

    def __init__(self, response: httpx.Response) -> None:
        super().__init__(f"HTTP {response.status_code}")
        self.response = response


def _parse_retry_after(value: str | None) -> float | None:
    if value is None:
        return None
    try:
        seconds = int(value.strip())
    except ValueError:
        return None
    return float(seconds) if seconds >= 0 else None


def year_to_timestamp(year: int | None) -> int:
    """Approximate Jan 1 of ``year`` as Unix seconds.

    Uses 365-day years with no leap-day correction; downstream consumers
    rely on this exact approximation.
    """
    if year is None:
        return 0
    return (year - 1970) * SECONDS_PER_YEAR


# ---------------------------------------------------------------------------
# Adapter
# ---------------------------------------------------------------------------


class SemanticScholarSource:
    """Fetch papers from Semantic Scholar in search or recommendations mode."""

    def __init__(
        self,
        config: SemanticScholarSourceConfig,
        client: httpx.AsyncClient,
        *,
        sleep: SleepFunc = asyncio.sleep,
        base_url: str = SEMANTIC_SCHOLAR_API_URL,
    ) -> None:
        if config.mode == "search" and not config.query:
            msg = "query cannot be empty in search mode"
            raise SourceConfigError(msg)
        if config.mode == "recommendations" and not config.paper_id:
            msg = "paper_id cannot be empty in recommendations mode"
            raise SourceConfigError(msg)

        self._config = config
        self._client = client
        self._sleep = sleep
        self._base_url = base_url.rstrip("/")
        self._headers: dict[str, str] = {}
        if config.api_key is not None:
            self._headers["x-api-key"] = config.api_key.get_secret_value()

    @property
    def source_type(self) -> str:
        return "semantic_scholar"

    @property
    def source_id(self) -> str:
        return self._config.source_id

    async def fetch(self, filters: SourceFilters) -> list[Content]:
        """Fetch papers for the configured mode, then apply keyword filters."""
        if self._config.mode == "search":
            contents = await self._fetch_search(self._config.query or "", self._config.year)
        else:
            contents = await self._fetch_recommendations(self._config.paper_id or "")

        matched = apply_source_filters(contents, filters)
        logger.info(
            "semantic_scholar_fetch_complete",
            source_id=self.source_id,
            fetched=len(contents),
            matched=len(matched),
        )
        return matched

    # -- modes ---------------------------------------------------------------

    async def _fetch_search(self, query: str, year: str | None) -> list[Content]:
        url = f"{self._base_url}/graph/v1/paper/search"
        max_results = self._config.max_results
        papers: list[_Paper] = []
        offset = 0

        while len(papers) < max_results and offset < MAX_OFFSET:
            page_limit = min(API_PAGE_SIZE, max_results - len(papers))
            params: dict[str, Any] = {
                "query": query,
                "offset": offset,
                "limit": page_limit,
                "fields": PAPER_FIELDS,
            }
            if year:
                params["year"] = year

            logger.debug(
                "semantic_scholar_search_page",
                source_id=self.source_id,
                offset=offset,
                limit=page_limit,
            )
            response = await self._fetch_with_retry(url, params)
            page = self._parse(response, _SearchResponse)

            if not page.data:
                break
            papers.extend(page.data)

            if page.next is None:
                break
            offset = page.next

            if len(papers) < max_results:
                await self._sleep(self._config.rate_limit_delay_ms / 1000)

        del papers[max_results:]
        logger.debug(
            "semantic_scholar_search_done",
            source_id=self.source_id,
            retrieved=len(papers),
            requested=max_results,
        )
        return self._convert_and_filter(papers)

    async def _fetch_recommendations(self, paper_id: str) -> list[Content]:
        url = (
            f"{self._base_url}/recommendations/v1/papers/forpaper/"
            f"{quote(paper_id, safe='')}"
        )
        response = await self._fetch_with_retry(url, {"fields": PAPER_FIELDS})
        result = self._parse(response, _RecommendationsResponse)

        papers = result.recommended_papers[: self._config.max_results]
        logger.debug(
            "semantic_scholar_recommendations_done",
            source_id=self.source_id,
            received=len(result.recommended_papers),
            kept=len(papers),
        )
        return self._convert_and_filter(papers)

    # -- HTTP ----------------------------------------------------------------

    async def _fetch_with_retry(
        self, url: str, params: dict[str, Any]
    ) -> httpx.Response:
        """GET ``url``, retrying 429 and 5xx up to ``MAX_RETRIES`` times.

        Raises:
            RateLimitError: Still rate limited after ``MAX_RETRIES`` retries.
            ServerError: Still failing with 5xx after ``MAX_RETRIES`` retries.
            ClientError: Any other 4xx, raised without retrying.
            UnexpectedStatusError: Any other non-success status.
            TransportError: The request could not be sent.
        """
        retrying = AsyncRetrying(
            retry=retry_if_exception_type(_RetryableStatus),
            stop=stop_after_attempt(MAX_RETRIES + 1),
            wait=self._retry_wait,
            sleep=self._sleep,
            before_sleep=self._log_retry,
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    response = await self._send(url, params)
                    if response.status_code == 429 or response.is_server_error:
                        raise _RetryableStatus(response)
                    if not response.is_success:
                        raise error_for_status(response, self.source_id)
        except _RetryableStatus as exc:
            raise self._exhausted(exc.response) from None
        return response

    async def _send(self, url: str, params: dict[str, Any]) -> httpx.Response:
        try:
            return await self._client.get(url, params=params, headers=self._headers)
        except httpx.RequestError as exc:
            msg = f"Failed to send HTTP request: {exc}"
            raise TransportError(msg, source_id=self.source_id, url=url) from exc

    @staticmethod
    def _retry_wait(retry_state: RetryCallState) -> float:
        backoff = float(2 ** (retry_state.attempt_number - 1))
        outcome = retry_state.outcome
        exc = outcome.exception() if outcome is not None else None
        if isinstance(exc, _RetryableStatus) and exc.response.status_code == 429:
            retry_after = _parse_retry_after(exc.response.headers.get("Retry-After"))
            if retry_after is not None:
                return retry_after
        return backoff

    def _log_retry(self, retry_state: RetryCallState) -> None:
        outcome = retry_state.outcome
        exc = outcome.exception() if outcome is not None else None
        status = exc.response.status_code if isinstance(exc, _RetryableStatus) else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        logger.warning(
            "semantic_scholar_retry",
            source_id=self.source_id,
            status=status,
            attempt=retry_state.attempt_number,
            max_retries=MAX_RETRIES,
            delay_seconds=delay,
        )

    def _exhausted(self, response: httpx.Response) -> RateLimitError | ServerError:
        url = str(response.request.url)
        body = response.text[:_MAX_ERROR_BODY_CHARS]
        if response.status_code == 429:
            return RateLimitError(
                f"Rate limited by Semantic Scholar API after {MAX_RETRIES} retries",
                source_id=self.source_id,
                url=url,
                status_code=429,
                body=body,
            )
        return ServerError(
            f"Server error {response.status_code} after {MAX_RETRIES} retries: {body}",
            source_id=self.source_id,
            url=url,
            status_code=response.status_code,
            body=body,
        )

    def _parse(
        self, response: httpx.Response, model: type[_ModelT]
    ) -> _ModelT:
        try:
            return model.model_validate(response.json())
        except ValueError as exc:
            msg = f"Failed to parse Semantic Scholar {model.__name__} JSON: {exc}"
            raise ResponseParseError(
                msg,
                source_id=self.source_id,
                url=str(response.request.url),
                status_code=response.status_code,
            ) from exc

    # -- mapping -------------------------------------------------------------

    def _convert_and_filter(self, papers: list[_Paper]) -> list[Content]:
        contents: list[Content] = []
        for paper in papers:
            if paper.title is None and paper.abstract is None:
                continue
            if (paper.citation_count or 0) < self._config.min_citations:
                continue
            contents.append(self._to_content(paper))
        return contents

    def _to_content(self, paper: _Paper) -> Content:
        author = next(
            (a.name for a in paper.authors[:1] if a.name),
            UNKNOWN_AUTHOR,
        )
        return Content(
            id=paper.paper_id,
            title=paper.title if paper.title is not None else "Untitled",
            body=paper.abstract or "",
            url=paper.url,
            author=author,
            created_utc=year_to_timestamp(paper.year),
            score=paper.citation_count or 0,
            num_comments=0,
            source_type=self.source_type,
            source_id=self.source_id,
        )
