"""The source capability shared by every provider adapter."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from content_crawler.exceptions import (
    ClientError,
    FetchError,
    RateLimitError,
    ServerError,
    UnexpectedStatusError,
)

if TYPE_CHECKING:
    import httpx

    from content_crawler.models import Content, SourceFilters

SleepFunc = Callable[[float], Awaitable[None]]

_MAX_ERROR_BODY_CHARS = 500


@runtime_checkable
class Source(Protocol):
    """A provider that can be fetched uniformly by the orchestrator.

    ``fetch`` must apply the provider's own numeric floors and the shared
    keyword filters before returning, and must be safe to run concurrently
    with other sources sharing the same ``httpx.AsyncClient``.
    """

    @property
    def source_type(self) -> str: ...

    @property
    def source_id(self) -> str: ...

    async def fetch(self, filters: SourceFilters) -> list[Content]: ...


def error_for_status(response: httpx.Response, source_id: str) -> FetchError:
    """Build the fatal error matching a non-success response.

    Args:
        response: The failing HTTP response.
        source_id: Identifier of the source that issued the request.

    Returns:
        A ``RateLimitError`` for 429, ``ServerError`` for 5xx,
        ``ClientError`` for other 4xx, else ``UnexpectedStatusError``.
    """
    status = response.status_code
    url = str(response.request.url)
    body = response.text[:_MAX_ERROR_BODY_CHARS]
    reason = response.reason_phrase or "Unknown"

    error_cls: type[FetchError]
    if status == 429:
        error_cls = RateLimitError
        message = "Rate limited (429 Too Many Requests)"
    elif 500 <= status < 600:
        error_cls = ServerError
        message = f"Server error {status} {reason}: {body}"
    elif 400 <= status < 500:
        error_cls = ClientError
        message = f"Client error {status} {reason}: {body}"
    else:
        error_cls = UnexpectedStatusError
        message = f"Unexpected HTTP status {status} {reason}"

    return error_cls(
        message, source_id=source_id, url=url, status_code=status, body=body
    )
