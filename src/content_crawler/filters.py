"""Keyword substring matching over normalized content."""

from __future__ import annotations

from typing import TYPE_CHECKING

from content_crawler.models import MatchMode

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from content_crawler.models import Content, SourceFilters


def matches_keywords(
    title: str,
    body: str,
    folded_keywords: Sequence[str],
    mode: MatchMode,
) -> bool:
    """Check whether title + body contain the keywords.

    Keywords must already be case-folded. An empty keyword set matches
    everything.

    Args:
        title: Item title.
        body: Item body (may be empty).
        folded_keywords: Case-folded keywords.
        mode: ``ANY`` needs one keyword present, ``ALL`` needs every one.

    Returns:
        True if the item passes the filter.
    """
    if not folded_keywords:
        return True

    text = f"{title} {body}".casefold()
    if mode is MatchMode.ALL:
        return all(keyword in text for keyword in folded_keywords)
    return any(keyword in text for keyword in folded_keywords)


def filter_by_keywords(
    contents: Iterable[Content],
    keywords: Sequence[str],
    mode: MatchMode,
) -> list[Content]:
    """Keep the items matching ``keywords`` (any case), preserving input order."""
    folded = [keyword.casefold() for keyword in keywords]
    return [c for c in contents if matches_keywords(c.title, c.body, folded, mode)]


def apply_source_filters(
    contents: Iterable[Content],
    filters: SourceFilters,
) -> list[Content]:
    """Apply shared runtime filters, preserving input order."""
    return filter_by_keywords(contents, filters.folded_keywords, filters.match_mode)
