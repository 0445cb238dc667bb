"""Unit tests for content_crawler.models - Content, MatchMode, SourceFilters."""

from __future__ import annotations

import dataclasses
from collections.abc import Callable

import pytest

from content_crawler.models import Content, MatchMode, SourceFilters


class TestContent:
    """Normalized record defaults and serialization keys."""

    def test_defaults(self) -> None:
        content = Content(
            id="1", title="t", author="a", source_type="reddit", source_id="reddit:x:hot"
        )
        assert content.body == ""
        assert content.url is None
        assert content.created_utc == 0
        assert content.score == 0
        assert content.num_comments == 0

    def test_dump_uses_wire_keys(self, make_content: Callable[..., Content]) -> None:
        dumped = make_content().model_dump()
        assert set(dumped) == {
            "id",
            "title",
            "body",
            "url",
            "author",
            "created_utc",
            "score",
            "num_comments",
            "source_type",
            "source_id",
        }


class TestMatchMode:
    """Case-insensitive parsing."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("any", MatchMode.ANY), ("ALL", MatchMode.ALL), (" Any ", MatchMode.ANY)],
    )
    def test_parse(self, raw: str, expected: MatchMode) -> None:
        assert MatchMode.parse(raw) is expected

    def test_parse_rejects_unknown(self) -> None:
        with pytest.raises(ValueError, match="Invalid match mode"):
            MatchMode.parse("some")


class TestSourceFilters:
    """Immutable shared filters."""

    def test_keeps_display_case_and_folds_for_matching(self) -> None:
        filters = SourceFilters(keywords=("Rust", "ASYNC"), match_mode=MatchMode.ANY)
        assert filters.keywords == ("Rust", "ASYNC")
        assert filters.folded_keywords == ("rust", "async")

    def test_list_keywords_become_tuple(self) -> None:
        filters = SourceFilters(keywords=["a", "b"])  # type: ignore[arg-type]
        assert filters.keywords == ("a", "b")

    def test_is_frozen(self) -> None:
        filters = SourceFilters(keywords=("rust",))
        with pytest.raises(dataclasses.FrozenInstanceError):
            filters.match_mode = MatchMode.ALL  # type: ignore[misc]

    def test_from_cli_splits_commas_and_drops_blanks(self) -> None:
        filters = SourceFilters.from_cli(["rust, async", "", " tokio "], "all")
        assert filters.keywords == ("rust", "async", "tokio")
        assert filters.match_mode is MatchMode.ALL

    def test_from_cli_without_keywords(self) -> None:
        filters = SourceFilters.from_cli(None, "any")
        assert filters.keywords == ()

