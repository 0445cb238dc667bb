"""Unit tests for content_crawler.filters - keyword matching predicate."""

from __future__ import annotations

import random
import string
from collections.abc import Callable

import pytest

from content_crawler.filters import (
    apply_source_filters,
    filter_by_keywords,
    matches_keywords,
)
from content_crawler.models import Content, MatchMode, SourceFilters

# ---- matches_keywords --------------------------------------------------------


class TestMatchesKeywords:
    """Substring matching over title + body."""

    def test_any_mode_matches_one_keyword(self) -> None:
        assert matches_keywords(
            "Learning Rust programming", "Async is cool", ["rust", "python"], MatchMode.ANY
        )

    def test_all_mode_requires_every_keyword(self) -> None:
        assert matches_keywords(
            "Learning Rust programming", "Async is cool", ["rust", "async"], MatchMode.ALL
        )

    def test_all_mode_fails_when_one_missing(self) -> None:
        assert not matches_keywords(
            "Learning Rust programming",
            "Functions are cool",
            ["rust", "async"],
            MatchMode.ALL,
        )

    def test_case_insensitive(self) -> None:
        assert matches_keywords("RUST Programming", "async AWAIT", ["rust", "await"], MatchMode.ALL)

    def test_empty_keywords_match_everything(self) -> None:
        assert matches_keywords("anything", "", [], MatchMode.ALL)
        assert matches_keywords("anything", "", [], MatchMode.ANY)

    def test_keyword_found_in_body_only(self) -> None:
        assert matches_keywords("Weekly thread", "talk about tokio", ["tokio"], MatchMode.ANY)

    def test_no_match(self) -> None:
        assert not matches_keywords("Python tutorial", "No match here", ["rust"], MatchMode.ANY)


# ---- filter_by_keywords ------------------------------------------------------


class TestFilterByKeywords:
    """List filtering keeps order and folds keyword case."""

    def test_filters_and_preserves_order(self, make_content: Callable[..., Content]) -> None:
        contents = [
            make_content(id="1", title="Rust async await", body="body1"),
            make_content(id="2", title="Python tutorial", body="body2"),
            make_content(id="3", title="Rust basics", body="body3"),
        ]
        filtered = filter_by_keywords(contents, ["RUST"], MatchMode.ANY)
        assert [c.id for c in filtered] == ["1", "3"]

    def test_all_mode_over_fixture_like_data(
        self, make_content: Callable[..., Content]
    ) -> None:
        contents = [
            make_content(
                id="abc123",
                title="Rust async programming tips",
                body="Here are some tips for working with async Rust and tokio",
            ),
            make_content(
                id="def456",
                title="Learning Python for beginners",
                body="This is a Python tutorial",
            ),
            make_content(
                id="ghi789",
                title="Advanced Rust patterns and async await",
                body="Deep dive into Rust async runtime internals",
            ),
        ]
        both = filter_by_keywords(contents, ["rust", "async"], MatchMode.ALL)
        assert [c.id for c in both] == ["abc123", "ghi789"]


# ---- apply_source_filters ----------------------------------------------------


class TestApplySourceFilters:
    """SourceFilters-driven filtering, including randomized properties."""

    def test_uses_filters_match_mode(self, make_content: Callable[..., Content]) -> None:
        contents = [
            make_content(id="1", title="rust and go", body=""),
            make_content(id="2", title="rust only", body=""),
        ]
        filters = SourceFilters(keywords=("Rust", "Go"), match_mode=MatchMode.ALL)
        assert [c.id for c in apply_source_filters(contents, filters)] == ["1"]

    def test_agrees_with_filter_by_keywords(
        self, make_content: Callable[..., Content]
    ) -> None:
        contents = [
            make_content(id="1", title="Learning Rust", body=""),
            make_content(id="2", title="Python tutorial", body="No match"),
            make_content(id="3", title="Weekly", body="RUST questions"),
        ]
        filters = SourceFilters(keywords=("rUsT",))

        filtered = apply_source_filters(contents, filters)

        assert [c.id for c in filtered] == ["1", "3"]
        assert filtered == filter_by_keywords(contents, filters.keywords, filters.match_mode)

    def test_empty_filters_keep_everything(self, make_content: Callable[..., Content]) -> None:
        contents = [make_content(id="1"), make_content(id="2")]
        assert apply_source_filters(contents, SourceFilters()) == contents

    @pytest.mark.parametrize("seed", range(20))
    @pytest.mark.parametrize("mode", [MatchMode.ANY, MatchMode.ALL])
    def test_retained_items_satisfy_predicate(
        self,
        seed: int,
        mode: MatchMode,
        make_content: Callable[..., Content],
    ) -> None:
        rng = random.Random(seed)
        vocabulary = ["Rust", "async", "Tokio", "python", "GO", "wasm"]

        def _words(count: int) -> str:
            return " ".join(rng.choice(vocabulary + list(string.ascii_lowercase)) for _ in range(count))

        contents = [
            make_content(id=str(i), title=_words(rng.randint(0, 4)), body=_words(rng.randint(0, 6)))
            for i in range(rng.randint(0, 30))
        ]
        keywords = tuple(rng.sample(vocabulary, rng.randint(1, 3)))
        filters = SourceFilters(keywords=keywords, match_mode=mode)

        filtered = apply_source_filters(contents, filters)

        assert len(filtered) <= len(contents)
        folded = [k.casefold() for k in keywords]
        for item in filtered:
            text = f"{item.title} {item.body}".casefold()
            hits = [k in text for k in folded]
            assert all(hits) if mode is MatchMode.ALL else any(hits)

        # Pure predicate: a second pass over the same input is identical
        assert apply_source_filters(contents, filters) == filtered
        # Retained items keep their relative input order
        positions = [contents.index(item) for item in filtered]
        assert positions == sorted(positions)
