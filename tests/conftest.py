"""Shared pytest fixtures for the content-crawler test suite."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from content_crawler.models import Content
from payloads import RecordingSleep

# ---------------------------------------------------------------------------
# Configuration fixtures
# ---------------------------------------------------------------------------


SAMPLE_TOML = """\
[crawler]
output_format = "json"
output_destination = "stdout"
log_level = "info"
max_concurrency = 2
user_agent = "test-crawler/1.0"

[[sources]]
type = "reddit"
enabled = true
subreddit = "rust"
limit = 3
sort_by = "hot"
rate_limit_delay_ms = 0

[[sources]]
type = "semanticscholar"
enabled = true
mode = "search"
query = "ml"
max_results = 5
min_citations = 10
rate_limit_delay_ms = 0

[[sources]]
type = "reddit"
enabled = false
subreddit = "python"
"""


@pytest.fixture()
def sample_toml() -> str:
    """Return a valid TOML config with two enabled sources and one disabled."""
    return SAMPLE_TOML


# ---------------------------------------------------------------------------
# Record factories
# ---------------------------------------------------------------------------


@pytest.fixture()
def make_content() -> Callable[..., Content]:
    """Return a factory for ``Content`` records with overridable fields."""

    def _make(**overrides: Any) -> Content:
        fields: dict[str, Any] = {
            "id": "abc123",
            "title": "Test Post",
            "body": "Test body",
            "url": "https://example.com",
            "author": "testuser",
            "created_utc": 1_234_567_890,
            "score": 100,
            "num_comments": 10,
            "source_type": "reddit",
            "source_id": "reddit:rust:hot",
        }
        fields.update(overrides)
        return Content(**fields)

    return _make


# ---------------------------------------------------------------------------
# Async helpers
# ---------------------------------------------------------------------------


@pytest.fixture()
def recording_sleep() -> RecordingSleep:
    """Return a sleep recorder that never actually waits."""
    return RecordingSleep()

