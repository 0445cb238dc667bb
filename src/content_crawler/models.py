"""Normalized record and runtime filter types shared by every source."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

from pydantic import BaseModel, Field


class Content(BaseModel):
    """A single crawled item, normalized across providers.

    ``id`` is only unique within one provider's response stream; no
    cross-source deduplication is performed.
    """

    id: str = Field(description="Provider-local identifier.")
    title: str
    body: str = Field(default="", description="Self text or abstract.")
    url: str | None = None
    author: str
    created_utc: int = Field(default=0, description="Unix seconds, best effort.")
    score: int = Field(default=0, description="Provider popularity signal.")
    num_comments: int = Field(default=0, description="0 when not applicable.")
    source_type: str = Field(description="Provider kind, e.g. 'reddit'.")
    source_id: str = Field(description="Identifier of the configured source.")


class MatchMode(StrEnum):
    """Keyword matching policy."""

    ANY = "any"
    ALL = "all"

    @classmethod
    def parse(cls, value: str) -> MatchMode:
        """Parse a match mode case-insensitively.

        Raises:
            ValueError: If ``value`` is neither ``any`` nor ``all``.
        """
        try:
            return cls(value.strip().lower())
        except ValueError:
            msg = f"Invalid match mode: {value!r}. Must be 'any' or 'all'"
            raise ValueError(msg) from None


@dataclass(frozen=True, slots=True)
class SourceFilters:
    """Keyword filters shared read-only by every concurrent fetch.

    Attributes:
        keywords: Keywords as supplied by the user (case preserved).
        match_mode: Whether any or all keywords must appear.
        folded_keywords: Case-folded copies used for matching.
    """

    keywords: tuple[str, ...] = ()
    match_mode: MatchMode = MatchMode.ANY
    folded_keywords: tuple[str, ...] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "keywords", tuple(self.keywords))
        object.__setattr__(
            self, "folded_keywords", tuple(k.casefold() for k in self.keywords)
        )

    @classmethod
    def from_cli(cls, raw_keywords: list[str] | None, match_mode: str) -> SourceFilters:
        """Build filters from repeated and/or comma-separated CLI values."""
        keywords: list[str] = []
        for raw in raw_keywords or []:
            keywords.extend(part.strip() for part in raw.split(",") if part.strip())
        return cls(keywords=tuple(keywords), match_mode=MatchMode.parse(match_mode))
