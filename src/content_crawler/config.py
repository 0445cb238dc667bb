"""Configuration with layered resolution: defaults -> TOML -> env -> CLI.

Uses pydantic-settings with TomlConfigSettingsSource for layered
configuration. Supports ``.env`` file loading, ``CONTENT_CRAWLER_``
prefixed env vars, and nested delimiter ``__`` for overriding fields of
the ``crawler`` section. The configuration can also be supplied as TOML
text (e.g. read from stdin).
"""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Annotated, Any, ClassVar, Literal
from urllib.parse import quote

import structlog
from pydantic import (
    BaseModel,
    Field,
    SecretStr,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

from content_crawler.exceptions import ConfigError

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

_DEFAULT_USER_AGENT = "content-crawler/0.1.0"
_DEFAULT_RATE_LIMIT_DELAY_MS = 1000


# ---------------------------------------------------------------------------
# Crawler-level settings
# ---------------------------------------------------------------------------


class CrawlerSettings(BaseModel):
    """Run-wide crawler settings."""

    output_format: Literal["json"] = "json"
    output_destination: str = Field(
        default="stdout", description="'stdout' or a file path."
    )
    log_level: Literal["error", "warn", "info", "debug", "trace"] = "info"
    log_format: Literal["console", "json"] = "console"
    log_file: Path | None = None
    max_concurrency: int = Field(
        default=5, gt=0, description="Maximum number of sources fetched at once."
    )
    user_agent: str = Field(min_length=1)
    request_timeout: float = Field(
        default=30.0, gt=0.0, description="Per-request timeout in seconds."
    )

    @field_validator("user_agent")
    @classmethod
    def _user_agent_not_blank(cls, value: str) -> str:
        if not value.strip():
            msg = "user_agent cannot be empty (required by Reddit API)"
            raise ValueError(msg)
        return value


# ---------------------------------------------------------------------------
# Source entries (tagged by ``type``)
# ---------------------------------------------------------------------------


class RedditSourceConfig(BaseModel):
    """A subreddit listing to crawl."""

    type: Literal["reddit"] = "reddit"
    enabled: bool = True
    subreddit: str = Field(min_length=1)
    limit: int = Field(default=100, gt=0)
    sort_by: Literal["hot", "new", "rising", "top"] = "hot"
    time_filter: Literal["hour", "day", "week", "month", "year", "all"] | None = None
    min_score: int = 0
    min_comments: int = 0
    user_agent: str | None = Field(
        default=None, description="Falls back to crawler.user_agent."
    )
    rate_limit_delay_ms: int = Field(default=_DEFAULT_RATE_LIMIT_DELAY_MS, ge=0)

    @field_validator("subreddit")
    @classmethod
    def _no_prefix(cls, value: str) -> str:
        if value.startswith(("/r/", "r/")):
            msg = f"subreddit should not include '/r/' prefix, got: {value}"
            raise ValueError(msg)
        return value

    @model_validator(mode="after")
    def _top_needs_time_filter(self) -> RedditSourceConfig:
        if self.sort_by == "top" and self.time_filter is None:
            msg = "time_filter is required when sort_by is 'top'"
            raise ValueError(msg)
        return self

    @property
    def source_id(self) -> str:
        return f"reddit:{self.subreddit}:{self.sort_by}"


class SemanticScholarSourceConfig(BaseModel):
    """A Semantic Scholar search or recommendations feed."""

    type: Literal["semanticscholar"] = "semanticscholar"
    enabled: bool = True
    mode: Literal["search", "recommendations"]
    query: str | None = None
    year: str | None = Field(
        default=None, description="'YYYY', 'YYYY-YYYY', 'YYYY-' or '-YYYY'."
    )
    paper_id: str | None = None
    max_results: int = Field(default=100, gt=0)
    min_citations: int = Field(default=0, ge=0)
    api_key: SecretStr | None = None
    rate_limit_delay_ms: int = Field(default=_DEFAULT_RATE_LIMIT_DELAY_MS, ge=0)

    @field_validator("year")
    @classmethod
    def _valid_year(cls, value: str | None) -> str | None:
        if value is not None:
            validate_year_range(value)
        return value

    @model_validator(mode="after")
    def _mode_fields(self) -> SemanticScholarSourceConfig:
        if self.mode == "search" and not self.query:
            msg = "query cannot be empty in search mode"
            raise ValueError(msg)
        if self.mode == "recommendations" and not self.paper_id:
            msg = "paper_id cannot be empty in recommendations mode"
            raise ValueError(msg)
        return self

    @property
    def source_id(self) -> str:
        if self.mode == "search":
            return f"semantic_scholar:search:{quote(self.query or '', safe='')}"
        return f"semantic_scholar:recs:{quote(self.paper_id or '', safe='')}"


SourceEntry = Annotated[
    RedditSourceConfig | SemanticScholarSourceConfig,
    Field(discriminator="type"),
]


def validate_year_range(year: str) -> None:
    """Validate a Semantic Scholar year filter.

    Raises:
        ValueError: If ``year`` is not ``YYYY``, ``YYYY-YYYY``, ``YYYY-``
            or ``-YYYY``.
    """
    if not year:
        msg = "year cannot be empty"
        raise ValueError(msg)

    if "-" not in year:
        if not year.isdigit():
            msg = f"invalid year '{year}', must be a valid integer"
            raise ValueError(msg)
        return

    parts = year.split("-")
    if len(parts) != 2 or parts == ["", ""]:
        msg = f"invalid year range format '{year}', expected 'YYYY-YYYY', 'YYYY-', or '-YYYY'"
        raise ValueError(msg)
    start, end = parts
    if start and not start.isdigit():
        msg = f"invalid start year '{start}' in range '{year}'"
        raise ValueError(msg)
    if end and not end.isdigit():
        msg = f"invalid end year '{end}' in range '{year}'"
        raise ValueError(msg)


# ---------------------------------------------------------------------------
# Main Settings (layered resolution)
# ---------------------------------------------------------------------------

DEFAULT_CONFIG_PATH = Path("config.toml")


class Settings(BaseSettings):
    """Top-level application settings.

    Resolution order (last wins):
        1. Field defaults (defined above)
        2. TOML config file (``config.toml`` or ``--config`` path)
        3. Environment variables (prefixed ``CONTENT_CRAWLER_``)
        4. CLI overrides (applied programmatically after loading)
    """

    model_config = SettingsConfigDict(
        env_prefix="CONTENT_CRAWLER_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    _config_path_override: ClassVar[Path | None] = None

    crawler: CrawlerSettings
    sources: list[SourceEntry] = Field(default_factory=list)

    @model_validator(mode="after")
    def _has_enabled_source(self) -> Settings:
        if not self.sources:
            msg = "At least one source must be configured"
            raise ValueError(msg)
        if not any(entry.enabled for entry in self.sources):
            msg = "At least one source must be enabled"
            raise ValueError(msg)
        return self

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customise settings source priority.

        Resolution order (first = highest priority):
            init_settings (CLI) > env_settings > dotenv (.env) > toml > defaults

        Args:
            settings_cls: The settings class.
            init_settings: Init / programmatic overrides.
            env_settings: Environment variable source.
            dotenv_settings: Dotenv file source (.env).
            file_secret_settings: Secret file source (unused).

        Returns:
            Ordered tuple of settings sources (first = highest priority).
        """
        toml_file = cls._config_path_override or DEFAULT_CONFIG_PATH
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            TomlConfigSettingsSource(settings_cls, toml_file=toml_file),
        )

    @classmethod
    def load(cls, config_path: Path | None = None, **overrides: Any) -> Settings:
        """Load settings from a TOML file with optional CLI overrides.

        Args:
            config_path: Path to the TOML config file (default ``config.toml``).
            **overrides: Key-value CLI overrides applied at highest priority.

        Returns:
            Fully-resolved Settings instance.

        Raises:
            ConfigError: If the file is missing or is not valid TOML.
            ValidationError: If any setting value fails validation.
        """
        path = config_path or DEFAULT_CONFIG_PATH
        if not path.is_file():
            msg = f"Configuration file not found: {path}"
            raise ConfigError(msg)

        # Surface syntax errors as ConfigError before pydantic sees the file
        try:
            tomllib.loads(path.read_text(encoding="utf-8"))
        except (OSError, tomllib.TOMLDecodeError) as exc:
            msg = f"Failed to parse TOML configuration {path}: {exc}"
            raise ConfigError(msg) from exc

        cls._config_path_override = path
        try:
            return cls(**overrides)
        finally:
            cls._config_path_override = None

    @classmethod
    def from_toml(cls, text: str, **overrides: Any) -> Settings:
        """Load settings from TOML text (e.g. piped on stdin).

        Raises:
            ConfigError: If ``text`` is not valid TOML.
            ValidationError: If any setting value fails validation.
        """
        try:
            data = tomllib.loads(text)
        except tomllib.TOMLDecodeError as exc:
            msg = f"Failed to parse TOML configuration: {exc}"
            raise ConfigError(msg) from exc

        return _InlineSettings(**_deep_merge(data, overrides))

    def enabled_sources(self) -> list[RedditSourceConfig | SemanticScholarSourceConfig]:
        """Return enabled source entries in declaration order."""
        return [entry for entry in self.sources if entry.enabled]


class _InlineSettings(Settings):
    """Settings whose TOML data arrives as init kwargs rather than from a file."""

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (init_settings, env_settings, dotenv_settings)


def _deep_merge(base: dict[str, Any], updates: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in updates.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def format_validation_error(exc: ValidationError) -> str:
    """Format a Pydantic ValidationError into a user-friendly message.

    Args:
        exc: The validation error to format.

    Returns:
        A multi-line string with each error on its own line.
    """
    lines: list[str] = []
    for error in exc.errors():
        loc = " -> ".join(str(part) for part in error["loc"])
        msg = error["msg"]
        raw_input = error.get("input")
        if loc and raw_input is not None and not isinstance(raw_input, dict):
            lines.append(f"  {loc}: {msg} (got {raw_input!r})")
        elif loc:
            lines.append(f"  {loc}: {msg}")
        else:
            lines.append(f"  {msg}")
    return "Configuration error:\n" + "\n".join(lines)
