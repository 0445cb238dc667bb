"""structlog configuration and per-source logging context.

Provides run ID generation, a per-fetch logging context manager, and
structured log configuration for console and JSON output with optional
file logging. Logs always go to stderr because stdout carries the
crawl results.
"""

from __future__ import annotations

import logging
import sys
import uuid
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import structlog

from content_crawler.exceptions import ConfigError

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

# ---------------------------------------------------------------------------
# Run ID
# ---------------------------------------------------------------------------


def generate_run_id() -> str:
    """Generate a unique identifier for one crawl run.

    Returns:
        A UUID4 string.
    """
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# structlog configuration
# ---------------------------------------------------------------------------


_VALID_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}

# Crawler config vocabulary -> stdlib level names
_LEVEL_ALIASES = {"TRACE": "DEBUG", "WARN": "WARNING"}


def resolve_level(level: str) -> str:
    """Map a configured level name to a stdlib logging level name.

    Raises:
        ValueError: If ``level`` is not a recognized log level.
        ConfigError: If ``log_file`` cannot be opened for appending.
    """
    level_upper = level.upper()
    level_upper = _LEVEL_ALIASES.get(level_upper, level_upper)
    if level_upper not in _VALID_LEVELS:
        msg = f"Invalid log level: {level!r}. Must be one of {sorted(_VALID_LEVELS)}"
        raise ValueError(msg)
    return level_upper


def configure_logging(
    level: str = "INFO",
    fmt: str = "console",
    log_file: str | Path | None = None,
    run_id: str | None = None,
) -> None:
    """Configure structlog for the application.

    Sets up structlog with shared processors and a format-specific
    renderer. Configures the stdlib logging root to respect the given
    level and optionally adds a file handler.

    Args:
        level: Log level name. Accepts the stdlib names plus the crawler's
            ``trace`` and ``warn`` spellings, case-insensitively.
        fmt: Output format: ``"console"`` for human-readable or
            ``"json"`` for machine-parseable.
        log_file: Optional file path for log output (in addition to stderr).
        run_id: Optional run ID to bind to all log entries.

    Raises:
        ValueError: If ``level`` is not a recognized log level.
    """
    numeric_level = getattr(logging, resolve_level(level))

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    renderer: structlog.types.Processor
    if fmt == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    file_handler: logging.FileHandler | None = None
    if log_file:
        try:
            file_handler = logging.FileHandler(str(log_file), encoding="utf-8")
        except OSError as exc:
            msg = f"Cannot open log file {log_file}: {exc}"
            raise ConfigError(msg) from exc
        file_handler.setLevel(numeric_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    # Clear existing handlers to avoid duplicates on re-configuration
    root_logger.handlers.clear()

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(numeric_level)
    root_logger.addHandler(stderr_handler)

    if file_handler is not None:
        root_logger.addHandler(file_handler)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(numeric_level, logging.WARNING))

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )
    for handler in root_logger.handlers:
        handler.setFormatter(formatter)

    if run_id:
        structlog.contextvars.bind_contextvars(run_id=run_id)


# ---------------------------------------------------------------------------
# Source logging context manager
# ---------------------------------------------------------------------------


@contextmanager
def source_logging_context(
    source_id: str,
    source_type: str = "",
    **extra: Any,
) -> Iterator[structlog.stdlib.BoundLogger]:
    """Bind a source's identity to every log entry emitted during its fetch.

    Logs fetch start and end, and logs (then re-raises) any exception.
    Each asyncio task runs in its own contextvars copy, so concurrent
    fetches keep separate bindings.

    Args:
        source_id: Identifier of the configured source.
        source_type: Provider kind, e.g. ``"reddit"``.
        **extra: Additional key-value pairs to bind.

    Yields:
        A bound structlog logger with source context.

    Example::

        with source_logging_context("reddit:rust:hot", "reddit") as log:
            log.info("page_fetched", items=25)
    """
    structlog.contextvars.bind_contextvars(
        source_id=source_id,
        source_type=source_type,
        **extra,
    )

    log: structlog.stdlib.BoundLogger = structlog.get_logger("content_crawler.source")
    log.info("source_fetch_start")

    try:
        yield log
    except Exception as exc:
        log.error("source_fetch_error", error=str(exc), error_type=type(exc).__name__)
        raise
    finally:
        log.info("source_fetch_end")
        structlog.contextvars.unbind_contextvars(
            "source_id", "source_type", *extra.keys()
        )
