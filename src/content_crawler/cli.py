"""Typer CLI entry point for the content-crawler."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Annotated, Any

import structlog
import typer
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from content_crawler import __version__
from content_crawler.config import Settings, format_validation_error
from content_crawler.exceptions import ConfigError, CrawlerError
from content_crawler.logging import configure_logging, generate_run_id
from content_crawler.models import MatchMode, SourceFilters
from content_crawler.orchestrator import crawl
from content_crawler.output import STDOUT, write_json

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    name="content-crawler",
    help="Fetch content from Reddit and Semantic Scholar, filter by keywords, emit JSON.",
    no_args_is_help=True,
)

_STDIN_PATH = "-"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _display_error(message: str, title: str) -> None:
    err_console.print(Panel(message, title=title, border_style="red"))


def _load_settings(config: str, **overrides: Any) -> Settings:
    """Load settings from a path or stdin with user-friendly error panels."""
    try:
        if config == _STDIN_PATH:
            return Settings.from_toml(sys.stdin.read(), **overrides)
        return Settings.load(config_path=Path(config), **overrides)
    except ValidationError as exc:
        _display_error(format_validation_error(exc), title="Configuration Error")
        raise typer.Exit(code=1) from exc
    except ConfigError as exc:
        _display_error(str(exc), title="Configuration Error")
        raise typer.Exit(code=1) from exc


def _version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]content-crawler[/bold] {__version__}")
        raise typer.Exit


@app.callback()
def common(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show the version and exit.",
            callback=_version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """content-crawler global options."""


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

ConfigOption = Annotated[
    str,
    typer.Option("--config", "-c", help="Path to config TOML file, or '-' for stdin."),
]


@app.command()
def run(
    config: ConfigOption = "config.toml",
    output: Annotated[
        str | None,
        typer.Option("--output", "-o", help="Output destination: 'stdout' or a file path."),
    ] = None,
    keywords: Annotated[
        list[str] | None,
        typer.Option(
            "--keyword",
            "-k",
            help="Keyword to match in title/body. Repeat or comma-separate.",
        ),
    ] = None,
    match: Annotated[
        MatchMode,
        typer.Option("--match", "-m", help="Require any or all keywords.", case_sensitive=False),
    ] = MatchMode.ANY,
    log_level: Annotated[
        str | None,
        typer.Option("--log-level", "-l", help="error, warn, info, debug or trace."),
    ] = None,
    log_format: Annotated[
        str | None,
        typer.Option("--log-format", help="Log format: 'console' or 'json'."),
    ] = None,
) -> None:
    """Crawl every enabled source and emit the filtered items as JSON."""
    crawler_overrides: dict[str, Any] = {}
    if output is not None:
        crawler_overrides["output_destination"] = output
    if log_level is not None:
        crawler_overrides["log_level"] = log_level.lower()
    if log_format is not None:
        crawler_overrides["log_format"] = log_format.lower()

    overrides: dict[str, Any] = {}
    if crawler_overrides:
        overrides["crawler"] = crawler_overrides

    settings = _load_settings(config, **overrides)

    run_id = generate_run_id()
    try:
        configure_logging(
            level=settings.crawler.log_level,
            fmt=settings.crawler.log_format,
            log_file=settings.crawler.log_file,
            run_id=run_id,
        )
    except ConfigError as exc:
        _display_error(str(exc), title="Configuration Error")
        raise typer.Exit(code=1) from exc
    filters = SourceFilters.from_cli(keywords, match.value)
    destination = settings.crawler.output_destination
    logger.info(
        "run_start",
        config=config,
        enabled_sources=len(settings.enabled_sources()),
        destination=destination,
    )

    try:
        contents = asyncio.run(crawl(settings, filters))
        write_json(contents, destination)
    except CrawlerError as exc:
        _display_error(str(exc), title="Crawl Failed")
        raise typer.Exit(code=1) from exc

    if destination != STDOUT:
        err_console.print(
            f"[green]Wrote {len(contents)} items to[/green] {destination}"
            f" [dim](run {run_id})[/dim]"
        )


@app.command()
def validate(config: ConfigOption = "config.toml") -> None:
    """Validate the configuration and list the configured sources."""
    settings = _load_settings(config)

    table = Table(title="Configured Sources", show_lines=False)
    table.add_column("#", style="cyan", justify="right", width=4)
    table.add_column("Type", style="white")
    table.add_column("Source ID", style="white")
    table.add_column("Enabled", justify="center")

    for index, entry in enumerate(settings.sources):
        table.add_row(
            str(index),
            entry.type,
            entry.source_id,
            "[green]yes[/green]" if entry.enabled else "[dim]no[/dim]",
        )

    console.print(table)
    console.print(
        f"[green]Configuration OK[/green]: "
        f"{len(settings.enabled_sources())} of {len(settings.sources)} sources enabled, "
        f"max_concurrency={settings.crawler.max_concurrency}"
    )


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
