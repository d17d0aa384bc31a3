"""Command-line entry point: scan an origin list, print reports, reset the store."""

from __future__ import annotations

import asyncio
import logging
import logging.config
from pathlib import Path
from typing import Annotated, Optional

import typer
from click import Choice

from scanner.config import Settings, get_settings
from scanner.errors import ScannerError
from scanner.persistence import AgentCount, ScanStore
from scanner.robots import RobotsFetcher
from scanner.scheduler import ScanSummary, run_scan
from scanner.source import OriginSource

logger = logging.getLogger(__name__)

app = typer.Typer(no_args_is_help=True, help="Robots.txt analyzer: which crawlers do sites block?")

BLOCKED_AGENTS_REPORT = "blocked-agents"
NO_BLOCKED_AGENTS_REPORT = "no-blocked-agents"


def setup_logging(level: str = "INFO", verbose: bool = False) -> None:
    log_level = "DEBUG" if verbose else level.upper()
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "standard": {
                    "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                    "datefmt": "%Y-%m-%d %H:%M:%S",
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "level": log_level,
                    "formatter": "standard",
                    "stream": "ext://sys.stderr",
                },
            },
            "loggers": {
                "": {"handlers": ["console"], "level": log_level},
                "httpx": {"level": "WARNING"},
                "httpcore": {"level": "WARNING"},
            },
        }
    )


@app.callback()
def callback(
    verbose: Annotated[bool, typer.Option("-v", "--verbose", help="Enable debug logging.")] = False,
) -> None:
    setup_logging(get_settings().log_level, verbose)


async def _scan(
    source: OriginSource,
    settings: Settings,
    concurrency: int,
    record_not_found: bool,
) -> ScanSummary:
    async with ScanStore(
        settings.database_url, max_agent_length=settings.max_agent_length
    ) as store, RobotsFetcher(
        timeout=settings.request_timeout,
        max_redirects=settings.max_redirects,
        user_agent=settings.user_agent,
        default_scheme=settings.default_scheme,
        max_connections=concurrency,
    ) as fetcher:
        return await run_scan(
            source,
            fetcher,
            store,
            concurrency=concurrency,
            progress_interval=settings.progress_interval,
            record_not_found=record_not_found,
        )


@app.command()
def scan(
    list_path: Annotated[
        Path, typer.Option("--list", "-l", help="CSV file of rank,origin lines.")
    ],
    max_rank: Annotated[
        Optional[int],
        typer.Option("--max-rank", "-r", help="Only scan sites up to this rank (inclusive)."),
    ] = None,
    concurrency: Annotated[
        Optional[int],
        typer.Option("--concurrency", "-c", min=1, help="Concurrent fetches."),
    ] = None,
    record_not_found: Annotated[
        bool,
        typer.Option(
            "--record-not-found",
            help="Store a bare site row for origins whose robots.txt is 404.",
        ),
    ] = False,
) -> None:
    """Scan robots.txt files from a list of origins."""
    settings = get_settings()
    try:
        source = OriginSource(list_path, max_rank=max_rank)
        summary = asyncio.run(
            _scan(
                source,
                settings,
                concurrency or settings.concurrency,
                record_not_found or settings.record_not_found,
            )
        )
    except ScannerError as exc:
        typer.echo(f"Scan failed: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    typer.echo("--- Scan Complete ---")
    typer.echo(f"Total Origins Processed: {summary.processed}")
    typer.echo(f"Successful Fetches/Parses with robots.txt: {summary.succeeded}")
    typer.echo(f"Not Found (404): {summary.not_found}")
    typer.echo(f"Errors Encountered: {summary.fetch_failed + summary.errors}")


def render_blocked_agents(rows: list[AgentCount]) -> str:
    if not rows:
        return "No blocked agents found in the database."
    width = max(5, *(len(str(row.count)) for row in rows))
    lines = [
        "--- Blocked User Agents Report ---",
        f"{'Count'.ljust(width)} | User Agent",
        f"{'-' * width}-|------------",
    ]
    lines.extend(f"{str(row.count).ljust(width)} | {row.user_agent}" for row in rows)
    lines.append("----------------------------------")
    return "\n".join(lines)


async def _query(settings: Settings, report: str) -> str:
    async with ScanStore(settings.database_url) as store:
        if report == BLOCKED_AGENTS_REPORT:
            return render_blocked_agents(await store.blocked_agents_report())
        count = await store.count_sites_without_blocked_agents()
        return (
            "--- Sites With No Blocked Agents Report ---\n"
            f"Total sites found with zero blocked agents: {count}\n"
            "-------------------------------------------"
        )


@app.command()
def query(
    report: Annotated[
        str,
        typer.Option(
            "--report",
            "-r",
            click_type=Choice([BLOCKED_AGENTS_REPORT, NO_BLOCKED_AGENTS_REPORT]),
            help="Report to generate.",
        ),
    ],
) -> None:
    """Query the database for blocked user agents."""
    try:
        output = asyncio.run(_query(get_settings(), report))
    except ScannerError as exc:
        typer.echo(f"Query failed: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(output)


async def _reset(settings: Settings) -> None:
    async with ScanStore(settings.database_url) as store:
        await store.reset()


@app.command("reset-db")
def reset_db(
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip the confirmation prompt.")] = False,
) -> None:
    """Reset the database (deletes all stored data!)."""
    if not yes:
        typer.confirm("All stored scan results will be deleted. Continue?", abort=True)
    try:
        asyncio.run(_reset(get_settings()))
    except ScannerError as exc:
        typer.echo(f"Failed to reset database: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    typer.echo("Database reset successfully.")
