"""Bounded-concurrency scan pipeline: origin list -> fetch -> extract -> store.

Origins are pulled from the source one at a time and admitted only when a
slot is free, so at most ``concurrency`` fetches are in flight and the list
is never held in memory. Every admitted task runs to completion; a failure
in one origin is logged and counted, never raised.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Protocol

from scanner.robots import Failed, FetchOutcome, Found, NotFound, extract_blocked_agents

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 50
DEFAULT_PROGRESS_INTERVAL = 100


class Fetcher(Protocol):
    async def fetch(self, origin: str) -> FetchOutcome: ...


class ResultStore(Protocol):
    async def record_scan_result(
        self, url: str, blocked_agents: Iterable[str], rank: int | None = None
    ) -> int: ...


@dataclass
class ScanSummary:
    """Counters for one scan.

    ``processed == succeeded + failed`` and
    ``failed == not_found + fetch_failed + errors``.
    """

    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    not_found: int = 0
    fetch_failed: int = 0
    errors: int = 0


async def _process_origin(
    rank: int,
    origin: str,
    fetcher: Fetcher,
    store: ResultStore,
    extract: Callable[[str], list[str]],
    summary: ScanSummary,
    record_not_found: bool,
) -> None:
    try:
        outcome = await fetcher.fetch(origin)
        if isinstance(outcome, Found):
            agents = extract(outcome.text)
            if agents:
                logger.info(
                    "Found %d potentially blocked agents for %s", len(agents), outcome.url
                )
            await store.record_scan_result(outcome.url, agents, rank)
            summary.succeeded += 1
        elif isinstance(outcome, NotFound):
            if record_not_found:
                await store.record_scan_result(outcome.url, [], rank)
            summary.not_found += 1
            summary.failed += 1
        elif isinstance(outcome, Failed):
            logger.debug("Fetch failed for %s (%s): %s", origin, outcome.reason, outcome.detail)
            summary.fetch_failed += 1
            summary.failed += 1
        else:
            raise TypeError(f"Unexpected fetch outcome: {outcome!r}")
    except Exception as exc:
        logger.error("Failed processing origin %s: %s", origin, exc, exc_info=True)
        summary.errors += 1
        summary.failed += 1


async def run_scan(
    source: Iterable[tuple[int, str]],
    fetcher: Fetcher,
    store: ResultStore,
    *,
    concurrency: int = DEFAULT_CONCURRENCY,
    extract: Callable[[str], list[str]] = extract_blocked_agents,
    progress_interval: int = DEFAULT_PROGRESS_INTERVAL,
    record_not_found: bool = False,
) -> ScanSummary:
    """Scan every origin in ``source`` and return the counters.

    Returns only after the source is exhausted and every admitted task has
    finished. Completion order follows network latency, not input order.
    """
    if concurrency < 1:
        raise ValueError("concurrency must be at least 1")
    if progress_interval < 1:
        raise ValueError("progress_interval must be at least 1")

    summary = ScanSummary()
    slots = asyncio.Semaphore(concurrency)
    in_flight: set[asyncio.Task[None]] = set()
    queued = 0

    async def _run_in_slot(rank: int, origin: str) -> None:
        try:
            await _process_origin(
                rank, origin, fetcher, store, extract, summary, record_not_found
            )
        finally:
            slots.release()
            summary.processed += 1
            _report_progress()

    def _report_progress() -> None:
        if summary.processed % progress_interval == 0:
            logger.info(
                "Progress: Processed %d origins... (Success: %d, Not found: %d, Errors: %d)",
                summary.processed,
                summary.succeeded,
                summary.not_found,
                summary.fetch_failed + summary.errors,
            )

    logger.info("Starting scan with concurrency %d", concurrency)
    for rank, origin in source:
        await slots.acquire()
        task = asyncio.create_task(_run_in_slot(rank, origin))
        in_flight.add(task)
        task.add_done_callback(in_flight.discard)
        queued += 1

    logger.info(
        "Finished reading origin list. Total tasks queued: %d. Waiting for %d in flight...",
        queued,
        len(in_flight),
    )
    if in_flight:
        await asyncio.gather(*in_flight)

    logger.info(
        "Scan complete: processed=%d succeeded=%d failed=%d (not_found=%d fetch_failed=%d errors=%d)",
        summary.processed,
        summary.succeeded,
        summary.failed,
        summary.not_found,
        summary.fetch_failed,
        summary.errors,
    )
    return summary
