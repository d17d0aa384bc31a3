"""Shared fixtures: a file-backed SQLite store and a scriptable fetcher."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator, Iterable
from pathlib import Path

import pytest
import pytest_asyncio

from scanner.persistence import ScanStore
from scanner.robots import Failed, FetchOutcome


def sqlite_url(path: Path) -> str:
    return f"sqlite+aiosqlite:///{path}"


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    return sqlite_url(tmp_path / "robots_data.db")


@pytest_asyncio.fixture
async def store(database_url: str) -> AsyncGenerator[ScanStore, None]:
    async with ScanStore(database_url) as scan_store:
        yield scan_store


class StubFetcher:
    """Returns canned outcomes per origin and tracks concurrent calls."""

    def __init__(
        self,
        outcomes: dict[str, FetchOutcome] | None = None,
        *,
        delay: float = 0.0,
        default: FetchOutcome | None = None,
    ) -> None:
        self.outcomes = outcomes or {}
        self.delay = delay
        self.default = default
        self.calls: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def fetch(self, origin: str) -> FetchOutcome:
        self.calls.append(origin)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if origin in self.outcomes:
                return self.outcomes[origin]
            if self.default is not None:
                return self.default
            return Failed(url=origin, reason="transport", detail="no stub")
        finally:
            self.in_flight -= 1


class RecordingStore:
    """In-memory stand-in for ScanStore's write path."""

    def __init__(self, fail_for: Iterable[str] = ()) -> None:
        self.fail_for = set(fail_for)
        self.records: list[tuple[str, list[str], int | None]] = []

    async def record_scan_result(
        self, url: str, blocked_agents: Iterable[str], rank: int | None = None
    ) -> int:
        if url in self.fail_for:
            raise RuntimeError(f"database is locked ({url})")
        self.records.append((url, list(blocked_agents), rank))
        return len(self.records)


@pytest.fixture
def write_source(tmp_path: Path):
    def _write(*lines: str) -> Path:
        path = tmp_path / "top-1m.csv"
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return path

    return _write
