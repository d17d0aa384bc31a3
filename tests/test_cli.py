"""Tests for the command surface (store and HTTP are real/mocked, not stubbed)."""

from __future__ import annotations

import asyncio

import httpx
import pytest
import respx
from typer.testing import CliRunner

from scanner import cli
from scanner.config import get_settings
from scanner.persistence import AgentCount, ScanStore

runner = CliRunner()


@pytest.fixture(autouse=True)
def cli_env(monkeypatch, database_url):
    monkeypatch.setenv("ROBOTS_SCAN_DATABASE_URL", database_url)
    monkeypatch.setattr(cli, "setup_logging", lambda *args, **kwargs: None)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def _seed(database_url: str) -> None:
    async def _write():
        async with ScanStore(database_url) as store:
            await store.record_scan_result("https://a.example/robots.txt", ["GPTBot", "CCBot"])
            await store.record_scan_result("https://b.example/robots.txt", ["GPTBot"])
            await store.record_scan_result("https://c.example/robots.txt", [])

    asyncio.run(_write())


class TestScanCommand:
    def test_missing_list_exits_nonzero(self, tmp_path):
        result = runner.invoke(cli.app, ["scan", "--list", str(tmp_path / "nope.csv")])

        assert result.exit_code == 1
        assert "Scan failed" in result.output

    def test_scan_end_to_end(self, write_source):
        path = write_source("1,https://a.example", "2,https://b.example", "x,https://c.example")

        with respx.mock(assert_all_called=False) as mock:
            mock.get("https://a.example/robots.txt").return_value = httpx.Response(
                200, text="User-agent: GPTBot\nDisallow: /\n"
            )
            mock.get("https://b.example/robots.txt").return_value = httpx.Response(404)
            result = runner.invoke(cli.app, ["scan", "--list", str(path), "--concurrency", "2"])

        assert result.exit_code == 0, result.output
        assert "Total Origins Processed: 2" in result.output
        assert "Not Found (404): 1" in result.output

        result = runner.invoke(cli.app, ["query", "--report", "blocked-agents"])
        assert "GPTBot" in result.output

    def test_max_rank(self, write_source):
        path = write_source("1,https://a.example", "2,https://b.example")

        with respx.mock(assert_all_called=False) as mock:
            route = mock.get("https://b.example/robots.txt")
            mock.get("https://a.example/robots.txt").return_value = httpx.Response(404)
            result = runner.invoke(cli.app, ["scan", "--list", str(path), "--max-rank", "1"])

        assert result.exit_code == 0, result.output
        assert "Total Origins Processed: 1" in result.output
        assert not route.called


class TestQueryCommand:
    def test_blocked_agents_report(self, database_url):
        _seed(database_url)

        result = runner.invoke(cli.app, ["query", "--report", "blocked-agents"])

        assert result.exit_code == 0, result.output
        lines = result.output.splitlines()
        assert lines.index("2     | GPTBot") < lines.index("1     | CCBot")

    def test_no_blocked_agents_report(self, database_url):
        _seed(database_url)

        result = runner.invoke(cli.app, ["query", "--report", "no-blocked-agents"])

        assert result.exit_code == 0, result.output
        assert "Total sites found with zero blocked agents: 1" in result.output

    def test_empty_database(self):
        result = runner.invoke(cli.app, ["query", "--report", "blocked-agents"])

        assert result.exit_code == 0, result.output
        assert "No blocked agents found in the database." in result.output

    def test_unknown_report_is_rejected(self):
        result = runner.invoke(cli.app, ["query", "--report", "everything"])

        assert result.exit_code != 0

    @pytest.mark.filterwarnings("error::pytest.PytestUnhandledThreadExceptionWarning")
    def test_store_failure_exits_nonzero(self, monkeypatch, tmp_path):
        monkeypatch.setenv(
            "ROBOTS_SCAN_DATABASE_URL",
            f"sqlite+aiosqlite:///{tmp_path / 'missing-dir' / 'db.sqlite'}",
        )
        get_settings.cache_clear()

        result = runner.invoke(cli.app, ["query", "--report", "no-blocked-agents"])

        assert result.exit_code == 1
        assert "Query failed" in result.output


class TestResetCommand:
    def test_reset_with_yes(self, database_url):
        _seed(database_url)

        result = runner.invoke(cli.app, ["reset-db", "--yes"])

        assert result.exit_code == 0, result.output
        assert "Database reset successfully." in result.output
        result = runner.invoke(cli.app, ["query", "--report", "no-blocked-agents"])
        assert "zero blocked agents: 0" in result.output

    def test_reset_aborts_without_confirmation(self, database_url):
        _seed(database_url)

        result = runner.invoke(cli.app, ["reset-db"], input="n\n")

        assert result.exit_code != 0
        result = runner.invoke(cli.app, ["query", "--report", "no-blocked-agents"])
        assert "zero blocked agents: 1" in result.output


def test_render_blocked_agents_widens_count_column():
    output = cli.render_blocked_agents([AgentCount(user_agent="GPTBot", count=123456)])

    assert "123456 | GPTBot" in output
