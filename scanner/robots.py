"""Robots.txt fetcher and blocked-agent extractor.

Fetches the robots.txt of an origin exactly once (no retries, no scheme
fallback) and classifies the result as found, not found, or failed. The
extractor reduces the file to the user-agents that carry at least one
Disallow line; it makes no attempt at path matching or Allow precedence.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from types import TracebackType
from typing import Literal
from urllib.parse import urlsplit, urlunsplit

import httpx

logger = logging.getLogger(__name__)

USER_AGENT = (
    "RobotsTxtAnalyzerBot/1.0 (+https://github.com/robots-scan/robots-scan)"
)

ROBOTS_PATH = "/robots.txt"

_DEFAULT_TIMEOUT_SECONDS = 10.0
_DEFAULT_MAX_REDIRECTS = 5


# ---------------------------------------------------------------------------
# Fetch outcomes
# ---------------------------------------------------------------------------

FailureReason = Literal[
    "invalid_url",
    "timeout",
    "too_many_redirects",
    "http_status",
    "transport",
]


@dataclass(frozen=True)
class Found:
    """A robots.txt answered 200. ``url`` is the location after redirects."""

    url: str
    text: str


@dataclass(frozen=True)
class NotFound:
    """The origin answered 404 for its robots.txt."""

    url: str


@dataclass(frozen=True)
class Failed:
    url: str
    reason: FailureReason
    detail: str = ""


FetchOutcome = Found | NotFound | Failed


# ---------------------------------------------------------------------------
# Robots.txt fetcher
# ---------------------------------------------------------------------------


def robots_url_for(origin: str, default_scheme: str = "https") -> str:
    """Build the canonical robots.txt URL for the origin of ``origin``.

    Path, query, fragment and credentials are discarded; only scheme, host
    and port survive. Inputs without a scheme (bare ``example.com``) get
    ``default_scheme``. Raises ValueError for anything that is not an
    http(s) URL with a host.
    """
    candidate = origin.strip()
    if not candidate:
        raise ValueError("empty origin")
    if "://" not in candidate:
        candidate = f"{default_scheme}://{candidate}"

    parts = urlsplit(candidate)
    scheme = parts.scheme.lower()
    if scheme not in ("http", "https"):
        raise ValueError(f"unsupported scheme {parts.scheme!r}")

    host = parts.hostname
    if not host:
        raise ValueError(f"no host in {origin!r}")

    port = parts.port  # ValueError on a malformed port
    if ":" in host:
        host = f"[{host}]"
    netloc = f"{host}:{port}" if port is not None else host

    return urlunsplit((scheme, netloc, ROBOTS_PATH, "", ""))


class RobotsFetcher:
    """Fetch robots.txt files over one shared ``httpx.AsyncClient``.

    The client holds no per-call state, so a single fetcher can serve any
    number of concurrent tasks. Use as an async context manager, or pass
    in a client you manage yourself.
    """

    def __init__(
        self,
        *,
        timeout: float = _DEFAULT_TIMEOUT_SECONDS,
        max_redirects: int = _DEFAULT_MAX_REDIRECTS,
        user_agent: str = USER_AGENT,
        default_scheme: str = "https",
        max_connections: int | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.timeout = timeout
        self.max_redirects = max_redirects
        self.user_agent = user_agent
        self.default_scheme = default_scheme
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            follow_redirects=True,
            max_redirects=max_redirects,
            timeout=timeout,
            limits=httpx.Limits(max_connections=max_connections),
        )

    async def __aenter__(self) -> RobotsFetcher:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def fetch(self, origin: str) -> FetchOutcome:
        """Fetch the robots.txt for ``origin``. Never raises for network errors."""
        try:
            url = robots_url_for(origin, self.default_scheme)
        except ValueError as exc:
            logger.warning("Invalid origin %r: %s", origin, exc)
            return Failed(url=origin, reason="invalid_url", detail=str(exc))

        logger.debug("Fetching %s", url)
        try:
            # Total-duration cap; httpx's own timeout is per network phase.
            resp = await asyncio.wait_for(
                self._client.get(
                    url,
                    headers={"User-Agent": self.user_agent},
                    follow_redirects=True,
                ),
                timeout=self.timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            logger.warning("Timeout fetching %s", url)
            return Failed(url=url, reason="timeout", detail=f"no response within {self.timeout}s")
        except httpx.TooManyRedirects as exc:
            logger.warning("Too many redirects fetching %s", url)
            return Failed(url=url, reason="too_many_redirects", detail=str(exc))
        except httpx.InvalidURL as exc:
            logger.warning("Invalid URL %s: %s", url, exc)
            return Failed(url=url, reason="invalid_url", detail=str(exc))
        except httpx.HTTPError as exc:
            logger.warning("Error fetching %s: %s", url, exc)
            return Failed(url=url, reason="transport", detail=str(exc) or type(exc).__name__)

        if resp.status_code == 200:
            return Found(url=str(resp.url), text=resp.text)
        if resp.status_code == 404:
            logger.info("Not found (404): %s", url)
            return NotFound(url=str(resp.url))

        logger.warning("Fetch failed for %s with status: %d", url, resp.status_code)
        return Failed(url=url, reason="http_status", detail=f"HTTP {resp.status_code}")


# ---------------------------------------------------------------------------
# Blocked-agent extraction
# ---------------------------------------------------------------------------

_USER_AGENT_RE = re.compile(r"^User-agent:\s*(.+)$", re.IGNORECASE)
_DISALLOW_RE = re.compile(r"^Disallow:", re.IGNORECASE)


def extract_blocked_agents(content: str) -> list[str]:
    """Return the user-agents that have at least one Disallow line.

    A block opens at ``User-agent:`` and closes at the next User-agent line,
    a blank line, a comment line, or end of input. Any Disallow line counts,
    including an empty ``Disallow:`` (which the exclusion standard reads as
    "allow everything"). Other directives are ignored and leave the block
    open.

    Agent names keep their original spelling. The result is in first-seen
    order without duplicates.
    """
    blocked: dict[str, None] = {}
    current_agent: str | None = None
    has_disallow = False

    for raw_line in content.splitlines():
        line = raw_line.strip()

        ua_match = _USER_AGENT_RE.match(line)
        if ua_match:
            if current_agent and has_disallow:
                blocked.setdefault(current_agent)
            current_agent = ua_match.group(1).strip()
            has_disallow = False
        elif current_agent and _DISALLOW_RE.match(line):
            has_disallow = True
        elif not line or line.startswith("#"):
            if current_agent and has_disallow:
                blocked.setdefault(current_agent)
            current_agent = None
            has_disallow = False

    if current_agent and has_disallow:
        blocked.setdefault(current_agent)

    return list(blocked)
