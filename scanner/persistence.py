"""Durable store for scan results.

One ``ScanStore`` owns one async engine. It must be opened before use and
closed afterwards; ``async with ScanStore(url) as store`` does both. Any
operation outside the READY state raises ``StoreNotReadyError`` instead of
quietly reconnecting.

Each ``record_scan_result`` call is a single transaction: the Site row is
fetched or created (insert-ignore, then re-read) and the BlockedAgent rows
are added in the same transaction. On SQLite the write path is further
serialized through one lock, since SQLite allows a single writer anyway.
"""

from __future__ import annotations

import asyncio
import contextlib
import enum
import logging
from collections.abc import Iterable
from pathlib import Path
from types import TracebackType
from typing import Any

from pydantic import BaseModel
from sqlalchemy import event, func, insert, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as lite_insert
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from models import MAX_USER_AGENT_LENGTH, BlockedAgent, Site
from scanner.errors import StoreInitializationError, StoreNotReadyError

logger = logging.getLogger(__name__)

_TABLES = [Site.__table__, BlockedAgent.__table__]
_SUPPORTED_DIALECTS = ("sqlite", "postgresql")


def _check_sqlite_directory(database: str | None) -> None:
    # Must run before aiosqlite starts a connection thread.
    if not database or database == ":memory:" or database.startswith("file:"):
        return
    parent = Path(database).expanduser().parent
    if not parent.is_dir():
        raise StoreInitializationError(f"Database directory does not exist: {parent}")


class StoreState(str, enum.Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    CLOSED = "closed"


class AgentCount(BaseModel):
    """One row of the blocked-agent report."""

    user_agent: str
    count: int


def _enable_sqlite_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
    # SQLite ships with FK enforcement off, per connection.
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class ScanStore:
    """Sites and their blocked agents, backed by SQLAlchemy's async engine."""

    def __init__(
        self,
        database_url: str,
        *,
        max_agent_length: int = MAX_USER_AGENT_LENGTH,
        echo: bool = False,
    ) -> None:
        self.database_url = database_url
        self.max_agent_length = max_agent_length
        self.echo = echo
        self._state = StoreState.UNINITIALIZED
        self._engine: AsyncEngine | None = None
        self._session_maker: async_sessionmaker[AsyncSession] | None = None
        self._dialect_name: str | None = None
        self._write_lock: asyncio.Lock | None = None

    @property
    def state(self) -> StoreState:
        return self._state

    @property
    def dialect_name(self) -> str | None:
        return self._dialect_name

    async def __aenter__(self) -> ScanStore:
        await self.open()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        await self.close()

    # -----------------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------------

    async def open(self) -> None:
        """Connect, create the tables if missing, and move to READY."""
        if self._state is StoreState.READY:
            return
        if self._state is StoreState.CLOSED:
            raise StoreNotReadyError("Store has been closed and cannot be reopened")

        engine: AsyncEngine | None = None
        try:
            engine = create_async_engine(self.database_url, echo=self.echo)
            dialect_name = engine.dialect.name
            if dialect_name not in _SUPPORTED_DIALECTS:
                raise StoreInitializationError(
                    f"Unsupported database dialect: {dialect_name}. "
                    f"Supported: {', '.join(_SUPPORTED_DIALECTS)}."
                )
            if dialect_name == "sqlite":
                _check_sqlite_directory(engine.url.database)
                event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

            async with engine.begin() as conn:
                await conn.run_sync(Site.metadata.create_all, tables=_TABLES, checkfirst=True)
        except StoreInitializationError:
            if engine is not None:
                await engine.dispose()
            raise
        except Exception as exc:
            if engine is not None:
                await engine.dispose()
            logger.error("Database initialization failed: %s", exc)
            raise StoreInitializationError(
                f"Could not initialize database at {self.database_url}: {exc}"
            ) from exc

        self._engine = engine
        self._dialect_name = dialect_name
        self._session_maker = async_sessionmaker(engine, expire_on_commit=False, autoflush=False)
        self._write_lock = asyncio.Lock() if dialect_name == "sqlite" else None
        self._state = StoreState.READY
        logger.info("Connected to %s database", dialect_name)

    async def close(self) -> None:
        """Dispose of the engine. Safe to call more than once."""
        if self._engine is not None:
            await self._engine.dispose()
            logger.info("Database connection closed.")
        self._engine = None
        self._session_maker = None
        self._state = StoreState.CLOSED

    def _require_ready(self) -> async_sessionmaker[AsyncSession]:
        if self._state is not StoreState.READY or self._session_maker is None:
            raise StoreNotReadyError(f"Store is {self._state.value}, expected ready")
        return self._session_maker

    def _write_guard(self) -> contextlib.AbstractAsyncContextManager[Any]:
        if self._write_lock is None:
            return contextlib.nullcontext()
        return self._write_lock

    def _insert_site_ignore(self, url: str, rank: int | None) -> Any:
        values = {"url": url, "rank": rank}
        if self._dialect_name == "postgresql":
            return pg_insert(Site).values(values).on_conflict_do_nothing(index_elements=["url"])
        return lite_insert(Site).values(values).on_conflict_do_nothing(index_elements=["url"])

    # -----------------------------------------------------------------------
    # Writes
    # -----------------------------------------------------------------------

    async def record_scan_result(
        self,
        url: str,
        blocked_agents: Iterable[str],
        rank: int | None = None,
    ) -> int:
        """Record one successful scan and return the Site id.

        The Site for ``url`` is reused if it already exists; its rank is
        not touched. Agents of ``max_agent_length`` characters or more are
        dropped with a warning. Agents are appended without checking for
        rows left by earlier scans of the same site.
        """
        session_maker = self._require_ready()

        agents: list[str] = []
        for agent in blocked_agents:
            if not agent or len(agent) >= self.max_agent_length:
                logger.warning(
                    "Skipping invalid or long agent for %s: %.100s...", url, agent
                )
                continue
            agents.append(agent)

        async with self._write_guard():
            async with session_maker() as session, session.begin():
                await session.execute(self._insert_site_ignore(url, rank))
                site_id = (
                    await session.execute(select(Site.id).where(Site.url == url))
                ).scalar_one()

                if agents:
                    await session.execute(
                        insert(BlockedAgent),
                        [{"site_id": site_id, "user_agent": agent} for agent in agents],
                    )

        if agents:
            logger.info("Added %d blocked agents for site ID %d (%s)", len(agents), site_id, url)
        else:
            logger.debug("Recorded site ID %d (%s) with no blocked agents", site_id, url)
        return site_id

    async def reset(self) -> None:
        """Drop and recreate both tables. Every stored row is lost."""
        session_maker = self._require_ready()

        async with self._write_guard(), session_maker.begin() as session:
            conn = await session.connection()
            await conn.run_sync(Site.metadata.drop_all, tables=_TABLES, checkfirst=True)
            await conn.run_sync(Site.metadata.create_all, tables=_TABLES, checkfirst=True)
        logger.warning("Database reset: all sites and blocked agents deleted")

    # -----------------------------------------------------------------------
    # Reads
    # -----------------------------------------------------------------------

    async def blocked_agents_report(self) -> list[AgentCount]:
        """Count BlockedAgent rows per user-agent, most blocked first."""
        session_maker = self._require_ready()
        block_count = func.count(BlockedAgent.id).label("block_count")
        stmt = (
            select(BlockedAgent.user_agent, block_count)
            .group_by(BlockedAgent.user_agent)
            .order_by(block_count.desc(), BlockedAgent.user_agent)
        )
        async with session_maker() as session:
            rows = (await session.execute(stmt)).all()

        logger.info("Found %d unique blocked user agents.", len(rows))
        return [AgentCount(user_agent=user_agent, count=count) for user_agent, count in rows]

    async def count_sites_without_blocked_agents(self) -> int:
        session_maker = self._require_ready()
        stmt = select(func.count(Site.id)).where(~Site.blocked_agents.any())
        async with session_maker() as session:
            return (await session.execute(stmt)).scalar_one()

    async def count_sites(self) -> int:
        session_maker = self._require_ready()
        async with session_maker() as session:
            return (await session.execute(select(func.count(Site.id)))).scalar_one()

    async def count_blocked_agents(self) -> int:
        session_maker = self._require_ready()
        async with session_maker() as session:
            return (await session.execute(select(func.count(BlockedAgent.id)))).scalar_one()

    async def get_site(self, url: str) -> Site | None:
        """Return the Site stored under ``url`` with its blocked agents loaded."""
        session_maker = self._require_ready()
        async with session_maker() as session:
            result = await session.execute(select(Site).where(Site.url == url))
            return result.scalar_one_or_none()
