"""
Engine + session factory.

One ``Database`` per process: created on startup, injected everywhere, disposed
explicitly on shutdown.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from storefront.db._tables import Base

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Database:
    engine: AsyncEngine
    session_factory: async_sessionmaker[AsyncSession]

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        """
        All-or-nothing unit of work.

        Commits when the block exits normally; any exception rolls back every
        statement issued through the yielded session and propagates.
        """
        async with self.session_factory() as session:
            async with session.begin():
                yield session

    async def dispose(self) -> None:
        await self.engine.dispose()
        logger.info("Database engine disposed")


# ═══════════════════════════════════════════════════════════════════════════════
# SQLite — take the write lock when the transaction starts
# ═══════════════════════════════════════════════════════════════════════════════

def _install_sqlite_hooks(engine: AsyncEngine) -> None:
    """
    Replace the driver's lazy BEGIN with BEGIN IMMEDIATE.

    Note: without this, two checkouts can both read stock under a SHARED lock
    and one of them dies with "database is locked" instead of waiting. With
    it, writers queue on the busy timeout and see each other's commits.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection: Any, _record: Any) -> None:
        # stop the driver from emitting its own BEGIN / COMMIT
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")


# ═══════════════════════════════════════════════════════════════════════════════
# Database Setup
# ═══════════════════════════════════════════════════════════════════════════════

async def create_database(
    url: str = "sqlite+aiosqlite:///./storefront.db",
    *,
    echo: bool = False,
    busy_timeout: float = 30.0,
) -> Database:
    """Create engine, install dialect hooks, create tables."""
    is_sqlite = make_url(url).get_backend_name() == "sqlite"
    connect_args: dict[str, Any] = {"timeout": busy_timeout} if is_sqlite else {}

    engine = create_async_engine(url, echo=echo, connect_args=connect_args)
    if is_sqlite:
        _install_sqlite_hooks(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info("Database ready: %s", engine.url.render_as_string(hide_password=True))
    return Database(
        engine=engine,
        session_factory=async_sessionmaker(engine, expire_on_commit=False),
    )


__all__ = ("Database", "create_database")
