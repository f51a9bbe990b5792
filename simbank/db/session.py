"""
Database engine and session management.

The engine is an explicit resource: :class:`Database` is built once when the
application starts (see ``simbank.main.lifespan``), stored on ``app.state``,
and disposed of on shutdown.  Request handlers receive a session through the
:func:`get_db` dependency; nothing in the package holds a process-wide
connection object.
"""

from collections.abc import AsyncGenerator
from typing import Optional

from fastapi import Request
from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from simbank.core.config import Settings


def create_engine_for(settings: Settings, url: Optional[str] = None) -> AsyncEngine:
    """Build the async engine for PostgreSQL or (in-memory) SQLite."""
    url = url or settings.DATABASE_URL

    if url.startswith("sqlite"):
        # StaticPool makes every connection share the same in-memory database.
        engine = create_async_engine(
            url,
            echo=settings.DEBUG,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

        # SQLite does not enforce FK constraints by default.  aiosqlite wraps a
        # sync connection, so the listener goes on the sync engine.
        @event.listens_for(engine.sync_engine, "connect")
        def _set_sqlite_pragma(dbapi_conn, connection_record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    return create_async_engine(
        url,
        echo=settings.DEBUG,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_POOL_RECYCLE,
        pool_pre_ping=True,
    )


class Database:
    """Owns one engine and the session factory bound to it."""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        # expire_on_commit=False: attributes stay readable after commit
        # without an implicit (sync) reload.
        self.sessionmaker = async_sessionmaker(
            bind=engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @classmethod
    def from_settings(cls, settings: Settings, url: Optional[str] = None) -> "Database":
        return cls(create_engine_for(settings, url))

    async def create_all(self) -> None:
        """Create every table registered on ``SQLModel.metadata``."""
        import simbank.models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)

    async def ping(self) -> bool:
        """Return True when a trivial ``SELECT 1`` succeeds."""
        try:
            async with self.sessionmaker() as session:
                await session.execute(text("SELECT 1"))
        except Exception:
            return False
        return True

    async def dispose(self) -> None:
        await self.engine.dispose()


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that yields an async database session.

    The session is closed when the request finishes, returning its
    connection to the pool.
    """
    database: Database = request.app.state.database
    async with database.sessionmaker() as session:
        yield session
