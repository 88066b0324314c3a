"""Database engine and session management utilities."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Any

from sqlalchemy import event, text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import AsyncAdaptedQueuePool

from sitemap_refresher.config import Settings, get_settings

DEFAULT_POOL_SIZE = 5
DEFAULT_MAX_OVERFLOW = 10
SQLITE_BUSY_TIMEOUT_SECONDS = 30

SessionScopeFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]

_database_logger = logging.getLogger("sitemap_refresher.database")


def _is_sqlite_url(database_url: str) -> bool:
    parsed_url = make_url(database_url)
    return parsed_url.get_backend_name() == "sqlite"


def build_engine(database_url: str) -> AsyncEngine:
    """Create the pooled async engine shared by every entity generator."""

    connect_args: dict[str, int] = {}
    if _is_sqlite_url(database_url):
        connect_args["timeout"] = SQLITE_BUSY_TIMEOUT_SECONDS

    engine = create_async_engine(
        database_url,
        poolclass=AsyncAdaptedQueuePool,
        pool_pre_ping=True,
        pool_size=DEFAULT_POOL_SIZE,
        max_overflow=DEFAULT_MAX_OVERFLOW,
        connect_args=connect_args,
    )

    if _is_sqlite_url(database_url):
        _configure_sqlite_pragmas(engine)

    return engine


def _configure_sqlite_pragmas(engine: AsyncEngine) -> None:
    @event.listens_for(engine.sync_engine, "connect")
    def apply_sqlite_pragmas(dbapi_connection: Any, _: Any) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON;")
        cursor.close()


def build_session_scope(
    session_factory: async_sessionmaker[AsyncSession],
) -> SessionScopeFactory:
    """Wrap a session factory into a read-only session scope factory."""

    @asynccontextmanager
    async def scope() -> AsyncIterator[AsyncSession]:
        session = session_factory()
        try:
            yield session
        finally:
            await session.close()

    return scope


settings: Settings = get_settings()
engine = build_engine(settings.DATABASE_URL)

AsyncSessionFactory = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    autoflush=False,
    expire_on_commit=False,
)

session_scope = build_session_scope(AsyncSessionFactory)


async def check_database_connection() -> None:
    """Fail fast when the relational store cannot be reached."""

    async with engine.connect() as connection:
        await connection.execute(text("SELECT 1"))
    _database_logger.info("database_connection_ok")


async def close_database() -> None:
    """Dispose database engine and release pooled connections."""

    await engine.dispose()


__all__ = [
    "AsyncSessionFactory",
    "SessionScopeFactory",
    "build_engine",
    "build_session_scope",
    "check_database_connection",
    "close_database",
    "engine",
    "session_scope",
]
