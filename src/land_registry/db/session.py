"""
land_registry.db.session

Async SQLAlchemy engine + session factory helpers for the reference registry.

Responsibilities:
- Create the async engine from settings.
- On SQLite: wait on locks instead of failing (concurrent resolvers) and enforce foreign keys.
- Create the async sessionmaker; services own commit/rollback.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from land_registry.settings import Settings

_SQLITE_BUSY_TIMEOUT_SECONDS = 30


def create_engine(settings: Settings) -> AsyncEngine:
    is_sqlite = settings.database_url.startswith("sqlite")
    connect_args: dict[str, Any] = {}
    if is_sqlite:
        connect_args["timeout"] = _SQLITE_BUSY_TIMEOUT_SECONDS

    engine = create_async_engine(
        settings.database_url, pool_pre_ping=True, connect_args=connect_args
    )
    if is_sqlite:
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def _enable_sqlite_foreign_keys(dbapi_connection: Any, _: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # expire_on_commit=False: services return views built after commit.
    return async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)
