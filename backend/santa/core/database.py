"""Async database engine and session management.

SQLite through aiosqlite. Foreign keys are switched on for every
connection so deleting a game cascades to its participants and resend
records.
"""

from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from santa.core.config import settings

# Seconds a writer waits on SQLite's database lock before failing
_SQLITE_BUSY_TIMEOUT = 30


def _enable_sqlite_foreign_keys(dbapi_connection: Any, _connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(database_url: str, *, echo: bool = False) -> AsyncEngine:
    """Create an async engine with the SQLite connection hooks installed.

    Args:
        database_url: SQLAlchemy async URL (``sqlite+aiosqlite:///...``).
        echo: Log emitted SQL.

    Returns:
        Configured AsyncEngine.
    """
    connect_args: dict[str, Any] = {}
    if database_url.startswith("sqlite"):
        connect_args["timeout"] = _SQLITE_BUSY_TIMEOUT

    new_engine = create_async_engine(
        database_url,
        echo=echo,
        connect_args=connect_args,
    )
    if new_engine.dialect.name == "sqlite":
        event.listen(new_engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
    return new_engine


engine = build_engine(
    settings.database_url,
    echo=settings.environment == "development" and settings.log_level == "DEBUG",
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency that provides a database session."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
