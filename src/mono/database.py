"""Async engine and session factory for the workers, the runner and the side channel.

There is no request scope here: every job opens its own session from the
factory and closes it when done.
"""

from __future__ import annotations

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

_engine: AsyncEngine | None = None


def _engine_options(url: str) -> dict:
    """Pool sizing for PostgreSQL; SQLite (tests, local runs) keeps its defaults."""
    if make_url(url).get_backend_name() == "sqlite":
        return {}
    return {
        "pool_size": 10,
        "max_overflow": 5,
        "pool_pre_ping": True,
        # pgbouncer in transaction mode cannot keep prepared statements
        "connect_args": {"statement_cache_size": 0},
    }


async def init_db(url: str) -> async_sessionmaker[AsyncSession]:
    """Create the engine and session factory. Returns the factory."""
    global _engine  # noqa: PLW0603
    _engine = create_async_engine(url, echo=False, **_engine_options(url))
    # Services keep using ORM objects after commit
    return async_sessionmaker(_engine, class_=AsyncSession, expire_on_commit=False)


async def close_db() -> None:
    """Dispose of the engine."""
    global _engine  # noqa: PLW0603
    if _engine:
        await _engine.dispose()
        _engine = None

