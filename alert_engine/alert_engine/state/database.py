"""Async engine construction for the alertwatch state store.

The URL scheme picks the backend:

- ``postgresql+asyncpg://``: pooled engine, used in production.
- ``sqlite+aiosqlite://``: single-file engine from :mod:`sqlite_adapter`,
  used for local ``alertwatch serve`` and the test suite.

Sessions are created by the caller (the API dependency layer, the scheduler)
from an ``async_sessionmaker`` bound to the engine returned here.
"""

from __future__ import annotations

import logging

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

logger = logging.getLogger(__name__)

# Alert edits hold a row lock only for one short transaction.
_PG_LOCK_TIMEOUT_MS = 10_000


def get_engine(
    database_url: str,
    pool_size: int = 10,
    max_overflow: int = 20,
) -> AsyncEngine:
    """Create the async engine for *database_url*.

    ``pool_size`` and ``max_overflow`` apply to PostgreSQL only; SQLite
    engines are unpooled.
    """
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite":
        from alert_engine.state.sqlite_adapter import get_local_engine

        return get_local_engine(url.database or ":memory:")

    engine = create_async_engine(
        url,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=True,
        pool_recycle=3600,
        pool_timeout=10,
        connect_args={"server_settings": {"lock_timeout": str(_PG_LOCK_TIMEOUT_MS)}},
    )
    logger.info(
        "Created state store engine for %s (pool_size=%d max_overflow=%d)",
        url.render_as_string(hide_password=True),
        pool_size,
        max_overflow,
    )
    return engine
