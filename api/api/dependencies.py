"""FastAPI dependency injection for database sessions, settings and the engine gateway."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from typing import Annotated

from alert_engine.config import Settings, load_settings
from alert_engine.connectors.gateway import ConnectorGateway
from alert_engine.locks import AlertLockRegistry, get_lock_registry
from alert_engine.state.database import get_engine
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from api.config import APISettings, load_api_settings

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

_settings_cache: APISettings | None = None
_engine_settings_cache: Settings | None = None


def get_settings() -> APISettings:
    """Return the cached :class:`APISettings` singleton."""
    global _settings_cache  # noqa: PLW0603
    if _settings_cache is None:
        _settings_cache = load_api_settings()
    return _settings_cache


def get_engine_settings() -> Settings:
    """Return the cached engine :class:`Settings` singleton."""
    global _engine_settings_cache  # noqa: PLW0603
    if _engine_settings_cache is None:
        _engine_settings_cache = load_settings()
    return _engine_settings_cache


SettingsDep = Annotated[APISettings, Depends(get_settings)]

# ---------------------------------------------------------------------------
# Database session
# ---------------------------------------------------------------------------

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def init_engine(settings: APISettings) -> AsyncEngine:
    """Create and cache the global async engine."""
    global _engine, _session_factory  # noqa: PLW0603
    _engine = get_engine(
        settings.database_url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
    )
    _session_factory = async_sessionmaker(_engine, expire_on_commit=False)
    return _engine


async def dispose_engine() -> None:
    """Dispose the global engine pool (call during shutdown)."""
    global _engine, _session_factory  # noqa: PLW0603
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Return the global async session factory.

    Used by components that operate outside FastAPI's dependency injection
    (the background scheduler, the readiness probe).
    """
    if _session_factory is None:
        raise RuntimeError(
            "Database engine has not been initialised. Ensure init_engine() is called during application startup."
        )
    return _session_factory


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield an ``AsyncSession`` for one request.

    Services commit their own writes while holding the per-alert lock; the
    commit here only covers writes made outside a service.  The session
    rolls back on exception.
    """
    session = get_session_factory()()
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


SessionDep = Annotated[AsyncSession, Depends(get_db_session)]

# ---------------------------------------------------------------------------
# Engine collaborators
# ---------------------------------------------------------------------------

_gateway: ConnectorGateway | None = None


def get_gateway() -> ConnectorGateway:
    """Return the cached :class:`ConnectorGateway`."""
    global _gateway  # noqa: PLW0603
    if _gateway is None:
        _gateway = ConnectorGateway(get_engine_settings())
    return _gateway


def get_locks() -> AlertLockRegistry:
    return get_lock_registry()


GatewayDep = Annotated[ConnectorGateway, Depends(get_gateway)]
LocksDep = Annotated[AlertLockRegistry, Depends(get_locks)]
