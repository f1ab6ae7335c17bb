"""Shared fixtures for alertwatch API tests.

Every test gets a real aiosqlite state store in a temporary directory, a
SQLite data source file with an ``items`` table, and an app whose session,
gateway and lock dependencies point at them.  The application lifespan does
not run under ``ASGITransport``, so nothing here starts the scheduler.
"""

from __future__ import annotations

import sqlite3
from collections.abc import AsyncIterator, Callable
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio
from alert_engine.config import Settings
from alert_engine.connectors.gateway import ConnectorGateway
from alert_engine.locks import AlertLockRegistry
from alert_engine.sql_toolkit import reset_toolkit
from alert_engine.state.sqlite_adapter import create_local_tables, get_local_engine
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from api.config import APISettings
from api.dependencies import get_db_session, get_gateway, get_locks, get_settings
from api.main import create_app
from api.services.alert_service import AlertService
from api.services.data_source_service import DataSourceService
from api.services.execution_service import ExecutionService

# ---------------------------------------------------------------------------
# Data source files
# ---------------------------------------------------------------------------


def _write_items_db(path: Path, rows: int) -> Path:
    conn = sqlite3.connect(path)
    try:
        conn.execute("CREATE TABLE items (id INTEGER PRIMARY KEY, name TEXT NOT NULL)")
        conn.executemany("INSERT INTO items (name) VALUES (?)", [(f"item-{i}",) for i in range(rows)])
        conn.commit()
    finally:
        conn.close()
    return path


@pytest.fixture()
def make_items_db(tmp_path: Path) -> Callable[..., Path]:
    """Factory creating a SQLite file with an ``items`` table of *rows* rows."""

    def _make(name: str = "source.db", rows: int = 3) -> Path:
        return _write_items_db(tmp_path / name, rows)

    return _make


@pytest.fixture()
def source_db(make_items_db: Callable[..., Path]) -> Path:
    return make_items_db()


# ---------------------------------------------------------------------------
# Engine collaborators
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_toolkit() -> None:
    reset_toolkit()


@pytest.fixture()
def engine_settings() -> Settings:
    return Settings(
        probe_timeout_seconds=5.0,
        validation_timeout_seconds=5.0,
        query_timeout_seconds=5.0,
        connect_timeout_seconds=2,
    )


@pytest.fixture()
def gateway(engine_settings: Settings) -> ConnectorGateway:
    return ConnectorGateway(engine_settings)


@pytest.fixture()
def locks() -> AlertLockRegistry:
    return AlertLockRegistry()


# ---------------------------------------------------------------------------
# State store
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture()
async def state_engine(tmp_path: Path) -> AsyncIterator[AsyncEngine]:
    engine = get_local_engine(tmp_path / "state" / "state.db")
    await create_local_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture()
def session_factory(state_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(state_engine, expire_on_commit=False)


@pytest_asyncio.fixture()
async def session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    async with session_factory() as session:
        yield session


# ---------------------------------------------------------------------------
# Service helpers
# ---------------------------------------------------------------------------


@pytest.fixture()
def alert_service(session: AsyncSession, gateway: ConnectorGateway, locks: AlertLockRegistry) -> AlertService:
    return AlertService(session, gateway=gateway, locks=locks)


@pytest.fixture()
def execution_service(
    session: AsyncSession, gateway: ConnectorGateway, locks: AlertLockRegistry
) -> ExecutionService:
    return ExecutionService(session, gateway=gateway, locks=locks)


@pytest.fixture()
def data_source_service(session: AsyncSession, gateway: ConnectorGateway) -> DataSourceService:
    return DataSourceService(session, gateway)


@pytest_asyncio.fixture()
async def data_source_id(data_source_service: DataSourceService, source_db: Path) -> int:
    """Id of a registered SQLite data source holding three ``items`` rows."""
    created = await data_source_service.register({"name": "local", "driver": "SQLite", "database": str(source_db)})
    return created["id"]


@pytest.fixture()
def alert_fields(data_source_id: int) -> Callable[..., dict[str, Any]]:
    """Factory for alert definitions against the registered data source."""

    def _fields(**overrides: Any) -> dict[str, Any]:
        fields: dict[str, Any] = {
            "name": "orphaned items",
            "context": "inventory",
            "description": "",
            "query": "SELECT 1 WHERE 1=0",
            "threshold": 5,
            "schedule": "",
            "data_source_id": data_source_id,
        }
        fields.update(overrides)
        return fields

    return _fields


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------


@pytest.fixture()
def test_settings(tmp_path: Path) -> APISettings:
    return APISettings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'state' / 'state.db'}",
        scheduler_enabled=False,
        cors_origins=["http://localhost:3000"],
    )


def build_app(
    settings: APISettings,
    session_factory: async_sessionmaker[AsyncSession],
    gateway: ConnectorGateway,
    locks: AlertLockRegistry,
) -> FastAPI:
    application = create_app(settings)

    async def _override_session() -> AsyncIterator[AsyncSession]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    application.dependency_overrides[get_db_session] = _override_session
    application.dependency_overrides[get_settings] = lambda: settings
    application.dependency_overrides[get_gateway] = lambda: gateway
    application.dependency_overrides[get_locks] = lambda: locks
    return application


@pytest.fixture()
def app_factory(
    session_factory: async_sessionmaker[AsyncSession],
    gateway: ConnectorGateway,
    locks: AlertLockRegistry,
) -> Callable[[APISettings], FastAPI]:
    """Build an app for custom settings, wired to the test state store."""
    return lambda settings: build_app(settings, session_factory, gateway, locks)


@pytest.fixture()
def app(test_settings: APISettings, app_factory: Callable[[APISettings], FastAPI]) -> FastAPI:
    return app_factory(test_settings)


@pytest_asyncio.fixture()
async def client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    """Async httpx client bound to the test app over ``ASGITransport``."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
