"""Shared fixtures for alert engine tests.

Provides throwaway SQLite data sources on disk, a real aiosqlite state
store, and engine settings with short timeouts.
"""

from __future__ import annotations

import sqlite3
from collections.abc import AsyncIterator
from pathlib import Path

import pytest
import pytest_asyncio
from alert_engine.config import Settings
from alert_engine.locks import reset_lock_registry
from alert_engine.models.data_source import DataSourceDescriptor, DriverKind
from alert_engine.sql_toolkit import reset_toolkit
from alert_engine.state.sqlite_adapter import create_local_tables, get_local_engine
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker


def make_sqlite_source(path: Path, rows: int = 3) -> Path:
    """Create a SQLite database with an ``items`` table holding *rows* rows."""
    conn = sqlite3.connect(path)
    try:
        conn.execute("CREATE TABLE items (id INTEGER PRIMARY KEY, name TEXT NOT NULL)")
        conn.executemany("INSERT INTO items (name) VALUES (?)", [(f"item-{i}",) for i in range(rows)])
        conn.commit()
    finally:
        conn.close()
    return path


@pytest.fixture(autouse=True)
def _reset_singletons() -> None:
    reset_toolkit()
    reset_lock_registry()


@pytest.fixture()
def engine_settings() -> Settings:
    return Settings(
        probe_timeout_seconds=5.0,
        validation_timeout_seconds=5.0,
        query_timeout_seconds=5.0,
        connect_timeout_seconds=2,
    )


@pytest.fixture()
def make_source():
    """Factory fixture wrapping :func:`make_sqlite_source`."""
    return make_sqlite_source


@pytest.fixture()
def sqlite_source_path(tmp_path: Path) -> Path:
    return make_sqlite_source(tmp_path / "source.db")


@pytest.fixture()
def sqlite_descriptor(sqlite_source_path: Path) -> DataSourceDescriptor:
    return DataSourceDescriptor(
        id=1,
        name="local",
        driver=DriverKind.SQLITE,
        database=str(sqlite_source_path),
    )


@pytest.fixture()
def missing_descriptor(tmp_path: Path) -> DataSourceDescriptor:
    return DataSourceDescriptor(
        id=2,
        name="missing",
        driver=DriverKind.SQLITE,
        database=str(tmp_path / "does-not-exist.db"),
    )


@pytest_asyncio.fixture()
async def state_engine(tmp_path: Path) -> AsyncIterator[AsyncEngine]:
    engine = get_local_engine(tmp_path / "state.db")
    await create_local_tables(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture()
async def session(state_engine: AsyncEngine) -> AsyncIterator[AsyncSession]:
    factory = async_sessionmaker(state_engine, expire_on_commit=False)
    async with factory() as session:
        yield session
