"""Tests for api.services.execution_service.ExecutionService."""

from __future__ import annotations

import asyncio
import sqlite3
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
from alert_engine.connectors.gateway import ConnectorGateway
from alert_engine.errors import NotFound
from alert_engine.locks import AlertLockRegistry
from alert_engine.models.status import AlertStatus
from alert_engine.state.repository import HistoryRepository
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from api.services.alert_service import AlertService
from api.services.data_source_service import DataSourceService
from api.services.execution_service import ExecutionService

FieldsFactory = Callable[..., dict[str, Any]]


# ---------------------------------------------------------------------------
# Classification of runs
# ---------------------------------------------------------------------------


class TestRunOutcomes:
    @pytest.mark.asyncio
    async def test_no_rows_is_good(
        self,
        alert_service: AlertService,
        execution_service: ExecutionService,
        alert_fields: FieldsFactory,
    ) -> None:
        alert = await alert_service.create(alert_fields(query="SELECT 1 WHERE 1=0", threshold=5))

        outcome = await execution_service.run(alert["id"])

        assert outcome.status is AlertStatus.GOOD
        assert outcome.result_count == 0
        assert outcome.error is None
        current = await alert_service.get(alert["id"])
        assert current["status"] == "good"
        assert current["last_result_count"] == 0
        assert current["status_display"].startswith("good since ")

    @pytest.mark.asyncio
    async def test_rows_at_threshold_are_bad(
        self,
        alert_service: AlertService,
        execution_service: ExecutionService,
        alert_fields: FieldsFactory,
    ) -> None:
        alert = await alert_service.create(alert_fields(query="SELECT * FROM items", threshold=3))
        outcome = await execution_service.run(alert["id"])
        assert outcome.status is AlertStatus.BAD
        assert outcome.result_count == 3

    @pytest.mark.asyncio
    async def test_rows_below_threshold(
        self,
        alert_service: AlertService,
        execution_service: ExecutionService,
        alert_fields: FieldsFactory,
    ) -> None:
        alert = await alert_service.create(alert_fields(query="SELECT * FROM items", threshold=5))
        outcome = await execution_service.run(alert["id"])
        assert outcome.status is AlertStatus.UNDER_THRESHOLD

    @pytest.mark.asyncio
    async def test_runtime_sql_error_is_broken(
        self,
        alert_service: AlertService,
        execution_service: ExecutionService,
        alert_fields: FieldsFactory,
        source_db: Path,
    ) -> None:
        alert = await alert_service.create(alert_fields(query="SELECT * FROM items"))
        conn = sqlite3.connect(source_db)
        conn.execute("DROP TABLE items")
        conn.commit()
        conn.close()

        outcome = await execution_service.run(alert["id"])

        assert outcome.status is AlertStatus.BROKEN
        assert outcome.result_count is None
        assert outcome.error is not None
        assert outcome.error.startswith("sql error: ")
        assert "no such table" in outcome.error

    @pytest.mark.asyncio
    async def test_run_unknown_alert(self, execution_service: ExecutionService) -> None:
        with pytest.raises(NotFound):
            await execution_service.run("f" * 32)


# ---------------------------------------------------------------------------
# Data source changes after creation
# ---------------------------------------------------------------------------


class TestDataSourceChanges:
    @pytest.mark.asyncio
    async def test_broken_source_then_fixed(
        self,
        alert_service: AlertService,
        execution_service: ExecutionService,
        data_source_service: DataSourceService,
        alert_fields: FieldsFactory,
        data_source_id: int,
        source_db: Path,
        tmp_path: Path,
    ) -> None:
        alert = await alert_service.create(alert_fields())
        await data_source_service.update(
            data_source_id,
            {"name": "local", "driver": "SQLite", "database": str(tmp_path / "missing.db")},
        )

        broken = await execution_service.run(alert["id"])
        assert broken.status is AlertStatus.BROKEN
        assert broken.error is not None
        assert "could not connect" in broken.error

        await data_source_service.update(
            data_source_id,
            {"name": "local", "driver": "SQLite", "database": str(source_db)},
        )
        fixed = await execution_service.run(alert["id"])
        assert fixed.status is AlertStatus.GOOD

        history = await alert_service.history(alert["id"])
        assert history[0]["changes"]["status"] == {"old": "broken", "new": "good"}

    @pytest.mark.asyncio
    async def test_deleted_source_runs_as_broken(
        self,
        alert_service: AlertService,
        execution_service: ExecutionService,
        data_source_service: DataSourceService,
        alert_fields: FieldsFactory,
        data_source_id: int,
    ) -> None:
        alert = await alert_service.create(alert_fields())
        await data_source_service.delete(data_source_id)

        outcome = await execution_service.run(alert["id"])

        assert outcome.status is AlertStatus.BROKEN
        assert outcome.error == f"could not connect to data source: data source {data_source_id} not found"


# ---------------------------------------------------------------------------
# Recorded state
# ---------------------------------------------------------------------------


class TestRecordedState:
    @pytest.mark.asyncio
    async def test_run_does_not_touch_definition_timestamps(
        self,
        alert_service: AlertService,
        execution_service: ExecutionService,
        alert_fields: FieldsFactory,
    ) -> None:
        alert = await alert_service.create(alert_fields())
        await execution_service.run(alert["id"])
        current = await alert_service.get(alert["id"])
        assert current["created_at"] == alert["created_at"]
        assert current["updated_at"] == alert["updated_at"]
        assert current["last_run_at"] is not None

    @pytest.mark.asyncio
    async def test_status_since_kept_while_status_unchanged(
        self,
        alert_service: AlertService,
        execution_service: ExecutionService,
        alert_fields: FieldsFactory,
    ) -> None:
        alert = await alert_service.create(alert_fields())
        await execution_service.run(alert["id"])
        first = await alert_service.get(alert["id"])
        await execution_service.run(alert["id"])
        second = await alert_service.get(alert["id"])

        assert second["status_since"] == first["status_since"]
        assert second["last_run_at"] >= first["last_run_at"]

    @pytest.mark.asyncio
    async def test_execution_entry_carries_outcome(
        self,
        alert_service: AlertService,
        execution_service: ExecutionService,
        alert_fields: FieldsFactory,
    ) -> None:
        alert = await alert_service.create(alert_fields(query="SELECT * FROM items", threshold=3))
        outcome = await execution_service.run(alert["id"])

        history = await alert_service.history(alert["id"])
        assert [entry["kind"] for entry in history] == ["execution", "definition_change"]
        latest = history[0]
        assert latest["is_current"] is True
        assert latest["outcome"] == outcome.snapshot()
        assert latest["changes"]["status"] == {"old": "never run", "new": "bad"}
        assert sum(entry["is_current"] for entry in history) == 1

    @pytest.mark.asyncio
    async def test_repeat_run_has_empty_diff(
        self,
        alert_service: AlertService,
        execution_service: ExecutionService,
        alert_fields: FieldsFactory,
    ) -> None:
        alert = await alert_service.create(alert_fields())
        await execution_service.run(alert["id"])
        await execution_service.run(alert["id"])

        history = await alert_service.history(alert["id"])
        assert history[0]["kind"] == "execution"
        assert history[0]["changes"] == {}
        assert history[0]["sequence"] == 3


# ---------------------------------------------------------------------------
# Concurrency
# ---------------------------------------------------------------------------


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_concurrent_runs_and_edits_keep_sequences_dense(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        gateway: ConnectorGateway,
        locks: AlertLockRegistry,
        alert_service: AlertService,
        alert_fields: FieldsFactory,
    ) -> None:
        alert = await alert_service.create(alert_fields())

        async def run_once() -> None:
            async with session_factory() as session:
                await ExecutionService(session, gateway=gateway, locks=locks).run(alert["id"])

        async def edit_once(threshold: int) -> None:
            async with session_factory() as session:
                await AlertService(session, gateway=gateway, locks=locks).edit(
                    alert["id"], {"threshold": threshold}
                )

        await asyncio.gather(run_once(), edit_once(7), run_once(), edit_once(8))

        async with session_factory() as session:
            entries = await HistoryRepository(session).list_for_alert(alert["id"])
        assert [row.sequence for row, _ in entries] == [5, 4, 3, 2, 1]
        assert [current for _, current in entries].count(True) == 1
