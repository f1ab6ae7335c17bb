"""Tests for api.services.alert_service.AlertService.

Runs against a real aiosqlite state store and a real SQLite data source so
that pre-commit validation exercises the connector stack end to end.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest
from alert_engine.errors import NotFound, ScheduleFormatInvalid, ValidationRejected
from alert_engine.state.repository import AlertRepository, HistoryRepository
from sqlalchemy.ext.asyncio import AsyncSession

from api.services.alert_service import AlertService
from api.services.execution_service import ExecutionService

FieldsFactory = Callable[..., dict[str, Any]]


async def _alert_count(session: AsyncSession) -> int:
    return len(await AlertRepository(session).list_all())


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------


class TestCreate:
    @pytest.mark.asyncio
    async def test_create_stores_definition_and_first_history_entry(
        self, alert_service: AlertService, alert_fields: FieldsFactory
    ) -> None:
        alert = await alert_service.create(alert_fields())

        assert alert["status"] == "never run"
        assert alert["status_display"] == "never run"
        assert alert["last_run_at"] is None
        assert alert["created_at"] == alert["updated_at"]
        assert len(alert["id"]) == 32

        history = await alert_service.history(alert["id"])
        assert len(history) == 1
        entry = history[0]
        assert entry["sequence"] == 1
        assert entry["kind"] == "definition_change"
        assert entry["is_current"] is True
        assert entry["changes"]["query"] == {"old": None, "new": "SELECT 1 WHERE 1=0"}

    @pytest.mark.asyncio
    async def test_missing_context_defaults_to_empty(
        self, alert_service: AlertService, alert_fields: FieldsFactory
    ) -> None:
        alert = await alert_service.create(alert_fields(context=None, description=None))
        assert alert["context"] == ""
        assert alert["description"] == ""

    @pytest.mark.asyncio
    async def test_scheduled_alert_gets_next_run(
        self, alert_service: AlertService, alert_fields: FieldsFactory
    ) -> None:
        alert = await alert_service.create(alert_fields(schedule="*/5 * * * *"))
        assert alert["schedule"] == "*/5 * * * *"
        assert alert["next_run_at"] is not None

    @pytest.mark.asyncio
    async def test_invalid_sql_is_rejected_and_nothing_stored(
        self, alert_service: AlertService, alert_fields: FieldsFactory, session: AsyncSession
    ) -> None:
        with pytest.raises(ValidationRejected) as excinfo:
            await alert_service.create(alert_fields(query="SELECT (1 FROM items"))
        assert excinfo.value.reason.startswith("invalid query: sql syntax error")
        assert await _alert_count(session) == 0

    @pytest.mark.asyncio
    async def test_unknown_table_is_rejected(
        self, alert_service: AlertService, alert_fields: FieldsFactory, session: AsyncSession
    ) -> None:
        with pytest.raises(ValidationRejected, match="sql syntax"):
            await alert_service.create(alert_fields(query="SELECT * FROM no_such_table"))
        assert await _alert_count(session) == 0

    @pytest.mark.asyncio
    async def test_write_statement_is_rejected(
        self, alert_service: AlertService, alert_fields: FieldsFactory
    ) -> None:
        with pytest.raises(ValidationRejected, match="only read-only SELECT statements are allowed"):
            await alert_service.create(alert_fields(query="DELETE FROM items"))

    @pytest.mark.asyncio
    async def test_unknown_data_source_is_a_connection_rejection(
        self, alert_service: AlertService, alert_fields: FieldsFactory, session: AsyncSession
    ) -> None:
        with pytest.raises(ValidationRejected, match="could not connect"):
            await alert_service.create(alert_fields(data_source_id=999))
        assert await _alert_count(session) == 0

    @pytest.mark.asyncio
    async def test_invalid_schedule_is_rejected(
        self, alert_service: AlertService, alert_fields: FieldsFactory, session: AsyncSession
    ) -> None:
        with pytest.raises(ScheduleFormatInvalid, match="cron"):
            await alert_service.create(alert_fields(schedule="every tuesday"))
        assert await _alert_count(session) == 0


# ---------------------------------------------------------------------------
# Edit
# ---------------------------------------------------------------------------


class TestEdit:
    @pytest.mark.asyncio
    async def test_query_edit_records_single_field_diff(
        self, alert_service: AlertService, alert_fields: FieldsFactory
    ) -> None:
        alert = await alert_service.create(alert_fields())

        edited = await alert_service.edit(alert["id"], {"query": "SELECT id FROM items"})

        assert edited["query"] == "SELECT id FROM items"
        history = await alert_service.history(alert["id"])
        assert [entry["sequence"] for entry in history] == [2, 1]
        assert history[0]["changes"] == {"query": {"old": "SELECT 1 WHERE 1=0", "new": "SELECT id FROM items"}}
        assert [entry["is_current"] for entry in history] == [True, False]

    @pytest.mark.asyncio
    async def test_edit_before_first_run_stays_never_run(
        self, alert_service: AlertService, alert_fields: FieldsFactory
    ) -> None:
        alert = await alert_service.create(alert_fields())
        edited = await alert_service.edit(alert["id"], {"threshold": 2})
        assert edited["status"] == "never run"

    @pytest.mark.asyncio
    async def test_edit_after_run_needs_refreshing(
        self,
        alert_service: AlertService,
        execution_service: ExecutionService,
        alert_fields: FieldsFactory,
    ) -> None:
        alert = await alert_service.create(alert_fields())
        await execution_service.run(alert["id"])

        edited = await alert_service.edit(alert["id"], {"query": "SELECT id FROM items"})

        assert edited["status"] == "needs refreshing"
        assert edited["status_since"] is None
        assert edited["last_result_count"] == 0

    @pytest.mark.asyncio
    async def test_description_only_edit_after_run_needs_refreshing(
        self,
        alert_service: AlertService,
        execution_service: ExecutionService,
        alert_fields: FieldsFactory,
    ) -> None:
        alert = await alert_service.create(alert_fields())
        await execution_service.run(alert["id"])

        edited = await alert_service.edit(alert["id"], {"description": "rows without an owner"})

        assert edited["status"] == "needs refreshing"

    @pytest.mark.asyncio
    async def test_rerun_clears_needs_refreshing(
        self,
        alert_service: AlertService,
        execution_service: ExecutionService,
        alert_fields: FieldsFactory,
    ) -> None:
        alert = await alert_service.create(alert_fields())
        await execution_service.run(alert["id"])
        await alert_service.edit(alert["id"], {"query": "SELECT * FROM items", "threshold": 3})

        outcome = await execution_service.run(alert["id"])

        assert outcome.status.value == "bad"
        assert (await alert_service.get(alert["id"]))["status"] == "bad"

    @pytest.mark.asyncio
    async def test_noop_edit_writes_nothing(
        self, alert_service: AlertService, alert_fields: FieldsFactory, session: AsyncSession
    ) -> None:
        alert = await alert_service.create(alert_fields())

        edited = await alert_service.edit(alert["id"], {"name": alert["name"], "threshold": alert["threshold"]})

        assert edited["updated_at"] == alert["updated_at"]
        assert await HistoryRepository(session).count(alert["id"]) == 1

    @pytest.mark.asyncio
    async def test_rejected_edit_leaves_definition_unchanged(
        self, alert_service: AlertService, alert_fields: FieldsFactory, session: AsyncSession
    ) -> None:
        alert = await alert_service.create(alert_fields())

        with pytest.raises(ValidationRejected, match="invalid query"):
            await alert_service.edit(alert["id"], {"query": "SELECT nope FROM items", "name": "renamed"})

        current = await alert_service.get(alert["id"])
        assert current["query"] == "SELECT 1 WHERE 1=0"
        assert current["name"] == alert["name"]
        assert await HistoryRepository(session).count(alert["id"]) == 1

    @pytest.mark.asyncio
    async def test_invalid_schedule_edit_is_rejected(
        self, alert_service: AlertService, alert_fields: FieldsFactory
    ) -> None:
        alert = await alert_service.create(alert_fields())
        with pytest.raises(ScheduleFormatInvalid, match="cron"):
            await alert_service.edit(alert["id"], {"schedule": "sometimes"})
        assert (await alert_service.get(alert["id"]))["schedule"] == ""

    @pytest.mark.asyncio
    async def test_schedule_edit_sets_and_clears_next_run(
        self, alert_service: AlertService, alert_fields: FieldsFactory
    ) -> None:
        alert = await alert_service.create(alert_fields())
        scheduled = await alert_service.edit(alert["id"], {"schedule": "0 * * * *"})
        assert scheduled["next_run_at"] is not None

        manual = await alert_service.edit(alert["id"], {"schedule": ""})
        assert manual["next_run_at"] is None

    @pytest.mark.asyncio
    async def test_name_only_edit_skips_validation(
        self,
        alert_service: AlertService,
        data_source_service: Any,
        alert_fields: FieldsFactory,
        data_source_id: int,
        tmp_path: Any,
    ) -> None:
        alert = await alert_service.create(alert_fields())
        await data_source_service.update(
            data_source_id,
            {"name": "local", "driver": "SQLite", "database": str(tmp_path / "gone.db")},
        )

        edited = await alert_service.edit(alert["id"], {"name": "renamed"})

        assert edited["name"] == "renamed"

    @pytest.mark.asyncio
    async def test_edit_unknown_alert(self, alert_service: AlertService) -> None:
        with pytest.raises(NotFound):
            await alert_service.edit("0" * 32, {"name": "x"})


# ---------------------------------------------------------------------------
# Delete and reads
# ---------------------------------------------------------------------------


class TestDeleteAndReads:
    @pytest.mark.asyncio
    async def test_delete_removes_alert_and_history(
        self, alert_service: AlertService, alert_fields: FieldsFactory, session: AsyncSession
    ) -> None:
        alert = await alert_service.create(alert_fields())

        assert await alert_service.delete(alert["id"]) is True
        assert await alert_service.delete(alert["id"]) is False

        with pytest.raises(NotFound):
            await alert_service.get(alert["id"])
        with pytest.raises(NotFound):
            await alert_service.history(alert["id"])
        assert await HistoryRepository(session).count(alert["id"]) == 0

    @pytest.mark.asyncio
    async def test_list_filters_by_context(
        self, alert_service: AlertService, alert_fields: FieldsFactory
    ) -> None:
        await alert_service.create(alert_fields(name="a", context="inventory"))
        await alert_service.create(alert_fields(name="b", context="billing"))

        assert [a["name"] for a in await alert_service.list_alerts("billing")] == ["b"]
        assert len(await alert_service.list_alerts()) == 2
        assert await alert_service.list_alerts("nothing") == []
