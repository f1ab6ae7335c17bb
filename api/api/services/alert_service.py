"""Service layer for the alert store.

Every definition write passes through pre-commit validation and lands
together with its history entry in one commit, taken while the alert's
lock is held.  Rejections propagate to the caller with their message
unchanged.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

from alert_engine.classifier import classify, describe_status
from alert_engine.config import Settings
from alert_engine.connectors.gateway import ConnectorGateway
from alert_engine.errors import NotFound, ValidationRejected
from alert_engine.history import DEFINITION_FIELDS, definition_snapshot, diff_definition
from alert_engine.locks import AlertLockRegistry
from alert_engine.models.data_source import DataSourceDescriptor
from alert_engine.models.history import HistoryKind
from alert_engine.models.status import AlertStatus
from alert_engine.schedule import next_run_for, validate_schedule
from alert_engine.state.repository import AlertRepository, DataSourceRepository, HistoryRepository, new_alert_id
from alert_engine.state.tables import AlertHistoryTable, AlertTable
from alert_engine.validator import CONNECT_PREFIX, QueryValidator
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


class AlertService:
    """Business logic for creating, editing, deleting and inspecting alerts.

    Parameters
    ----------
    session:
        Active database session.  The service commits it.
    gateway:
        Connector gateway used by pre-commit validation.
    locks:
        Per-alert lock registry shared with the execution service.
    settings:
        Engine settings; defaults to the gateway's.
    """

    def __init__(
        self,
        session: AsyncSession,
        *,
        gateway: ConnectorGateway,
        locks: AlertLockRegistry,
        settings: Settings | None = None,
    ) -> None:
        self._session = session
        self._locks = locks
        self._settings = settings or gateway.settings
        self._validator = QueryValidator(gateway)
        self._alerts = AlertRepository(session)
        self._history = HistoryRepository(session)
        self._sources = DataSourceRepository(session)

    # -- Writes ---------------------------------------------------------------

    async def create(self, fields: dict[str, Any]) -> dict[str, Any]:
        """Validate and persist a new alert with history entry #1.

        Raises
        ------
        ScheduleFormatInvalid
            If ``schedule`` is not valid cron.
        ValidationRejected
            If the data source is unreachable or the query is invalid.
        """
        schedule = validate_schedule(fields.get("schedule"))
        definition = {field: fields.get(field) for field in DEFINITION_FIELDS}
        definition["schedule"] = schedule
        definition["context"] = definition["context"] or ""
        definition["description"] = definition["description"] or ""

        descriptor = await self._resolve_descriptor(definition["data_source_id"])
        await self._validator.validate(descriptor, definition["query"])

        alert_id = new_alert_id()
        async with self._locks.transaction(self._session, alert_id):
            now = datetime.now(UTC)
            row = await self._alerts.create(
                alert_id,
                **definition,
                created_at=now,
                updated_at=now,
                status=AlertStatus.NEVER_RUN.value,
                needs_refresh=False,
                next_run_at=next_run_for(schedule, now),
            )
            await self._history.append(
                alert_id,
                HistoryKind.DEFINITION_CHANGE,
                diff_definition(None, definition),
                created_at=now,
            )

        logger.info(
            "Created alert id=%s name=%s context=%s data_source=%s",
            alert_id,
            row.name,
            row.context,
            row.data_source_id,
        )
        return self._alert_to_dict(row)

    async def edit(self, alert_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        """Apply a partial update as one atomic version.

        Only keys present in *fields* are considered.  The schedule is
        checked before anything else; the query validator runs only when
        the query or the data source changes.  An edit that changes
        nothing writes nothing.
        """
        updates = {field: fields[field] for field in DEFINITION_FIELDS if field in fields}
        if "schedule" in updates:
            updates["schedule"] = validate_schedule(updates["schedule"])
        for field in ("context", "description"):
            if field in updates and updates[field] is None:
                updates[field] = ""

        async with self._locks.transaction(self._session, alert_id):
            row = await self._require(alert_id)
            current = definition_snapshot(row)
            changes = diff_definition(current, {**current, **updates})
            if not changes:
                logger.debug("Edit of alert %s changed nothing", alert_id)
                return self._alert_to_dict(row)

            if "query" in changes or "data_source_id" in changes:
                new_source_id = updates.get("data_source_id", row.data_source_id)
                descriptor = await self._resolve_descriptor(new_source_id)
                await self._validator.validate(descriptor, updates.get("query", row.query))

            now = datetime.now(UTC)
            values: dict[str, Any] = {field: change["new"] for field, change in changes.items()}
            values["updated_at"] = now
            has_run = row.last_run_at is not None
            if has_run:
                values["needs_refresh"] = True
                values["status_since"] = None
            values["status"] = classify(
                has_run=has_run,
                needs_refresh=has_run,
                error=row.last_error,
                result_count=row.last_result_count,
                threshold=values.get("threshold", row.threshold),
            ).value
            if "schedule" in changes:
                values["next_run_at"] = next_run_for(values["schedule"], now)

            await self._alerts.update(row, **values)
            await self._history.append(alert_id, HistoryKind.DEFINITION_CHANGE, changes, created_at=now)

        logger.info("Edited alert id=%s fields=%s status=%s", alert_id, ",".join(changes), row.status)
        return self._alert_to_dict(row)

    async def delete(self, alert_id: str) -> bool:
        """Delete an alert and its history.  Deleting twice is a no-op.

        Waits for any in-flight edit or run of the alert to commit first.
        """
        async with self._locks.transaction(self._session, alert_id):
            deleted = await self._alerts.delete(alert_id)
        if deleted:
            logger.info("Deleted alert id=%s", alert_id)
        return deleted

    # -- Reads ----------------------------------------------------------------

    async def get(self, alert_id: str) -> dict[str, Any]:
        return self._alert_to_dict(await self._require(alert_id))

    async def list_alerts(self, context: str | None = None) -> list[dict[str, Any]]:
        return [self._alert_to_dict(row) for row in await self._alerts.list_all(context=context)]

    async def history(self, alert_id: str) -> list[dict[str, Any]]:
        """History entries newest first; exactly one is marked current."""
        await self._require(alert_id)
        entries = await self._history.list_for_alert(alert_id, limit=self._settings.history_page_limit)
        return [self._entry_to_dict(row, is_current) for row, is_current in entries]

    # -- Helpers --------------------------------------------------------------

    async def _require(self, alert_id: str) -> AlertTable:
        row = await self._alerts.get(alert_id)
        if row is None:
            raise NotFound("alert", alert_id)
        return row

    async def _resolve_descriptor(self, data_source_id: int) -> DataSourceDescriptor:
        row = await self._sources.get(data_source_id)
        if row is None:
            raise ValidationRejected(f"{CONNECT_PREFIX}: data source {data_source_id} not found")
        return DataSourceDescriptor.from_row(row)

    @staticmethod
    def _alert_to_dict(row: AlertTable) -> dict[str, Any]:
        return {
            "id": row.id,
            "name": row.name,
            "context": row.context,
            "description": row.description,
            "query": row.query,
            "threshold": row.threshold,
            "schedule": row.schedule,
            "data_source_id": row.data_source_id,
            "created_at": _iso(row.created_at),
            "updated_at": _iso(row.updated_at),
            "last_run_at": _iso(row.last_run_at),
            "last_result_count": row.last_result_count,
            "last_error": row.last_error,
            "status": row.status,
            "status_since": _iso(row.status_since),
            "status_display": describe_status(row.status, row.status_since),
            "next_run_at": _iso(row.next_run_at),
        }

    @staticmethod
    def _entry_to_dict(row: AlertHistoryTable, is_current: bool) -> dict[str, Any]:
        return {
            "alert_id": row.alert_id,
            "sequence": row.sequence,
            "kind": row.kind,
            "created_at": _iso(row.created_at),
            "changes": row.changes,
            "outcome": row.outcome,
            "is_current": is_current,
        }
