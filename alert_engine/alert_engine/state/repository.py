"""Repository classes providing CRUD access to the Alertwatch state store.

Each repository takes an ``AsyncSession`` at construction time and operates
within the caller's transaction boundary.  All writes call ``session.flush()``
so that generated defaults are populated; the caller is responsible for calling
``session.commit()``, usually inside ``AlertLockRegistry.transaction``.
Nothing here commits, which is what lets a service bundle an alert update and
its history entry into a single atomic commit.
"""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from alert_engine.errors import ConcurrencyConflict, DuplicateName
from alert_engine.models.history import HistoryKind
from alert_engine.state.tables import AlertHistoryTable, AlertTable, DataSourceTable

logger = logging.getLogger(__name__)


def new_alert_id() -> str:
    """Return a fresh opaque alert id (32 hex characters)."""
    return uuid.uuid4().hex


# ---------------------------------------------------------------------------
# Data sources
# ---------------------------------------------------------------------------


class DataSourceRepository:
    """CRUD operations for the ``data_sources`` table."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, **fields: Any) -> DataSourceTable:
        """Insert a data source.

        Raises
        ------
        DuplicateName
            If a data source with the same name already exists.
        """
        now = datetime.now(UTC)
        row = DataSourceTable(created_at=now, updated_at=now, **fields)
        try:
            self._session.add(row)
            await self._session.flush()
        except IntegrityError as exc:
            raise DuplicateName(f"data source '{fields.get('name')}' already exists") from exc
        return row

    async def get(self, data_source_id: int) -> DataSourceTable | None:
        return await self._session.get(DataSourceTable, data_source_id)

    async def get_by_name(self, name: str) -> DataSourceTable | None:
        stmt = select(DataSourceTable).where(DataSourceTable.name == name)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_all(self) -> list[DataSourceTable]:
        """List all data sources ordered by name."""
        stmt = select(DataSourceTable).order_by(DataSourceTable.name)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def replace(self, row: DataSourceTable, **fields: Any) -> DataSourceTable:
        """Overwrite the connection descriptor of *row*.

        Raises
        ------
        DuplicateName
            If the new name collides with another data source.
        """
        for key, value in fields.items():
            setattr(row, key, value)
        row.updated_at = datetime.now(UTC)
        try:
            await self._session.flush()
        except IntegrityError as exc:
            raise DuplicateName(f"data source '{fields.get('name')}' already exists") from exc
        return row

    async def delete(self, data_source_id: int) -> bool:
        """Delete a data source.  Returns ``False`` if it did not exist."""
        stmt = delete(DataSourceTable).where(DataSourceTable.id == data_source_id)
        result = await self._session.execute(stmt)
        await self._session.flush()
        return result.rowcount > 0  # type: ignore[attr-defined]


# ---------------------------------------------------------------------------
# Alerts
# ---------------------------------------------------------------------------


class AlertRepository:
    """CRUD operations for the ``alerts`` table."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, alert_id: str, **fields: Any) -> AlertTable:
        row = AlertTable(id=alert_id, **fields)
        self._session.add(row)
        await self._session.flush()
        return row

    async def get(self, alert_id: str) -> AlertTable | None:
        return await self._session.get(AlertTable, alert_id, populate_existing=True)

    async def list_all(self, context: str | None = None) -> list[AlertTable]:
        """List alerts ordered by context then name, optionally for one context."""
        stmt = select(AlertTable)
        if context is not None:
            stmt = stmt.where(AlertTable.context == context)
        stmt = stmt.order_by(AlertTable.context, AlertTable.name, AlertTable.created_at)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def list_due(self, now: datetime) -> list[AlertTable]:
        """Scheduled alerts whose ``next_run_at`` has passed."""
        stmt = (
            select(AlertTable)
            .where(
                AlertTable.schedule != "",
                AlertTable.next_run_at.is_not(None),
                AlertTable.next_run_at <= now,
            )
            .order_by(AlertTable.next_run_at)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def update(self, row: AlertTable, **fields: Any) -> AlertTable:
        for key, value in fields.items():
            setattr(row, key, value)
        await self._session.flush()
        return row

    async def delete(self, alert_id: str) -> bool:
        """Delete an alert and its history.  Returns ``False`` if it did not exist.

        History rows are removed explicitly as well as by the foreign key
        cascade, so no orphan survives on a connection where SQLite's
        ``foreign_keys`` pragma is off.
        """
        await self._session.execute(delete(AlertHistoryTable).where(AlertHistoryTable.alert_id == alert_id))
        result = await self._session.execute(delete(AlertTable).where(AlertTable.id == alert_id))
        await self._session.flush()
        return result.rowcount > 0  # type: ignore[attr-defined]


# ---------------------------------------------------------------------------
# Alert history
# ---------------------------------------------------------------------------


class HistoryRepository:
    """Append-only access to the ``alert_history`` ledger.

    Entries are never updated.  The current entry is the one with the
    highest sequence for its alert; :meth:`list_for_alert` derives the flag.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def max_sequence(self, alert_id: str) -> int:
        """Highest sequence recorded for the alert, or 0 when it has none."""
        stmt = select(func.max(AlertHistoryTable.sequence)).where(AlertHistoryTable.alert_id == alert_id)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none() or 0

    async def append(
        self,
        alert_id: str,
        kind: HistoryKind,
        changes: dict[str, Any],
        *,
        outcome: dict[str, Any] | None = None,
        created_at: datetime | None = None,
    ) -> AlertHistoryTable:
        """Append the next entry for *alert_id*.

        Raises
        ------
        ConcurrencyConflict
            If another writer already used the computed sequence.  Callers
            serialise per alert, so this signals a broken invariant.
        """
        sequence = await self.max_sequence(alert_id) + 1
        row = AlertHistoryTable(
            alert_id=alert_id,
            sequence=sequence,
            kind=kind.value,
            changes=changes,
            outcome=outcome,
            created_at=created_at or datetime.now(UTC),
        )
        try:
            self._session.add(row)
            await self._session.flush()
        except IntegrityError as exc:
            logger.error("History sequence collision for alert %s at sequence %d", alert_id, sequence)
            raise ConcurrencyConflict(f"history sequence {sequence} already exists for alert {alert_id}") from exc
        return row

    async def list_for_alert(self, alert_id: str, limit: int = 500) -> list[tuple[AlertHistoryTable, bool]]:
        """Entries newest first, each paired with its ``is_current`` flag."""
        stmt = (
            select(AlertHistoryTable)
            .where(AlertHistoryTable.alert_id == alert_id)
            .order_by(AlertHistoryTable.sequence.desc())
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        rows = list(result.scalars().all())
        return [(row, index == 0) for index, row in enumerate(rows)]

    async def latest_execution(self, alert_id: str) -> AlertHistoryTable | None:
        """Most recent EXECUTION entry for the alert, if any."""
        stmt = (
            select(AlertHistoryTable)
            .where(
                AlertHistoryTable.alert_id == alert_id,
                AlertHistoryTable.kind == HistoryKind.EXECUTION.value,
            )
            .order_by(AlertHistoryTable.sequence.desc())
            .limit(1)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def count(self, alert_id: str) -> int:
        stmt = select(func.count()).select_from(AlertHistoryTable).where(AlertHistoryTable.alert_id == alert_id)
        result = await self._session.execute(stmt)
        return result.scalar_one()
