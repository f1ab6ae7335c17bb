"""Runs alert queries and records their outcomes."""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from alert_engine.classifier import classify, next_status_since
from alert_engine.connectors.gateway import ConnectorGateway
from alert_engine.errors import NotFound
from alert_engine.history import diff_execution
from alert_engine.locks import AlertLockRegistry
from alert_engine.metrics import ALERT_RUN_DURATION, ALERT_RUNS_TOTAL
from alert_engine.models.data_source import DataSourceDescriptor
from alert_engine.models.history import HistoryKind
from alert_engine.models.outcome import ExecutionOutcome, RawResult
from alert_engine.models.status import AlertStatus
from alert_engine.schedule import next_run_for
from alert_engine.state.repository import AlertRepository, DataSourceRepository, HistoryRepository
from alert_engine.validator import CONNECT_PREFIX
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


class ExecutionService:
    """Execute alerts against their data sources.

    A run holds the alert's lock from the moment the definition is read
    until the outcome and its history entry are committed, so a concurrent
    edit lands entirely before or entirely after it.

    Parameters
    ----------
    session:
        Active database session.  The service commits it.
    gateway:
        Connector gateway that runs the query.
    locks:
        Per-alert lock registry shared with the alert service.
    """

    def __init__(
        self,
        session: AsyncSession,
        *,
        gateway: ConnectorGateway,
        locks: AlertLockRegistry,
    ) -> None:
        self._session = session
        self._gateway = gateway
        self._locks = locks
        self._alerts = AlertRepository(session)
        self._history = HistoryRepository(session)
        self._sources = DataSourceRepository(session)

    async def run(self, alert_id: str) -> ExecutionOutcome:
        """Run the alert's query once and record the outcome.

        Execution failures are part of the outcome (status ``broken``);
        they are never raised.

        Raises
        ------
        NotFound
            If the alert does not exist.
        """
        async with self._locks.transaction(self._session, alert_id):
            row = await self._alerts.get(alert_id)
            if row is None:
                raise NotFound("alert", alert_id)

            started_at = datetime.now(UTC)
            source = await self._sources.get(row.data_source_id)
            if source is None:
                raw = RawResult(error=f"{CONNECT_PREFIX}: data source {row.data_source_id} not found")
            else:
                raw = await self._gateway.execute(DataSourceDescriptor.from_row(source), row.query)

            status = classify(
                has_run=True,
                needs_refresh=False,
                error=raw.error,
                result_count=raw.result_count,
                threshold=row.threshold,
            )
            outcome = ExecutionOutcome(
                alert_id=alert_id,
                timestamp=started_at,
                result_count=raw.result_count,
                error=raw.error,
                duration_ms=raw.duration_ms,
                status=status,
            )

            previous = await self._history.latest_execution(alert_id)
            snapshot = outcome.snapshot()
            changes = diff_execution(previous.outcome if previous is not None else None, snapshot)

            await self._alerts.update(
                row,
                last_run_at=started_at,
                last_result_count=raw.result_count,
                last_error=raw.error,
                status=status.value,
                status_since=next_status_since(AlertStatus(row.status), row.status_since, status, started_at),
                needs_refresh=False,
                next_run_at=next_run_for(row.schedule, started_at),
            )
            await self._history.append(
                alert_id,
                HistoryKind.EXECUTION,
                changes,
                outcome=snapshot,
                created_at=started_at,
            )

        ALERT_RUNS_TOTAL.labels(status=status.value).inc()
        ALERT_RUN_DURATION.observe(raw.duration_ms / 1000.0)
        if outcome.succeeded:
            logger.info(
                "Alert %s ran: %d row(s), status=%s (%.0fms)",
                alert_id,
                raw.result_count,
                status.value,
                raw.duration_ms,
            )
        else:
            logger.warning("Alert %s is broken: %s", alert_id, raw.error)
        return outcome
