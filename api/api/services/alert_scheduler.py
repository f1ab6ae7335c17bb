"""Background scheduler for alerts with a cron schedule.

Runs as an ``asyncio`` background task, polling for alerts whose
``next_run_at`` has passed and running each through the execution service.
Alerts with an empty schedule are never picked up.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime

from alert_engine.connectors.gateway import ConnectorGateway
from alert_engine.errors import NotFound
from alert_engine.locks import AlertLockRegistry
from alert_engine.state.repository import AlertRepository
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from api.services.execution_service import ExecutionService

logger = logging.getLogger(__name__)


class AlertScheduler:
    """AsyncIO background task for scheduled alert runs.

    Parameters
    ----------
    session_factory:
        An ``async_sessionmaker``.  Each due alert runs in its own session
        so one failure cannot roll back another alert's outcome.
    gateway:
        Connector gateway shared with the request handlers.
    locks:
        Lock registry shared with the request handlers, so a scheduled run
        and a manual edit of the same alert are serialised.
    interval_seconds:
        Delay between polls.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        gateway: ConnectorGateway,
        locks: AlertLockRegistry,
        interval_seconds: float = 30.0,
    ) -> None:
        self._session_factory = session_factory
        self._gateway = gateway
        self._locks = locks
        self._interval = interval_seconds
        self._running = False
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        """Whether the scheduler loop is active."""
        return self._running

    async def start(self) -> None:
        """Start the scheduler background task."""
        if self._running:
            logger.warning("AlertScheduler already running; ignoring start()")
            return
        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info("AlertScheduler started (interval=%.0fs)", self._interval)

    async def stop(self) -> None:
        """Stop the scheduler gracefully."""
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("AlertScheduler stopped")

    async def _run_loop(self) -> None:
        while self._running:
            try:
                await self.run_due()
            except asyncio.CancelledError:
                raise
            except (OperationalError, InterfaceError) as exc:
                logger.error("AlertScheduler database error: %s", exc, exc_info=True)
            except Exception as exc:
                logger.critical("AlertScheduler unexpected error: %s", exc, exc_info=True)
                raise
            await asyncio.sleep(self._interval)

    async def run_due(self, now: datetime | None = None) -> list[str]:
        """Run every alert that is due at *now*.  Returns the ids that ran."""
        now = now or datetime.now(UTC)
        async with self._session_factory() as session:
            due_ids = [row.id for row in await AlertRepository(session).list_due(now)]

        ran: list[str] = []
        for alert_id in due_ids:
            async with self._session_factory() as session:
                service = ExecutionService(session, gateway=self._gateway, locks=self._locks)
                try:
                    outcome = await service.run(alert_id)
                except NotFound:
                    logger.info("Scheduled alert %s was deleted before it ran", alert_id)
                    continue
            ran.append(alert_id)
            logger.debug("Scheduled run of alert %s finished with status=%s", alert_id, outcome.status.value)
        if ran:
            logger.info("AlertScheduler ran %d due alert(s)", len(ran))
        return ran
