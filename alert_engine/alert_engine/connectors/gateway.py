"""Async, time-boxed access to data source connectors.

Connector calls are blocking DBAPI I/O.  The gateway runs each one in a
worker thread via :func:`asyncio.to_thread` and bounds it with
:func:`asyncio.wait_for`.  On timeout the in-flight statement is interrupted
where the driver allows it, and the caller gets a timeout-flavoured result
instead of a hang.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from typing import TypeVar

from alert_engine.config import Settings, load_settings
from alert_engine.connectors.base import ConnectionFailed, DataSourceConnector, QueryFailed
from alert_engine.connectors.sqlalchemy_connector import SqlAlchemyConnector
from alert_engine.models.data_source import DataSourceDescriptor, ProbeResult
from alert_engine.models.outcome import RawResult

logger = logging.getLogger(__name__)

T = TypeVar("T")

ConnectorFactory = Callable[[DataSourceDescriptor, Settings], DataSourceConnector]


class ConnectorTimeout(Exception):
    """A connector call did not finish within its time budget."""

    def __init__(self, seconds: float) -> None:
        super().__init__(f"timed out after {seconds:g}s")
        self.seconds = seconds


def default_connector_factory(descriptor: DataSourceDescriptor, settings: Settings) -> DataSourceConnector:
    return SqlAlchemyConnector(
        descriptor,
        connect_timeout=settings.connect_timeout_seconds,
        statement_timeout=settings.query_timeout_seconds,
        fetch_batch_size=settings.fetch_batch_size,
    )


class ConnectorGateway:
    """Entry point for every probe, dry run and execution.

    Parameters
    ----------
    settings:
        Engine settings providing the timeouts.  Loaded from the
        environment when omitted.
    connector_factory:
        Builds a connector for a descriptor.  Tests substitute fakes here.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        connector_factory: ConnectorFactory | None = None,
    ) -> None:
        self._settings = settings or load_settings()
        self._factory = connector_factory or default_connector_factory

    @property
    def settings(self) -> Settings:
        return self._settings

    async def _call(
        self,
        descriptor: DataSourceDescriptor,
        fn: Callable[[DataSourceConnector], T],
        timeout: float,
    ) -> T:
        connector = self._factory(descriptor, self._settings)
        try:
            return await asyncio.wait_for(asyncio.to_thread(fn, connector), timeout=timeout)
        except TimeoutError as exc:
            connector.cancel()
            raise ConnectorTimeout(timeout) from exc
        finally:
            # close() may block on a statement that ignored the interrupt.
            await asyncio.to_thread(connector.close)

    async def probe(self, descriptor: DataSourceDescriptor) -> ProbeResult:
        """Check connectivity; never raises for connectivity problems."""
        timeout = self._settings.probe_timeout_seconds
        try:
            return await self._call(descriptor, lambda c: c.probe(), timeout)
        except ConnectorTimeout as exc:
            logger.info("Probe of data source %s timed out after %.1fs", descriptor.name, timeout)
            return ProbeResult(ok=False, detail=f"could not connect: {exc}")
        except ConnectionFailed as exc:
            return ProbeResult(ok=False, detail=f"could not connect: {exc.detail}")

    async def dry_run(self, descriptor: DataSourceDescriptor, sql: str) -> None:
        """Plan *sql* on the data source.

        Raises
        ------
        ConnectionFailed
            If the source is unreachable, including a timeout.
        QueryFailed
            If the source rejects the statement.
        """
        timeout = self._settings.validation_timeout_seconds
        try:
            await self._call(descriptor, lambda c: c.dry_run(sql), timeout)
        except ConnectorTimeout as exc:
            raise ConnectionFailed(str(exc)) from exc

    async def execute(self, descriptor: DataSourceDescriptor, sql: str) -> RawResult:
        """Run *sql* and count its rows.  Failures are returned, not raised."""
        timeout = self._settings.query_timeout_seconds
        started = time.monotonic()
        try:
            count = await self._call(descriptor, lambda c: c.count_rows(sql), timeout)
        except ConnectorTimeout as exc:
            error = f"query {exc}"
            count = None
        except ConnectionFailed as exc:
            error = f"could not connect to data source: {exc.detail}"
            count = None
        except QueryFailed as exc:
            error = f"sql error: {exc.detail}"
            count = None
        else:
            error = None
        duration_ms = (time.monotonic() - started) * 1000.0
        if error is not None:
            logger.info("Query on data source %s failed after %.0fms: %s", descriptor.name, duration_ms, error)
        return RawResult(result_count=count, error=error, duration_ms=duration_ms)
