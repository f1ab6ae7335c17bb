"""SQLAlchemy-backed data source connector.

Builds a short-lived synchronous engine per connector from a
:class:`DataSourceDescriptor`.  Connections are never pooled: alerts run
rarely and a data source may be repointed at any time, so each call opens a
fresh connection and closes it again.

Driver-level timeouts bound every blocking call so a worker thread does not
outlive its asyncio timeout by much:

* PyMySQL: ``connect_timeout`` and ``read_timeout``.
* psycopg: ``connect_timeout`` and a server-side ``statement_timeout``.
* sqlite3: busy ``timeout``; in-flight statements are interrupted by
  :meth:`SqlAlchemyConnector.cancel`.
"""

from __future__ import annotations

import logging
import threading
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.pool import NullPool

from alert_engine.connectors.base import ConnectionFailed, QueryFailed
from alert_engine.models.data_source import DataSourceDescriptor, DriverKind, ProbeResult

logger = logging.getLogger(__name__)

_EXPLAIN_PREFIX: dict[DriverKind, str] = {
    DriverKind.MARIADB: "EXPLAIN ",
    DriverKind.POSTGRESQL: "EXPLAIN ",
    DriverKind.SQLITE: "EXPLAIN QUERY PLAN ",
}


def _error_detail(exc: BaseException) -> str:
    """Return the driver's own message, without SQLAlchemy's decoration."""
    if isinstance(exc, DBAPIError) and exc.orig is not None:
        detail = str(exc.orig)
    else:
        detail = str(exc)
    detail = " ".join(detail.split())
    return detail or type(exc).__name__


def _strip_statement(sql: str) -> str:
    return sql.strip().rstrip(";").strip()


class SqlAlchemyConnector:
    """Run probes, dry runs and row counts against one data source.

    Implements the :class:`DataSourceConnector` protocol.

    Parameters
    ----------
    descriptor:
        Connection parameters of the data source.
    connect_timeout:
        Seconds to wait for a connection to open.
    statement_timeout:
        Seconds a single statement may run on the server, where the driver
        supports it.
    fetch_batch_size:
        Rows fetched per round trip while counting results.
    """

    def __init__(
        self,
        descriptor: DataSourceDescriptor,
        *,
        connect_timeout: int = 5,
        statement_timeout: float = 30.0,
        fetch_batch_size: int = 500,
    ) -> None:
        self._descriptor = descriptor
        self._connect_timeout = connect_timeout
        self._statement_timeout = statement_timeout
        self._fetch_batch_size = fetch_batch_size
        self._engine: Engine | None = None
        self._active: Connection | None = None
        self._active_lock = threading.Lock()

    # -- Engine management ---------------------------------------------------

    def _connect_args(self) -> dict[str, Any]:
        driver = self._descriptor.driver
        if driver is DriverKind.MARIADB:
            return {
                "connect_timeout": self._connect_timeout,
                "read_timeout": max(1, int(self._statement_timeout)),
                "charset": "utf8mb4",
            }
        if driver is DriverKind.POSTGRESQL:
            return {
                "connect_timeout": self._connect_timeout,
                "options": f"-c statement_timeout={int(self._statement_timeout * 1000)}",
            }
        return {"timeout": self._connect_timeout, "check_same_thread": False}

    def _get_engine(self) -> Engine:
        """Return (and lazily create) the SQLAlchemy engine."""
        if self._engine is None:
            try:
                self._engine = create_engine(
                    self._descriptor.url(),
                    poolclass=NullPool,
                    connect_args=self._connect_args(),
                )
            except ImportError as exc:
                raise ConnectionFailed(
                    f"driver for '{self._descriptor.driver.value}' is not installed: {exc}"
                ) from exc
        return self._engine

    def _open(self) -> Connection:
        try:
            return self._get_engine().connect()
        except SQLAlchemyError as exc:
            raise ConnectionFailed(_error_detail(exc)) from exc

    def close(self) -> None:
        """Dispose of the engine if it was created."""
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None

    # -- Context manager support ---------------------------------------------

    def __enter__(self) -> SqlAlchemyConnector:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        self.close()

    # -- DataSourceConnector implementation ----------------------------------

    def probe(self) -> ProbeResult:
        try:
            with self._open() as conn:
                conn.exec_driver_sql("SELECT 1").scalar()
        except ConnectionFailed as exc:
            logger.info("Probe of data source %s failed: %s", self._descriptor.name, exc.detail)
            return ProbeResult(ok=False, detail=f"could not connect: {exc.detail}")
        except SQLAlchemyError as exc:
            detail = _error_detail(exc)
            logger.info("Probe of data source %s failed: %s", self._descriptor.name, detail)
            return ProbeResult(ok=False, detail=f"could not connect: {detail}")
        return ProbeResult(ok=True, detail="connected")

    def dry_run(self, sql: str) -> None:
        statement = _EXPLAIN_PREFIX[self._descriptor.driver] + _strip_statement(sql)
        with self._open() as conn:
            self._track(conn)
            try:
                # Leaving the block without commit rolls the transaction back.
                conn.exec_driver_sql(statement).fetchall()
            except SQLAlchemyError as exc:
                raise QueryFailed(_error_detail(exc)) from exc
            finally:
                self._track(None)

    def count_rows(self, sql: str) -> int:
        with self._open() as conn:
            self._track(conn)
            try:
                result = conn.execution_options(stream_results=True).exec_driver_sql(_strip_statement(sql))
                if not result.returns_rows:
                    raise QueryFailed("statement did not return rows")
                count = 0
                for partition in result.partitions(self._fetch_batch_size):
                    count += len(partition)
                return count
            except SQLAlchemyError as exc:
                raise QueryFailed(_error_detail(exc)) from exc
            finally:
                self._track(None)

    def cancel(self) -> None:
        """Interrupt the running statement (sqlite3 ``interrupt``, psycopg ``cancel``)."""
        with self._active_lock:
            conn = self._active
            if conn is None:
                return
            raw = conn.connection.dbapi_connection
        interrupt = getattr(raw, "interrupt", None) or getattr(raw, "cancel", None)
        if interrupt is None:
            logger.debug("Driver for %s cannot interrupt statements", self._descriptor.name)
            return
        try:
            interrupt()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to interrupt statement on %s: %s", self._descriptor.name, exc)

    def _track(self, conn: Connection | None) -> None:
        with self._active_lock:
            self._active = conn
