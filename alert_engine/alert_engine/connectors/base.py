"""Abstract interface for data source connectors.

A connector wraps one registered data source.  Every method is blocking;
the async gateway runs them in worker threads under a timeout.  Connectors
raise :class:`ConnectionFailed` when the source cannot be reached and
:class:`QueryFailed` when the source rejects a statement, so that callers
can word the two cases differently.
"""

from __future__ import annotations

from typing import Protocol

from alert_engine.models.data_source import ProbeResult


class ConnectorError(Exception):
    """Base exception for connector failures."""

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class ConnectionFailed(ConnectorError):
    """The data source could not be reached or refused the login."""


class QueryFailed(ConnectorError):
    """The data source rejected or failed to run a statement."""


class DataSourceConnector(Protocol):
    """Structural interface for data source connectors.

    Implementations are **not** required to subclass this protocol; they only
    need to expose methods with matching signatures (duck typing).
    """

    def probe(self) -> ProbeResult:
        """Open a short-lived connection and run a trivial statement."""
        ...

    def dry_run(self, sql: str) -> None:
        """Ask the data source to plan *sql* without executing it.

        Raises
        ------
        ConnectionFailed
            If no connection could be opened.
        QueryFailed
            If the data source rejects the statement.
        """
        ...

    def count_rows(self, sql: str) -> int:
        """Execute *sql* and return the number of rows it produced.

        Raises
        ------
        ConnectionFailed
            If no connection could be opened.
        QueryFailed
            If the statement failed.
        """
        ...

    def cancel(self) -> None:
        """Interrupt an in-flight statement, if the driver supports it."""
        ...

    def close(self) -> None:
        """Release every resource held by the connector."""
        ...
