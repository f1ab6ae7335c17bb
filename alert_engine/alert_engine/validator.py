"""Pre-commit validation of alert queries.

Every alert create, and every edit that touches the query or the data
source, passes through :class:`QueryValidator` before anything is written.
The rejection messages are a contract with API consumers: connectivity
problems always contain ``could not connect`` and SQL problems always start
with ``invalid query`` and mention ``sql syntax`` where the cause is a
syntax error.

The validator is not consulted at execution time; a definition that later
breaks because its data source changed is reported through the alert's
status instead.
"""

from __future__ import annotations

import logging

from alert_engine.connectors.base import ConnectionFailed, QueryFailed
from alert_engine.connectors.gateway import ConnectorGateway
from alert_engine.errors import ValidationRejected
from alert_engine.metrics import VALIDATION_REJECTIONS
from alert_engine.models.data_source import DataSourceDescriptor
from alert_engine.sql_toolkit import Dialect, SqlParseError, StatementKind, get_sql_toolkit

logger = logging.getLogger(__name__)

CONNECT_PREFIX = "could not connect to data source"
INVALID_QUERY_PREFIX = "invalid query"


class QueryValidator:
    """Validate a query against a live data source.

    Parameters
    ----------
    gateway:
        Async gateway used for the probe and the server-side dry run.
    """

    def __init__(self, gateway: ConnectorGateway) -> None:
        self._gateway = gateway

    async def validate(self, descriptor: DataSourceDescriptor, query: str) -> None:
        """Return normally when *query* is acceptable for *descriptor*.

        Steps, in order: reject empty text, probe connectivity, parse locally,
        refuse anything but a read-only query, then dry-run on the source.

        Raises
        ------
        ValidationRejected
            With a user-facing reason when any step fails.
        """
        if not query or not query.strip():
            raise self._reject(descriptor, "syntax", f"{INVALID_QUERY_PREFIX}: sql syntax error: query is empty")

        probe = await self._gateway.probe(descriptor)
        if not probe.ok:
            detail = probe.detail.removeprefix("could not connect: ")
            raise self._reject(descriptor, "connect", f"{CONNECT_PREFIX}: {detail}")

        self._check_locally(descriptor, query)

        try:
            await self._gateway.dry_run(descriptor, query)
        except ConnectionFailed as exc:
            raise self._reject(descriptor, "connect", f"{CONNECT_PREFIX}: {exc.detail}") from exc
        except QueryFailed as exc:
            raise self._reject(
                descriptor, "syntax", f"{INVALID_QUERY_PREFIX}: sql syntax error: {exc.detail}"
            ) from exc

        logger.debug("Query validated against data source %s", descriptor.name)

    def _check_locally(self, descriptor: DataSourceDescriptor, query: str) -> None:
        toolkit = get_sql_toolkit()
        dialect = Dialect(descriptor.driver.sql_dialect)
        try:
            statement = toolkit.parser.parse_one(query, dialect).single
        except SqlParseError as exc:
            detail = str(exc).removeprefix("Failed to parse SQL: ")
            raise self._reject(descriptor, "syntax", f"{INVALID_QUERY_PREFIX}: sql syntax error: {detail}") from exc

        if statement.kind is StatementKind.UNKNOWN:
            raise self._reject(
                descriptor,
                "syntax",
                f"{INVALID_QUERY_PREFIX}: sql syntax error: expected a SELECT statement, got {statement.root_type}",
            )

        safety = toolkit.safety_guard.check(query, dialect)
        if statement.kind is StatementKind.WRITE or not safety.is_safe:
            raise self._reject(
                descriptor,
                "read_only",
                f"{INVALID_QUERY_PREFIX}: only read-only SELECT statements are allowed",
            )

    @staticmethod
    def _reject(descriptor: DataSourceDescriptor, cause: str, reason: str) -> ValidationRejected:
        VALIDATION_REJECTIONS.labels(cause=cause).inc()
        logger.info("Rejected query for data source %s: %s", descriptor.name, reason)
        return ValidationRejected(reason)
