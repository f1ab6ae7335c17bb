"""SQLGlot-backed implementation of the SQL toolkit protocols.

This is the ONLY module in the codebase that imports ``sqlglot`` directly.
All consumer code goes through the protocol interfaces defined in
:mod:`alert_engine.sql_toolkit._protocols`.

SQLGlot is a permissive parser, so a clean parse here is a necessary but not
sufficient condition for valid SQL; the query validator follows up with a
dry run on the live data source.
"""

from __future__ import annotations

import logging

import sqlglot
from sqlglot import exp
from sqlglot.errors import ErrorLevel, SqlglotError

from .._types import (
    Dialect,
    ParsedStatement,
    ParseResult,
    SafetyCheckResult,
    SafetyViolation,
    SqlParseError,
    StatementKind,
)

logger = logging.getLogger(__name__)

# Root expression types that only read data.
_QUERY_TYPES: tuple[type[exp.Expression], ...] = (
    exp.Select,
    exp.Union,
    exp.Intersect,
    exp.Except,
    exp.Subquery,
    exp.Values,
)

# Root expression types that modify data or schema.
_WRITE_TYPES: tuple[type[exp.Expression], ...] = (
    exp.Insert,
    exp.Update,
    exp.Delete,
    exp.Drop,
    exp.Create,
    exp.Merge,
    exp.TruncateTable,
)


def _classify_root(node: exp.Expression) -> StatementKind:
    if isinstance(node, _QUERY_TYPES):
        return StatementKind.QUERY
    if isinstance(node, _WRITE_TYPES):
        return StatementKind.WRITE
    return StatementKind.UNKNOWN


def _parse_statements(sql: str, dialect: Dialect) -> list[exp.Expression]:
    try:
        asts = sqlglot.parse(sql, read=dialect.value, error_level=ErrorLevel.RAISE)
    except SqlglotError as exc:
        raise SqlParseError(f"Failed to parse SQL: {exc}") from exc
    # A comment after the final semicolon parses as a bare Semicolon node.
    return [ast for ast in asts if ast is not None and not isinstance(ast, exp.Semicolon)]


# ---------------------------------------------------------------------------
# SqlGlotParser
# ---------------------------------------------------------------------------


class SqlGlotParser:
    """SQLGlot-backed :class:`SqlParser` implementation."""

    def parse_one(self, sql: str, dialect: Dialect = Dialect.POSTGRES) -> ParseResult:
        """Parse exactly one statement; a trailing semicolon is allowed."""
        if not sql or not sql.strip():
            raise SqlParseError("Failed to parse SQL: query is empty")

        asts = _parse_statements(sql, dialect)
        if not asts:
            raise SqlParseError("Failed to parse SQL: query is empty")
        if len(asts) > 1:
            raise SqlParseError(f"Failed to parse SQL: expected a single statement, got {len(asts)}")

        ast = asts[0]
        statement = ParsedStatement(kind=_classify_root(ast), root_type=type(ast).__name__)
        return ParseResult(statements=(statement,), dialect=dialect)


# ---------------------------------------------------------------------------
# SqlGlotSafetyGuard
# ---------------------------------------------------------------------------


class SqlGlotSafetyGuard:
    """SQLGlot-backed :class:`SqlSafetyGuard` implementation.

    Uses AST-based detection (never regex on raw SQL): a statement is safe
    only when its root is a query and no data-modifying expression appears
    anywhere below it, e.g. inside a CTE.
    """

    def check(self, sql: str, dialect: Dialect = Dialect.POSTGRES) -> SafetyCheckResult:
        try:
            statements = _parse_statements(sql, dialect)
        except SqlParseError as exc:
            logger.warning("SQL safety guard could not parse input: %s", exc)
            return SafetyCheckResult(
                is_safe=False,
                violations=(SafetyViolation("UNPARSEABLE", str(exc)),),
                checked_statements=0,
            )

        violations: list[SafetyViolation] = []
        for statement in statements:
            kind = _classify_root(statement)
            if kind is not StatementKind.QUERY:
                violations.append(
                    SafetyViolation(
                        "NOT_A_QUERY",
                        f"{type(statement).__name__} statements are not read-only",
                    )
                )
                continue
            nested = next(iter(statement.find_all(*_WRITE_TYPES)), None)
            if nested is not None:
                violations.append(
                    SafetyViolation(
                        "NESTED_WRITE",
                        f"query contains a nested {type(nested).__name__} statement",
                    )
                )

        return SafetyCheckResult(
            is_safe=not violations,
            violations=tuple(violations),
            checked_statements=len(statements),
        )


# ---------------------------------------------------------------------------
# SqlGlotToolkit
# ---------------------------------------------------------------------------


class SqlGlotToolkit:
    """Composite :class:`SqlToolkit` backed by SQLGlot.

    This is the default implementation returned by :func:`get_sql_toolkit`.
    """

    def __init__(self) -> None:
        self._parser = SqlGlotParser()
        self._safety_guard = SqlGlotSafetyGuard()

    @property
    def parser(self) -> SqlGlotParser:
        return self._parser

    @property
    def safety_guard(self) -> SqlGlotSafetyGuard:
        return self._safety_guard
