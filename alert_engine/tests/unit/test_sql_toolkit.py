"""Tests for the SQL toolkit: parsing and read-only checks."""

from __future__ import annotations

import pytest
from alert_engine.sql_toolkit import (
    Dialect,
    SqlParseError,
    StatementKind,
    get_sql_toolkit,
    register_implementation,
    reset_toolkit,
)
from alert_engine.sql_toolkit.impl.sqlglot_impl import SqlGlotToolkit


@pytest.fixture()
def toolkit():
    return get_sql_toolkit()


class TestParser:
    @pytest.mark.parametrize("dialect", list(Dialect))
    def test_select_is_query(self, toolkit, dialect: Dialect) -> None:
        statement = toolkit.parser.parse_one("SELECT id FROM items WHERE id > 1", dialect).single
        assert statement.kind is StatementKind.QUERY
        assert statement.root_type == "Select"

    def test_trailing_semicolon_allowed(self, toolkit) -> None:
        statement = toolkit.parser.parse_one("SELECT 1;", Dialect.SQLITE).single
        assert statement.kind is StatementKind.QUERY

    @pytest.mark.parametrize("sql", ["SELECT 1; -- last checked by ops", "SELECT 1; /* nightly */"])
    def test_comment_after_semicolon_allowed(self, toolkit, sql: str) -> None:
        result = toolkit.parser.parse_one(sql, Dialect.SQLITE)
        assert len(result.statements) == 1
        assert result.single.kind is StatementKind.QUERY

    def test_cte_is_query(self, toolkit) -> None:
        sql = "WITH recent AS (SELECT * FROM orders) SELECT * FROM recent"
        statement = toolkit.parser.parse_one(sql, Dialect.POSTGRES).single
        assert statement.kind is StatementKind.QUERY

    def test_delete_is_write(self, toolkit) -> None:
        statement = toolkit.parser.parse_one("DELETE FROM items", Dialect.MYSQL).single
        assert statement.kind is StatementKind.WRITE

    def test_empty_query_rejected(self, toolkit) -> None:
        with pytest.raises(SqlParseError, match="empty"):
            toolkit.parser.parse_one("   ", Dialect.SQLITE)

    def test_multiple_statements_rejected(self, toolkit) -> None:
        with pytest.raises(SqlParseError, match="single statement"):
            toolkit.parser.parse_one("SELECT 1; SELECT 2", Dialect.SQLITE)

    def test_garbage_rejected(self, toolkit) -> None:
        with pytest.raises(SqlParseError):
            toolkit.parser.parse_one("SELECT (1 FROM items", Dialect.POSTGRES)


class TestSafetyGuard:
    def test_select_is_safe(self, toolkit) -> None:
        result = toolkit.safety_guard.check("SELECT * FROM items", Dialect.SQLITE)
        assert result.is_safe
        assert result.checked_statements == 1

    @pytest.mark.parametrize(
        "sql",
        [
            "DELETE FROM items",
            "DROP TABLE items",
            "UPDATE items SET name = 'x'",
            "INSERT INTO items (name) VALUES ('x')",
        ],
    )
    def test_writes_are_unsafe(self, toolkit, sql: str) -> None:
        result = toolkit.safety_guard.check(sql, Dialect.POSTGRES)
        assert not result.is_safe
        assert result.violations[0].violation_type == "NOT_A_QUERY"

    def test_nested_write_is_unsafe(self, toolkit) -> None:
        sql = "WITH gone AS (DELETE FROM items RETURNING *) SELECT * FROM gone"
        result = toolkit.safety_guard.check(sql, Dialect.POSTGRES)
        assert not result.is_safe
        assert result.violations[0].violation_type == "NESTED_WRITE"


class TestFactory:
    def test_singleton(self) -> None:
        assert get_sql_toolkit() is get_sql_toolkit()

    def test_register_implementation(self) -> None:
        created: list[SqlGlotToolkit] = []

        def factory() -> SqlGlotToolkit:
            created.append(SqlGlotToolkit())
            return created[-1]

        register_implementation(factory)
        try:
            assert get_sql_toolkit() is created[0]
        finally:
            reset_toolkit()
