"""SQL toolkit protocol definitions.

These define the interface contract that ANY implementation must satisfy.
Consumer code depends on these protocols, never on concrete implementations.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from ._types import Dialect, ParseResult, SafetyCheckResult


@runtime_checkable
class SqlParser(Protocol):
    """Parse SQL strings into statement summaries."""

    def parse_one(self, sql: str, dialect: Dialect = Dialect.POSTGRES) -> ParseResult:
        """Parse exactly one SQL statement.

        Raises:
            SqlParseError: If the SQL is invalid, empty, or holds more than
                one statement.
        """
        ...


@runtime_checkable
class SqlSafetyGuard(Protocol):
    """Decide whether SQL is read-only."""

    def check(self, sql: str, dialect: Dialect = Dialect.POSTGRES) -> SafetyCheckResult:
        """Return violations for every statement that could modify data."""
        ...


@runtime_checkable
class SqlToolkit(Protocol):
    """Composite toolkit exposed to consumer code."""

    @property
    def parser(self) -> SqlParser: ...

    @property
    def safety_guard(self) -> SqlSafetyGuard: ...
