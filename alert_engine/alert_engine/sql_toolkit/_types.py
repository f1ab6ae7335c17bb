"""SQL toolkit shared types.

Every type here is implementation-agnostic.  Consumer code operates on these
types exclusively; the backing implementation converts to and from its
native types internally.

ZERO dependency on any SQL parsing library.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

# ---------------------------------------------------------------------------
# Dialect
# ---------------------------------------------------------------------------


class Dialect(str, enum.Enum):
    """Supported SQL dialects (one per data source driver kind)."""

    MYSQL = "mysql"
    POSTGRES = "postgres"
    SQLITE = "sqlite"


# ---------------------------------------------------------------------------
# Statement classification
# ---------------------------------------------------------------------------


class StatementKind(str, enum.Enum):
    """Coarse classification of a parsed statement."""

    QUERY = "query"
    WRITE = "write"
    UNKNOWN = "unknown"


@dataclass(frozen=True, slots=True)
class ParsedStatement:
    """One parsed statement, reduced to its root expression type."""

    kind: StatementKind
    root_type: str


@dataclass(frozen=True, slots=True)
class ParseResult:
    """Result of parsing a SQL string."""

    statements: tuple[ParsedStatement, ...]
    dialect: Dialect

    @property
    def single(self) -> ParsedStatement:
        """Return the single statement, or raise if zero / multiple."""
        if len(self.statements) != 1:
            raise ValueError(f"Expected exactly 1 statement, got {len(self.statements)}")
        return self.statements[0]


# ---------------------------------------------------------------------------
# Safety
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SafetyViolation:
    """A statement the read-only guard refuses."""

    violation_type: str
    detail: str


@dataclass(frozen=True, slots=True)
class SafetyCheckResult:
    """Result of a read-only safety check."""

    is_safe: bool
    violations: tuple[SafetyViolation, ...]
    checked_statements: int


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class SqlToolkitError(Exception):
    """Base exception for all sql_toolkit errors."""


class SqlParseError(SqlToolkitError):
    """SQL could not be parsed."""
