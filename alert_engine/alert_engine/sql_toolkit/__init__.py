"""SQL Toolkit: implementation-agnostic SQL parsing and read-only checks.

Usage::

    from alert_engine.sql_toolkit import get_sql_toolkit, Dialect

    tk = get_sql_toolkit()
    result = tk.parser.parse_one("SELECT * FROM orders", Dialect.MYSQL)
    safety = tk.safety_guard.check("DELETE FROM orders", Dialect.MYSQL)

The default implementation delegates to SQLGlot.  A different backend can be
swapped in via ``register_implementation()`` without touching consumer code.
"""

from ._factory import get_sql_toolkit, register_implementation, reset_toolkit
from ._protocols import SqlParser, SqlSafetyGuard, SqlToolkit
from ._types import (
    Dialect,
    ParsedStatement,
    ParseResult,
    SafetyCheckResult,
    SafetyViolation,
    SqlParseError,
    SqlToolkitError,
    StatementKind,
)

__all__ = [
    # Factory
    "get_sql_toolkit",
    "register_implementation",
    "reset_toolkit",
    # Protocols
    "SqlToolkit",
    "SqlParser",
    "SqlSafetyGuard",
    # Types
    "Dialect",
    "ParsedStatement",
    "ParseResult",
    "SafetyCheckResult",
    "SafetyViolation",
    "StatementKind",
    # Exceptions
    "SqlToolkitError",
    "SqlParseError",
]
