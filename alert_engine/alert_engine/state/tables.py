"""SQLAlchemy 2.0 ORM table definitions for the Alertwatch state store.

All tables use the modern ``Mapped`` / ``mapped_column`` declaration style
introduced in SQLAlchemy 2.0.  The ``Base`` declarative base is exported for
use by Alembic migrations and the repository layer.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKeyConstraint,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

# Cross-dialect JSON type: uses JSONB on PostgreSQL, falls back to plain
# JSON (stored as TEXT) on SQLite.
_JsonType = JSONB().with_variant(JSON(), "sqlite")


def _utcnow() -> datetime:
    """Return the current UTC timestamp (timezone-aware)."""
    return datetime.now(UTC)


class UTCDateTime(TypeDecorator):
    """Timezone-aware ``DateTime`` that also comes back aware from SQLite.

    SQLite stores datetimes as naive text, so values read back are coerced
    to UTC.  PostgreSQL ``timestamptz`` values pass through unchanged.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Any) -> datetime | None:
        if value is not None and value.tzinfo is not None:
            return value.astimezone(UTC)
        return value

    def process_result_value(self, value: datetime | None, dialect: Any) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value


# ---------------------------------------------------------------------------
# Declarative base
# ---------------------------------------------------------------------------


class Base(DeclarativeBase):
    """Shared declarative base for all Alertwatch tables."""


# ---------------------------------------------------------------------------
# Data sources
# ---------------------------------------------------------------------------


class DataSourceTable(Base):
    """Registered connection descriptors for relational backends.

    Connection parameters are stored as given and only interpreted by the
    connectors when probing or executing.  Rows may be edited at any time;
    alerts referencing a source are never re-validated on edit.
    """

    __tablename__ = "data_sources"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    display_name: Mapped[str] = mapped_column(String(256), nullable=False)
    driver: Mapped[str] = mapped_column(String(64), nullable=False)
    server: Mapped[str | None] = mapped_column(String(256), nullable=True)
    port: Mapped[int | None] = mapped_column(Integer, nullable=True)
    database: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    username: Mapped[str | None] = mapped_column(String(256), nullable=True)
    password: Mapped[str | None] = mapped_column(String(512), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=_utcnow, nullable=False)

    __table_args__ = (UniqueConstraint("name", name="uq_data_sources_name"),)


# ---------------------------------------------------------------------------
# Alerts
# ---------------------------------------------------------------------------


class AlertTable(Base):
    """User-defined SQL alerts and their latest execution summary.

    ``data_source_id`` is a plain reference: deleting or breaking a data
    source never removes the alerts that point at it.  ``status`` always
    holds the classifier output for the row and is rewritten in the same
    commit as the fields it is derived from.
    """

    __tablename__ = "alerts"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    context: Mapped[str] = mapped_column(String(256), nullable=False, default="")
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    query: Mapped[str] = mapped_column(Text, nullable=False)
    threshold: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    schedule: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    data_source_id: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=_utcnow, nullable=False)
    last_run_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    last_result_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="never run")
    status_since: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    needs_refresh: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    next_run_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    __table_args__ = (
        CheckConstraint("threshold >= 0", name="ck_alerts_threshold_non_negative"),
        Index("ix_alerts_context_name", "context", "name"),
        Index("ix_alerts_next_run_at", "next_run_at"),
        Index("ix_alerts_data_source", "data_source_id"),
    )


# ---------------------------------------------------------------------------
# Alert history
# ---------------------------------------------------------------------------


class AlertHistoryTable(Base):
    """Append-only, sequenced ledger of definition changes and executions.

    Rows are never updated.  ``sequence`` is 1-based and strictly
    increasing per alert; the unique constraint turns a colliding writer
    into a hard failure instead of an ambiguous ledger.  Whether an entry
    is current is derived from the highest sequence, not stored.
    """

    __tablename__ = "alert_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    alert_id: Mapped[str] = mapped_column(String(64), nullable=False)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    kind: Mapped[str] = mapped_column(String(32), nullable=False)
    changes: Mapped[dict[str, Any]] = mapped_column(_JsonType, nullable=False, default=dict)
    outcome: Mapped[dict[str, Any] | None] = mapped_column(_JsonType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=_utcnow, nullable=False)

    __table_args__ = (
        ForeignKeyConstraint(
            ["alert_id"],
            ["alerts.id"],
            name="fk_alert_history_alert",
            ondelete="CASCADE",
        ),
        UniqueConstraint("alert_id", "sequence", name="uq_alert_history_alert_sequence"),
        CheckConstraint("sequence >= 1", name="ck_alert_history_sequence_positive"),
        Index("ix_alert_history_alert", "alert_id"),
    )
