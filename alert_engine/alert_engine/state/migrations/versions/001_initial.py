"""Initial schema for the alertwatch state store.

Creates ``data_sources``, ``alerts`` and the append-only ``alert_history``
ledger.

Revision ID: 001
Revises: None
Create Date: 2026-10-19 00:00:00.000000+00:00

"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_JSON = postgresql.JSONB().with_variant(sa.JSON(), "sqlite")


def upgrade() -> None:
    op.create_table(
        "data_sources",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("display_name", sa.String(256), nullable=False),
        sa.Column("driver", sa.String(64), nullable=False),
        sa.Column("server", sa.String(256), nullable=True),
        sa.Column("port", sa.Integer(), nullable=True),
        sa.Column("database", sa.String(1024), nullable=True),
        sa.Column("username", sa.String(256), nullable=True),
        sa.Column("password", sa.String(512), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("name", name="uq_data_sources_name"),
    )

    op.create_table(
        "alerts",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("name", sa.String(256), nullable=False),
        sa.Column("context", sa.String(256), nullable=False, server_default=""),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("query", sa.Text(), nullable=False),
        sa.Column("threshold", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("schedule", sa.String(128), nullable=False, server_default=""),
        sa.Column("data_source_id", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_run_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_result_count", sa.Integer(), nullable=True),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("status", sa.String(32), nullable=False, server_default="never run"),
        sa.Column("status_since", sa.DateTime(timezone=True), nullable=True),
        sa.Column("needs_refresh", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("next_run_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("threshold >= 0", name="ck_alerts_threshold_non_negative"),
    )
    op.create_index("ix_alerts_context_name", "alerts", ["context", "name"])
    op.create_index("ix_alerts_next_run_at", "alerts", ["next_run_at"])
    op.create_index("ix_alerts_data_source", "alerts", ["data_source_id"])

    op.create_table(
        "alert_history",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("alert_id", sa.String(64), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("kind", sa.String(32), nullable=False),
        sa.Column("changes", _JSON, nullable=False),
        sa.Column("outcome", _JSON, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["alert_id"],
            ["alerts.id"],
            name="fk_alert_history_alert",
            ondelete="CASCADE",
        ),
        sa.UniqueConstraint("alert_id", "sequence", name="uq_alert_history_alert_sequence"),
        sa.CheckConstraint("sequence >= 1", name="ck_alert_history_sequence_positive"),
    )
    op.create_index("ix_alert_history_alert", "alert_history", ["alert_id"])


def downgrade() -> None:
    op.drop_index("ix_alert_history_alert", table_name="alert_history")
    op.drop_table("alert_history")
    op.drop_index("ix_alerts_data_source", table_name="alerts")
    op.drop_index("ix_alerts_next_run_at", table_name="alerts")
    op.drop_index("ix_alerts_context_name", table_name="alerts")
    op.drop_table("alerts")
    op.drop_table("data_sources")
