"""Alembic environment for the alertwatch state store.

Supports both **online** (connected) and **offline** (SQL-generation) modes.
The database URL is resolved from ``ALEMBIC_DATABASE_URL``, then
``API_DATABASE_URL``, then ``sqlalchemy.url`` in ``alembic.ini``.

``target_metadata`` is bound to ``alert_engine.state.tables.Base.metadata``
so that ``--autogenerate`` can detect drift against the ORM definitions.
"""

from __future__ import annotations

import logging
import os
from logging.config import fileConfig

from alembic import context
from alert_engine.state.tables import Base
from sqlalchemy import engine_from_config, pool

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

logger = logging.getLogger("alembic.env")

target_metadata = Base.metadata

_DEFAULT_DATABASE_URL = "sqlite:///.alertwatch/state.db"

# Async drivers used by the API, mapped to the sync drivers Alembic needs.
_SYNC_DRIVERS = {
    "postgresql+asyncpg://": "postgresql+psycopg://",
    "postgresql://": "postgresql+psycopg://",
    "sqlite+aiosqlite://": "sqlite://",
}


def _get_database_url() -> str:
    """Resolve the migration URL and normalise it to a synchronous driver."""
    url = (
        os.environ.get("ALEMBIC_DATABASE_URL")
        or os.environ.get("API_DATABASE_URL")
        or config.get_main_option("sqlalchemy.url")
    )
    if not url:
        url = _DEFAULT_DATABASE_URL
        logger.info("Using default database URL: %s", url)

    for async_prefix, sync_prefix in _SYNC_DRIVERS.items():
        if url.startswith(async_prefix):
            url = sync_prefix + url[len(async_prefix) :]
            break
    return url.replace("?ssl=require", "?sslmode=require").replace("&ssl=require", "&sslmode=require")


def run_migrations_offline() -> None:
    """Emit migration SQL to the script output without a live database."""
    context.configure(
        url=_get_database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run each revision inside a transaction on a synchronous engine."""
    configuration = config.get_section(config.config_ini_section, {})
    configuration["sqlalchemy.url"] = _get_database_url()

    connectable = engine_from_config(configuration, prefix="sqlalchemy.", poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            render_as_batch=connection.dialect.name == "sqlite",
        )

        with context.begin_transaction():
            context.run_migrations()

    connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
