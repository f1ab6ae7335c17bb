"""Data source descriptor models.

A descriptor is the engine's view of a registered data source: enough to
build a SQLAlchemy URL, nothing more.  Connectors receive descriptors rather
than ORM rows so they never touch the state store.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, SecretStr, model_validator
from sqlalchemy.engine import URL


class DriverKind(str, Enum):
    """Supported driver kinds, keyed by their display names."""

    MARIADB = "MariaDB Unicode"
    POSTGRESQL = "PostgreSQL Unicode"
    SQLITE = "SQLite"

    @property
    def drivername(self) -> str:
        return _DRIVERNAMES[self]

    @property
    def sql_dialect(self) -> str:
        """Dialect name understood by the SQL toolkit parser."""
        return _SQL_DIALECTS[self]

    @property
    def is_network(self) -> bool:
        return self is not DriverKind.SQLITE


_DRIVERNAMES: dict[DriverKind, str] = {
    DriverKind.MARIADB: "mysql+pymysql",
    DriverKind.POSTGRESQL: "postgresql+psycopg",
    DriverKind.SQLITE: "sqlite",
}

_SQL_DIALECTS: dict[DriverKind, str] = {
    DriverKind.MARIADB: "mysql",
    DriverKind.POSTGRESQL: "postgres",
    DriverKind.SQLITE: "sqlite",
}


class DataSourceDescriptor(BaseModel):
    """Connection parameters for one data source."""

    model_config = ConfigDict(frozen=True)

    id: int | None = None
    name: str = Field(..., min_length=1)
    driver: DriverKind
    server: str | None = None
    port: int | None = Field(default=None, ge=1, le=65535)
    database: str | None = None
    username: str | None = None
    password: SecretStr | None = None

    @model_validator(mode="after")
    def _check_required_parameters(self) -> DataSourceDescriptor:
        if self.driver.is_network and not self.server:
            raise ValueError(f"server is required for driver '{self.driver.value}'")
        if not self.database:
            raise ValueError("database is required")
        return self

    @classmethod
    def from_row(cls, row: Any) -> DataSourceDescriptor:
        """Build a descriptor from a ``DataSourceTable`` row."""
        return cls(
            id=row.id,
            name=row.name,
            driver=DriverKind(row.driver),
            server=row.server,
            port=row.port,
            database=row.database,
            username=row.username,
            password=SecretStr(row.password) if row.password else None,
        )

    def url(self) -> URL:
        """Build the SQLAlchemy URL for this descriptor."""
        if self.driver is DriverKind.SQLITE:
            # mode=rw: a missing file is a connection failure, not a new empty database.
            return URL.create(
                "sqlite",
                database=f"file:{self.database}",
                query={"mode": "rw", "uri": "true"},
            )
        return URL.create(
            self.driver.drivername,
            username=self.username or None,
            password=self.password.get_secret_value() if self.password else None,
            host=self.server,
            port=self.port,
            database=self.database,
        )


class ProbeResult(BaseModel):
    """Outcome of a connectivity probe."""

    model_config = ConfigDict(frozen=True)

    ok: bool
    detail: str = ""
