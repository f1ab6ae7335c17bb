"""Service layer for the data source registry.

Registration never checks connectivity: a descriptor with wrong credentials
is stored as given and only fails when probed or used.  Editing a data
source never re-validates the alerts that reference it.
"""

from __future__ import annotations

import logging
from typing import Any

from alert_engine.connectors.gateway import ConnectorGateway
from alert_engine.errors import DuplicateName, NotFound
from alert_engine.models.data_source import DataSourceDescriptor
from alert_engine.state.repository import DataSourceRepository
from alert_engine.state.tables import DataSourceTable
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

_DESCRIPTOR_FIELDS = ("name", "display_name", "driver", "server", "port", "database", "username", "password")


class DataSourceService:
    """Business logic for registering and probing data sources.

    Parameters
    ----------
    session:
        Active database session.
    gateway:
        Connector gateway used for probes.  Only needed by :meth:`probe`.
    """

    def __init__(self, session: AsyncSession, gateway: ConnectorGateway | None = None) -> None:
        self._session = session
        self._gateway = gateway
        self._repo = DataSourceRepository(session)

    async def register(self, fields: dict[str, Any]) -> dict[str, Any]:
        """Store a new connection descriptor without contacting the data source.

        Raises
        ------
        DuplicateName
            If the name is already taken.
        """
        values = {key: fields.get(key) for key in _DESCRIPTOR_FIELDS}
        values["display_name"] = values["display_name"] or values["name"]
        if await self._repo.get_by_name(values["name"]) is not None:
            raise DuplicateName(f"data source '{values['name']}' already exists")
        row = await self._repo.create(**values)
        await self._session.commit()
        logger.info("Registered data source id=%d name=%s driver=%s", row.id, row.name, row.driver)
        return self._to_dict(row)

    async def get(self, data_source_id: int) -> dict[str, Any]:
        return self._to_dict(await self._require(data_source_id))

    async def list_data_sources(self) -> list[dict[str, Any]]:
        return [self._to_dict(row) for row in await self._repo.list_all()]

    async def update(self, data_source_id: int, fields: dict[str, Any]) -> dict[str, Any]:
        """Replace the connection descriptor.

        A password of ``None`` keeps the stored one, so clients can edit a
        source without echoing its secret back.
        """
        row = await self._require(data_source_id)
        values = {key: fields.get(key) for key in _DESCRIPTOR_FIELDS}
        values["display_name"] = values["display_name"] or values["name"]
        if values["password"] is None:
            values.pop("password")
        existing = await self._repo.get_by_name(values["name"])
        if existing is not None and existing.id != row.id:
            raise DuplicateName(f"data source '{values['name']}' already exists")
        row = await self._repo.replace(row, **values)
        await self._session.commit()
        logger.info("Updated data source id=%d name=%s", row.id, row.name)
        return self._to_dict(row)

    async def delete(self, data_source_id: int) -> bool:
        """Delete a data source.  Alerts referencing it are kept."""
        deleted = await self._repo.delete(data_source_id)
        await self._session.commit()
        if deleted:
            logger.info("Deleted data source id=%d", data_source_id)
        return deleted

    async def probe(self, data_source_id: int) -> dict[str, Any]:
        """Check connectivity of a registered data source."""
        if self._gateway is None:
            raise RuntimeError("DataSourceService.probe requires a connector gateway")
        row = await self._require(data_source_id)
        result = await self._gateway.probe(DataSourceDescriptor.from_row(row))
        if not result.ok:
            logger.warning("Data source id=%d name=%s unreachable: %s", row.id, row.name, result.detail)
        return {"id": row.id, "name": row.name, "ok": result.ok, "detail": result.detail}

    async def _require(self, data_source_id: int) -> DataSourceTable:
        row = await self._repo.get(data_source_id)
        if row is None:
            raise NotFound("data source", data_source_id)
        return row

    @staticmethod
    def _to_dict(row: DataSourceTable) -> dict[str, Any]:
        """Serialise a data source row.  The password never leaves the service."""
        return {
            "id": row.id,
            "name": row.name,
            "display_name": row.display_name,
            "driver": row.driver,
            "server": row.server,
            "port": row.port,
            "database": row.database,
            "username": row.username,
            "has_password": bool(row.password),
            "created_at": row.created_at.isoformat() if row.created_at else None,
            "updated_at": row.updated_at.isoformat() if row.updated_at else None,
        }
