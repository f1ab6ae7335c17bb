"""API router for the data source registry."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Response, status

from api.dependencies import GatewayDep, SessionDep
from api.schemas import DataSourceRequest, DataSourceResponse, ProbeResponse
from api.services.data_source_service import DataSourceService

router = APIRouter(prefix="/data_sources", tags=["data_sources"])


@router.get("", response_model=list[DataSourceResponse])
async def list_data_sources(session: SessionDep) -> list[dict[str, Any]]:
    return await DataSourceService(session).list_data_sources()


@router.post("", response_model=DataSourceResponse, status_code=status.HTTP_201_CREATED)
async def register_data_source(body: DataSourceRequest, session: SessionDep) -> dict[str, Any]:
    """Register a data source.  Connectivity is not checked here; use the probe endpoint."""
    return await DataSourceService(session).register(body.model_dump(mode="json"))


@router.get("/{data_source_id}", response_model=DataSourceResponse)
async def get_data_source(data_source_id: int, session: SessionDep) -> dict[str, Any]:
    return await DataSourceService(session).get(data_source_id)


@router.put("/{data_source_id}", response_model=DataSourceResponse)
async def update_data_source(
    data_source_id: int,
    body: DataSourceRequest,
    session: SessionDep,
) -> dict[str, Any]:
    """Replace a data source's descriptor.  Alerts using it are not re-validated."""
    return await DataSourceService(session).update(data_source_id, body.model_dump(mode="json"))


@router.delete("/{data_source_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_data_source(data_source_id: int, session: SessionDep) -> Response:
    """Delete a data source.  Alerts that reference it stay and run as broken."""
    await DataSourceService(session).delete(data_source_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{data_source_id}/probe", response_model=ProbeResponse)
async def probe_data_source(
    data_source_id: int,
    session: SessionDep,
    gateway: GatewayDep,
) -> dict[str, Any]:
    """Check whether the data source accepts connections right now."""
    return await DataSourceService(session, gateway).probe(data_source_id)
