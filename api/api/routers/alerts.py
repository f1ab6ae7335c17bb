"""API router for alerts: definitions, manual runs and history.

Validation rejections, unknown ids and malformed schedules raise engine
exceptions that the application-level handlers turn into 422 and 404
responses carrying the original message.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Query, Response, status

from api.dependencies import GatewayDep, LocksDep, SessionDep
from api.schemas import (
    AlertCreateRequest,
    AlertResponse,
    AlertUpdateRequest,
    ExecutionOutcomeResponse,
    HistoryEntryResponse,
)
from api.services.alert_service import AlertService
from api.services.execution_service import ExecutionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/alerts", tags=["alerts"])


@router.get("", response_model=list[AlertResponse])
async def list_alerts(
    session: SessionDep,
    gateway: GatewayDep,
    locks: LocksDep,
    context: str | None = Query(None, description="Only alerts with this exact context."),
) -> list[dict[str, Any]]:
    """List alerts, optionally filtered by context."""
    service = AlertService(session, gateway=gateway, locks=locks)
    return await service.list_alerts(context=context)


@router.post("", response_model=AlertResponse, status_code=status.HTTP_201_CREATED)
async def create_alert(
    body: AlertCreateRequest,
    session: SessionDep,
    gateway: GatewayDep,
    locks: LocksDep,
) -> dict[str, Any]:
    """Validate and create an alert.  Nothing is stored if validation fails."""
    service = AlertService(session, gateway=gateway, locks=locks)
    return await service.create(body.model_dump())


@router.get("/{alert_id}", response_model=AlertResponse)
async def get_alert(
    alert_id: str,
    session: SessionDep,
    gateway: GatewayDep,
    locks: LocksDep,
) -> dict[str, Any]:
    service = AlertService(session, gateway=gateway, locks=locks)
    return await service.get(alert_id)


@router.put("/{alert_id}", response_model=AlertResponse)
async def edit_alert(
    alert_id: str,
    body: AlertUpdateRequest,
    session: SessionDep,
    gateway: GatewayDep,
    locks: LocksDep,
) -> dict[str, Any]:
    """Apply a partial edit.  The alert must be re-run to leave ``needs refreshing``."""
    service = AlertService(session, gateway=gateway, locks=locks)
    return await service.edit(alert_id, body.provided_fields())


@router.delete("/{alert_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_alert(
    alert_id: str,
    session: SessionDep,
    gateway: GatewayDep,
    locks: LocksDep,
) -> Response:
    """Delete the alert and its history.  Deleting an unknown id is not an error."""
    service = AlertService(session, gateway=gateway, locks=locks)
    await service.delete(alert_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{alert_id}/run", response_model=ExecutionOutcomeResponse)
async def run_alert(
    alert_id: str,
    session: SessionDep,
    gateway: GatewayDep,
    locks: LocksDep,
) -> dict[str, Any]:
    """Run the alert now.  A failed query is reported as a ``broken`` outcome, not an error."""
    service = ExecutionService(session, gateway=gateway, locks=locks)
    outcome = await service.run(alert_id)
    return outcome.snapshot()


@router.get("/{alert_id}/history", response_model=list[HistoryEntryResponse])
async def alert_history(
    alert_id: str,
    session: SessionDep,
    gateway: GatewayDep,
    locks: LocksDep,
) -> list[dict[str, Any]]:
    """History of the alert, newest first."""
    service = AlertService(session, gateway=gateway, locks=locks)
    return await service.history(alert_id)
