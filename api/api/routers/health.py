"""Health-check and readiness probe endpoints.

Both are registered at the application root (no version prefix) and are
exempt from the master password gate so that orchestrators and
load-balancers can reach them.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text

from api import __version__
from api.dependencies import SessionDep

logger = logging.getLogger(__name__)

router = APIRouter(tags=["infrastructure"])


@router.get("/health")
async def health() -> dict[str, Any]:
    """Liveness probe.  Always 200 while the process is serving requests."""
    return {"status": "healthy", "version": __version__}


@router.get("/ready")
async def readiness_probe(session: SessionDep) -> JSONResponse:
    """Readiness probe.

    Executes ``SELECT 1`` against the state database.  Returns HTTP 200
    with ``"ready"``, or HTTP 503 with ``"not_ready"`` if the database is
    unreachable.
    """
    checks: dict[str, str] = {"db": "ok"}
    overall = "ready"

    try:
        await session.execute(text("SELECT 1"))
    except Exception as exc:
        logger.error("Readiness: DB check failed: %s", exc)
        checks["db"] = "unavailable"
        overall = "not_ready"

    return JSONResponse(
        status_code=200 if overall == "ready" else 503,
        content={"status": overall, "version": __version__, "checks": checks},
    )
