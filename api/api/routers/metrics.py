"""Prometheus metrics endpoint.

Exposes ``GET /metrics`` returning Prometheus text-format metrics, HTTP
request metrics and alert engine metrics alike.  Registered WITHOUT the
``/api/v1`` prefix and exempt from the master password gate.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter(tags=["metrics"])


@router.get("/metrics")
async def prometheus_metrics() -> PlainTextResponse:
    """Return all registered Prometheus metrics in text exposition format."""
    return PlainTextResponse(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
