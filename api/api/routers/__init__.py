"""API router modules for the alertwatch service."""

from __future__ import annotations

from api.routers import alerts, auth, data_sources, health, metrics

__all__ = [
    "alerts",
    "auth",
    "data_sources",
    "health",
    "metrics",
]
