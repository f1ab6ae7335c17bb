"""Middleware components for the alertwatch API."""

from __future__ import annotations

from api.middleware.auth import MasterPasswordMiddleware
from api.middleware.logging import RequestLoggingMiddleware
from api.middleware.prometheus import PrometheusMiddleware
from api.middleware.trace_context import TraceContextMiddleware

__all__ = [
    "MasterPasswordMiddleware",
    "PrometheusMiddleware",
    "RequestLoggingMiddleware",
    "TraceContextMiddleware",
]
