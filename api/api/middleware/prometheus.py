"""Prometheus metrics middleware for HTTP request instrumentation.

Records request rate, errors and latency.  Path parameters are collapsed
(``/api/v1/alerts/3f2a...`` becomes ``/api/v1/alerts/{id}``) to keep label
cardinality bounded.  Alert engine metrics live in
:mod:`alert_engine.metrics` and share the default registry.
"""

from __future__ import annotations

import re
import time

from prometheus_client import Counter, Histogram
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

HTTP_REQUESTS_TOTAL = Counter(
    "alertwatch_http_requests_total",
    "Total HTTP requests by method, path, and status code",
    ["method", "path", "status_code"],
)

HTTP_REQUEST_DURATION = Histogram(
    "alertwatch_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

_PATH_PARAM_PATTERNS = [
    # Alert ids (uuid4 hex)
    (re.compile(r"/[0-9a-f]{32}(?=/|$)"), "/{id}"),
    # Data source ids
    (re.compile(r"/\d+(?=/|$)"), "/{id}"),
]

_SKIP_PATHS: frozenset[str] = frozenset({"/metrics", "/docs", "/redoc", "/openapi.json", "/favicon.ico"})


def normalise_path(path: str) -> str:
    """Collapse path parameters to prevent cardinality explosion."""
    for pattern, replacement in _PATH_PARAM_PATTERNS:
        path = pattern.sub(replacement, path)
    return path


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Record HTTP request counts and latencies."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path
        if path in _SKIP_PATHS:
            return await call_next(request)

        normalised = normalise_path(path)
        start = time.monotonic()
        response = await call_next(request)
        duration = time.monotonic() - start

        HTTP_REQUESTS_TOTAL.labels(
            method=request.method,
            path=normalised,
            status_code=str(response.status_code),
        ).inc()
        HTTP_REQUEST_DURATION.labels(method=request.method, path=normalised).observe(duration)
        return response
