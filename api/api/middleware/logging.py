"""Access logging middleware for the alertwatch API."""

from __future__ import annotations

import logging
import time
import uuid
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("api.access")

# Header names whose values must be masked in log output.
SENSITIVE_HEADERS: frozenset[str] = frozenset({"x-master-password", "cookie", "authorization"})
_MASK = "***"

CORRELATION_HEADER = "X-Correlation-ID"


def safe_headers(request: Request) -> dict[str, str]:
    """Return the request headers with credential-bearing values masked."""
    return {key: (_MASK if key.lower() in SENSITIVE_HEADERS else value) for key, value in request.headers.items()}


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log one line per request with method, path, status code and duration.

    The ``X-Correlation-ID`` request header is propagated, or a UUID-4 is
    generated, and echoed on the response.  4xx responses log at WARNING,
    5xx at ERROR.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())

        start = time.monotonic()
        response: Response | None = None
        try:
            response = await call_next(request)
            response.headers[CORRELATION_HEADER] = correlation_id
            return response
        finally:
            status_code = response.status_code if response is not None else 500
            log_payload: dict[str, Any] = {
                "method": request.method,
                "path": request.url.path,
                "query": str(request.url.query) or None,
                "status_code": status_code,
                "duration_ms": round((time.monotonic() - start) * 1000, 2),
                "client": request.client.host if request.client else None,
                "correlation_id": correlation_id,
                "trace_id": getattr(request.state, "trace_id", ""),
                "headers": safe_headers(request),
            }
            if status_code >= 500:
                level = logging.ERROR
            elif status_code >= 400:
                level = logging.WARNING
            else:
                level = logging.INFO
            logger.log(
                level,
                "%s %s -> %d",
                request.method,
                request.url.path,
                status_code,
                extra={"request": log_payload},
            )
