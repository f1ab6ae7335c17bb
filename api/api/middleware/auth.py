"""Master password gate.

Every request outside ``PUBLIC_PATHS`` must authenticate, either with the
shared master password in the ``X-Master-Password`` header (CLI and
scripts) or with the ``alertwatch_session`` cookie set by ``POST /login``
(browsers).

The cookie never carries the password itself.  It holds
``<issued_at>.<hmac>``, an HMAC-SHA256 of the issue time keyed by the master
password, so it expires after ``SESSION_MAX_AGE_SECONDS`` and every session
is invalidated when the password changes.  All comparisons are constant-time.

When no master password is configured (only allowed in the dev
environment) the gate lets everything through and logs a warning once at
startup.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
import time
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

logger = logging.getLogger(__name__)

MASTER_PASSWORD_HEADER = "X-Master-Password"
SESSION_COOKIE = "alertwatch_session"
SESSION_MAX_AGE_SECONDS = 12 * 3600

PUBLIC_PATHS: frozenset[str] = frozenset(
    {
        "/health",
        "/ready",
        "/metrics",
        "/login",
        "/docs",
        "/docs/oauth2-redirect",
        "/redoc",
        "/openapi.json",
    }
)


def is_public_path(path: str) -> bool:
    return path in PUBLIC_PATHS


def password_matches(presented: str | None, expected: str) -> bool:
    """Constant-time comparison of a presented secret against the configured one."""
    if not presented:
        return False
    return secrets.compare_digest(presented.encode("utf-8"), expected.encode("utf-8"))


def _sign(issued_at: str, master_password: str) -> str:
    return hmac.new(
        master_password.encode("utf-8"),
        f"alertwatch-session:{issued_at}".encode(),
        hashlib.sha256,
    ).hexdigest()


def issue_session_token(master_password: str, now: float | None = None) -> str:
    """Return a session cookie value for a successful login."""
    issued_at = str(int(time.time() if now is None else now))
    return f"{issued_at}.{_sign(issued_at, master_password)}"


def session_token_valid(token: str | None, master_password: str, now: float | None = None) -> bool:
    """Check the signature and age of a session cookie value."""
    if not token:
        return False
    issued_at, _, signature = token.partition(".")
    if not issued_at.isdigit() or not signature:
        return False
    age = (time.time() if now is None else now) - int(issued_at)
    if age < 0 or age > SESSION_MAX_AGE_SECONDS:
        return False
    return hmac.compare_digest(signature, _sign(issued_at, master_password))


class MasterPasswordMiddleware(BaseHTTPMiddleware):
    """Reject unauthenticated requests with HTTP 401.

    Parameters
    ----------
    app:
        The ASGI application.
    master_password:
        The configured secret.  Empty disables the gate.
    """

    def __init__(self, app: Any, master_password: str = "") -> None:
        super().__init__(app)
        self._master_password = master_password
        if not master_password:
            logger.warning("MASTER_PASSWORD is not set; the API is accessible without credentials")

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if not self._master_password or request.method == "OPTIONS" or is_public_path(request.url.path):
            return await call_next(request)

        header = request.headers.get(MASTER_PASSWORD_HEADER)
        session = request.cookies.get(SESSION_COOKIE)
        if header is None and session is None:
            return JSONResponse(status_code=401, content={"detail": "Master password required"})

        if header is not None:
            authenticated = password_matches(header, self._master_password)
        else:
            authenticated = session_token_valid(session, self._master_password)
        if not authenticated:
            logger.warning(
                "Rejected request with invalid credentials: %s %s from %s",
                request.method,
                request.url.path,
                request.client.host if request.client else "unknown",
            )
            return JSONResponse(status_code=401, content={"detail": "Invalid master password"})
        return await call_next(request)
