"""Browser login: exchanges the master password for a session cookie.

Non-browser clients skip this and send the ``X-Master-Password`` header
on every request.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Form, Request
from fastapi.responses import JSONResponse

from api.config import PlatformEnv
from api.dependencies import SettingsDep
from api.middleware.auth import (
    SESSION_COOKIE,
    SESSION_MAX_AGE_SECONDS,
    issue_session_token,
    password_matches,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])


@router.post("/login")
async def login(
    request: Request,
    settings: SettingsDep,
    master_password: Annotated[str, Form()],
) -> JSONResponse:
    """Verify the master password and set a signed HttpOnly session cookie."""
    expected = settings.master_password_value
    if expected and not password_matches(master_password, expected):
        logger.warning("Failed login from %s", request.client.host if request.client else "unknown")
        return JSONResponse(status_code=401, content={"detail": "Invalid master password"})

    response = JSONResponse(content={"authenticated": True})
    if expected:
        response.set_cookie(
            key=SESSION_COOKIE,
            value=issue_session_token(expected),
            max_age=SESSION_MAX_AGE_SECONDS,
            httponly=True,
            secure=settings.platform_env is not PlatformEnv.DEV,
            samesite="strict",
        )
    return response
