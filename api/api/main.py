"""FastAPI application entry-point for the alertwatch API."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from alert_engine.errors import ConcurrencyConflict, DuplicateName, NotFound, ScheduleFormatInvalid, ValidationRejected
from alert_engine.state.sqlite_adapter import create_local_tables
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from api import __version__
from api.config import APISettings, PlatformEnv, load_api_settings
from api.dependencies import dispose_engine, get_gateway, get_locks, get_session_factory, init_engine
from api.middleware.auth import MASTER_PASSWORD_HEADER, MasterPasswordMiddleware
from api.middleware.json_formatter import JSONFormatter
from api.middleware.logging import CORRELATION_HEADER, RequestLoggingMiddleware
from api.middleware.prometheus import PrometheusMiddleware
from api.middleware.trace_context import TraceContextMiddleware, TraceLoggingFilter
from api.routers import alerts, auth, data_sources, health
from api.routers import metrics as metrics_router
from api.services.alert_scheduler import AlertScheduler

logger = logging.getLogger(__name__)


def configure_logging(settings: APISettings) -> None:
    """Install the root log handler: JSON lines when structured logging is on."""
    root_logger = logging.getLogger()
    if settings.structured_logging:
        root_logger.handlers.clear()
        handler = logging.StreamHandler()
        handler.setFormatter(JSONFormatter())
        handler.addFilter(TraceLoggingFilter())
        root_logger.addHandler(handler)
        logger.info("Structured JSON logging enabled")
    root_logger.setLevel(logging.DEBUG if settings.debug else logging.INFO)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application startup / shutdown lifecycle.

    On startup:
    - Initialise the async database engine.
    - Create tables when running on SQLite or in dev (production uses
      Alembic migrations).
    - Start the alert scheduler when enabled.

    On shutdown:
    - Stop the scheduler, then dispose the database engine.
    """
    settings: APISettings = app.state.settings
    configure_logging(settings)

    engine = init_engine(settings)
    logger.info(
        "Database engine initialised (%s, %s)",
        settings.database_url.split("://", 1)[0],
        "local" if settings.uses_sqlite else "postgres",
    )

    if settings.platform_env == PlatformEnv.DEV or settings.uses_sqlite:
        await create_local_tables(engine)

    scheduler: AlertScheduler | None = None
    if settings.scheduler_enabled:
        scheduler = AlertScheduler(
            get_session_factory(),
            gateway=get_gateway(),
            locks=get_locks(),
            interval_seconds=settings.scheduler_interval_seconds,
        )
        await scheduler.start()
    app.state.scheduler = scheduler

    yield

    if scheduler is not None:
        await scheduler.stop()
    await dispose_engine()
    logger.info("Application shutdown complete")


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------


def create_app(settings: APISettings | None = None) -> FastAPI:
    """Construct and configure the FastAPI application."""
    settings = settings or load_api_settings()

    app = FastAPI(
        title="alertwatch API",
        description="SQL alert monitoring: alerts, data sources, runs and history.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings

    # -- Middleware (last added runs first) ----------------------------------

    app.add_middleware(PrometheusMiddleware)
    app.add_middleware(MasterPasswordMiddleware, master_password=settings.master_password_value)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Accept", CORRELATION_HEADER, MASTER_PASSWORD_HEADER],
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(TraceContextMiddleware)

    # -- Routers -------------------------------------------------------------

    app.include_router(alerts.router, prefix="/api/v1")
    app.include_router(data_sources.router, prefix="/api/v1")

    # Infrastructure endpoints, outside versioning.
    app.include_router(health.router)
    app.include_router(metrics_router.router)
    app.include_router(auth.router)

    # -- Exception handlers --------------------------------------------------

    @app.exception_handler(ValidationRejected)
    async def validation_rejected_handler(request: Request, exc: ValidationRejected) -> JSONResponse:
        logger.warning("Validation rejected on %s: %s", request.url.path, exc.reason)
        return JSONResponse(status_code=422, content={"detail": exc.reason})

    @app.exception_handler(ScheduleFormatInvalid)
    async def schedule_error_handler(request: Request, exc: ScheduleFormatInvalid) -> JSONResponse:
        logger.warning("Invalid schedule on %s: %s", request.url.path, exc.reason)
        return JSONResponse(status_code=422, content={"detail": exc.reason})

    @app.exception_handler(NotFound)
    async def not_found_handler(request: Request, exc: NotFound) -> JSONResponse:
        logger.warning("Not found on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(DuplicateName)
    async def duplicate_name_handler(request: Request, exc: DuplicateName) -> JSONResponse:
        logger.warning("Duplicate name on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=409, content={"detail": str(exc)})

    @app.exception_handler(ConcurrencyConflict)
    async def concurrency_conflict_handler(request: Request, exc: ConcurrencyConflict) -> JSONResponse:
        logger.error("Concurrency conflict on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=500, content={"detail": str(exc)})

    @app.exception_handler(SQLAlchemyError)
    async def sqlalchemy_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
        logger.error("Database error: %s", exc, exc_info=True)
        return JSONResponse(status_code=500, content={"detail": "Internal database error"})

    return app


# Module-level application instance used by ``uvicorn api.main:app``.
app = create_app()
