"""Shared Pydantic request and response models for API endpoints.

These schemas ensure that endpoint payloads are validated and documented
in the OpenAPI specification.  Routers import from here to avoid duplication.
"""

from __future__ import annotations

from typing import Any

from alert_engine.models.data_source import DriverKind
from alert_engine.models.status import AlertStatus
from pydantic import BaseModel, Field, model_validator

# ---------------------------------------------------------------------------
# Data source schemas
# ---------------------------------------------------------------------------


class DataSourceRequest(BaseModel):
    """Connection descriptor submitted when registering or editing a source."""

    name: str = Field(
        ...,
        min_length=1,
        max_length=128,
        pattern=r"^[A-Za-z0-9_.-]+$",
        description="Unique identifier-style name.",
    )
    display_name: str = Field(default="", max_length=256)
    driver: DriverKind
    server: str | None = Field(default=None, max_length=256)
    port: int | None = Field(default=None, ge=1, le=65535)
    database: str | None = Field(default=None, max_length=1024)
    username: str | None = Field(default=None, max_length=128)
    password: str | None = Field(
        default=None,
        description="Omit on update to keep the stored password.",
    )

    @model_validator(mode="after")
    def _check_driver_parameters(self) -> DataSourceRequest:
        if self.driver.is_network and not self.server:
            raise ValueError(f"server is required for driver '{self.driver.value}'")
        if not self.database:
            raise ValueError("database is required")
        return self


class DataSourceResponse(BaseModel):
    """A registered data source.  The password is never returned."""

    id: int
    name: str
    display_name: str = ""
    driver: str
    server: str | None = None
    port: int | None = None
    database: str | None = None
    username: str | None = None
    has_password: bool = False
    created_at: str | None = None
    updated_at: str | None = None


class ProbeResponse(BaseModel):
    """Result of a connectivity probe."""

    id: int
    name: str
    ok: bool
    detail: str = ""


# ---------------------------------------------------------------------------
# Alert schemas
# ---------------------------------------------------------------------------


class AlertCreateRequest(BaseModel):
    """Definition of a new alert."""

    name: str = Field(..., min_length=1, max_length=256)
    context: str = Field(default="", max_length=256, description="Free-form grouping label.")
    description: str = Field(default="")
    query: str = Field(..., description="Read-only SELECT whose rows signal a problem.")
    threshold: int = Field(default=1, ge=0)
    data_source_id: int
    schedule: str = Field(default="", description="Five-field cron expression; empty means manual only.")


class AlertUpdateRequest(BaseModel):
    """Partial alert update.  Omitted fields are left unchanged."""

    name: str | None = Field(default=None, min_length=1, max_length=256)
    context: str | None = Field(default=None, max_length=256)
    description: str | None = None
    query: str | None = None
    threshold: int | None = Field(default=None, ge=0)
    data_source_id: int | None = None
    schedule: str | None = None

    def provided_fields(self) -> dict[str, Any]:
        """Fields the client actually sent, excluding explicit nulls for required columns."""
        fields = self.model_dump(exclude_unset=True)
        for required in ("name", "query", "threshold", "data_source_id"):
            if fields.get(required, 0) is None:
                fields.pop(required)
        return fields


class AlertResponse(BaseModel):
    """Current state of an alert."""

    id: str
    name: str
    context: str = ""
    description: str = ""
    query: str
    threshold: int
    schedule: str = ""
    data_source_id: int
    created_at: str | None = None
    updated_at: str | None = None
    last_run_at: str | None = None
    last_result_count: int | None = None
    last_error: str | None = None
    status: AlertStatus
    status_since: str | None = None
    status_display: str
    next_run_at: str | None = None


class ExecutionOutcomeResponse(BaseModel):
    """Outcome of one alert run."""

    alert_id: str
    timestamp: str
    result_count: int | None = None
    error: str | None = None
    duration_ms: float = 0.0
    status: AlertStatus


class HistoryEntryResponse(BaseModel):
    """One entry of an alert's history ledger."""

    alert_id: str
    sequence: int
    kind: str
    created_at: str | None = None
    changes: dict[str, dict[str, Any]] = Field(default_factory=dict)
    outcome: dict[str, Any] | None = None
    is_current: bool = False
