"""Execution outcome models.

An ``ExecutionOutcome`` is produced once per run by the execution engine and
is never mutated afterwards.  Its serialised form is stored as the outcome
snapshot of the matching EXECUTION history entry.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from alert_engine.models.status import AlertStatus


class ExecutionOutcome(BaseModel):
    """Result of a single alert execution."""

    model_config = ConfigDict(frozen=True)

    alert_id: str = Field(..., min_length=1, description="Alert that was executed.")
    timestamp: datetime = Field(..., description="When the execution started (UTC).")
    result_count: int | None = Field(
        default=None,
        ge=0,
        description="Number of rows returned; None when the execution failed.",
    )
    error: str | None = Field(default=None, description="Failure reason; None on success.")
    duration_ms: float = Field(default=0.0, ge=0, description="Wall-clock duration in milliseconds.")
    status: AlertStatus = Field(..., description="Status the alert was classified into.")

    @property
    def succeeded(self) -> bool:
        return self.error is None

    def snapshot(self) -> dict[str, Any]:
        """Return the JSON-safe form stored in the history ledger."""
        return self.model_dump(mode="json")


class RawResult(BaseModel):
    """What a connector reports back for one query execution, before classification."""

    model_config = ConfigDict(frozen=True)

    result_count: int | None = None
    error: str | None = None
    duration_ms: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.error is None
