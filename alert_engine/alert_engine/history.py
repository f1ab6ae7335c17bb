"""Field-level diffing for the alert history ledger.

Definition changes are diffed field by field against the previous
definition; executions are diffed against the summary of the previous
execution, or against a "never run" baseline for the first one.  Only
changed fields appear in a diff.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from alert_engine.models.status import AlertStatus

# Order matters: diffs are emitted in this order so stored JSON is stable.
DEFINITION_FIELDS: tuple[str, ...] = (
    "name",
    "context",
    "description",
    "query",
    "threshold",
    "schedule",
    "data_source_id",
)

EXECUTION_FIELDS: tuple[str, ...] = ("status", "result_count", "error")

EMPTY_DEFINITION: dict[str, Any] = {field: None for field in DEFINITION_FIELDS}

NEVER_RUN_SUMMARY: dict[str, Any] = {
    "status": AlertStatus.NEVER_RUN.value,
    "result_count": None,
    "error": None,
}

Diff = dict[str, dict[str, Any]]


def diff_fields(
    old: Mapping[str, Any],
    new: Mapping[str, Any],
    fields: tuple[str, ...],
) -> Diff:
    """Return ``{field: {"old": ..., "new": ...}}`` for every field that differs."""
    changes: Diff = {}
    for field in fields:
        before = old.get(field)
        after = new.get(field)
        if before != after:
            changes[field] = {"old": before, "new": after}
    return changes


def definition_snapshot(source: Any) -> dict[str, Any]:
    """Extract the definition fields from an ORM row or a mapping."""
    if isinstance(source, Mapping):
        return {field: source.get(field) for field in DEFINITION_FIELDS}
    return {field: getattr(source, field) for field in DEFINITION_FIELDS}


def diff_definition(old: Mapping[str, Any] | None, new: Mapping[str, Any]) -> Diff:
    """Diff two alert definitions.  ``old=None`` means the alert is new."""
    return diff_fields(old if old is not None else EMPTY_DEFINITION, new, DEFINITION_FIELDS)


def execution_summary(outcome: Mapping[str, Any] | None) -> dict[str, Any]:
    """Reduce an outcome snapshot to the fields tracked between executions."""
    if outcome is None:
        return dict(NEVER_RUN_SUMMARY)
    status = outcome.get("status")
    return {
        "status": status.value if isinstance(status, AlertStatus) else status,
        "result_count": outcome.get("result_count"),
        "error": outcome.get("error"),
    }


def diff_execution(previous_outcome: Mapping[str, Any] | None, outcome: Mapping[str, Any]) -> Diff:
    """Diff an execution against the previous execution's outcome snapshot."""
    return diff_fields(
        execution_summary(previous_outcome),
        execution_summary(outcome),
        EXECUTION_FIELDS,
    )
