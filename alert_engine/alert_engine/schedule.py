"""Cron schedule helpers backed by ``croniter``.

An empty schedule means the alert is run manually only.
"""

from __future__ import annotations

from datetime import UTC, datetime

from croniter import croniter

from alert_engine.errors import ScheduleFormatInvalid


def normalize_schedule(schedule: str | None) -> str:
    """Collapse whitespace; ``None`` and blank strings become ``""``."""
    if schedule is None:
        return ""
    return " ".join(schedule.split())


def validate_schedule(schedule: str | None) -> str:
    """Return the normalised schedule or raise :class:`ScheduleFormatInvalid`.

    Only standard five-field cron expressions are accepted.
    """
    normalized = normalize_schedule(schedule)
    if not normalized:
        return ""
    if len(normalized.split(" ")) != 5 or not croniter.is_valid(normalized):
        raise ScheduleFormatInvalid(
            f"invalid schedule: '{schedule}' is not a valid cron format (expected 5 fields, e.g. '0 * * * *')"
        )
    return normalized


def compute_next_run(cron_expression: str, from_time: datetime) -> datetime:
    """Compute the next run strictly after *from_time*.

    Parameters
    ----------
    cron_expression:
        Five-field cron string (minute, hour, day-of-month, month, day-of-week).
    from_time:
        Reference time.  Naive values are taken to be UTC.

    Returns
    -------
    datetime
        The next execution time, timezone-aware UTC.

    Raises
    ------
    ScheduleFormatInvalid
        If the expression is empty or not valid cron.
    """
    normalized = validate_schedule(cron_expression)
    if not normalized:
        raise ScheduleFormatInvalid("invalid schedule: a manual-only alert has no next run")
    if from_time.tzinfo is None:
        from_time = from_time.replace(tzinfo=UTC)
    next_run = croniter(normalized, from_time.astimezone(UTC)).get_next(datetime)
    return next_run.astimezone(UTC)


def next_run_for(schedule: str, from_time: datetime) -> datetime | None:
    """Next run for an alert's schedule, or ``None`` when it is manual only."""
    if not schedule:
        return None
    return compute_next_run(schedule, from_time)
