"""Status classification for alerts.

Everything here is pure: the classifier sees only the execution summary and
definition freshness of an alert, never the state store.
"""

from __future__ import annotations

from datetime import UTC, datetime

from alert_engine.models.status import AlertStatus

DISPLAY_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def classify_result(result_count: int, threshold: int) -> AlertStatus:
    """Classify a successful execution's row count against a threshold.

    Zero rows is always ``GOOD``.  Otherwise the threshold is an inclusive
    upper bound for ``BAD``: ``result_count == threshold`` is ``BAD``.
    """
    if result_count < 0:
        raise ValueError(f"result_count must be non-negative, got {result_count}")
    if result_count == 0:
        return AlertStatus.GOOD
    if result_count < threshold:
        return AlertStatus.UNDER_THRESHOLD
    return AlertStatus.BAD


def classify(
    *,
    has_run: bool,
    needs_refresh: bool,
    error: str | None,
    result_count: int | None,
    threshold: int,
) -> AlertStatus:
    """Derive an alert's status.

    Decision order: never run, needs refreshing, broken, then the result
    classification of :func:`classify_result`.

    Parameters
    ----------
    has_run:
        Whether at least one execution has been recorded.
    needs_refresh:
        Whether the definition was edited after the most recent execution.
    error:
        Error of the most recent execution, if it failed.
    result_count:
        Row count of the most recent execution, if it succeeded.
    threshold:
        The alert's threshold.
    """
    if not has_run:
        return AlertStatus.NEVER_RUN
    if needs_refresh:
        return AlertStatus.NEEDS_REFRESHING
    if error is not None or result_count is None:
        return AlertStatus.BROKEN
    return classify_result(result_count, threshold)


def next_status_since(
    previous: AlertStatus,
    previous_since: datetime | None,
    current: AlertStatus,
    ran_at: datetime,
) -> datetime | None:
    """Return the "since" timestamp after an execution classified as *current*.

    The timestamp only moves when the status changes, so repeated runs with
    the same outcome keep reporting when that outcome first appeared.
    """
    if not current.shows_since:
        return None
    if previous == current and previous_since is not None:
        return previous_since
    return ran_at


def format_timestamp(value: datetime) -> str:
    """Render a timestamp as ``YYYY-MM-DD HH:MM:SS`` in UTC."""
    if value.tzinfo is not None:
        value = value.astimezone(UTC)
    return value.strftime(DISPLAY_TIMESTAMP_FORMAT)


def describe_status(status: AlertStatus | str, since: datetime | None = None) -> str:
    """Human-readable status, e.g. ``"bad since 2026-10-19 08:00:00"``."""
    status = AlertStatus(status)
    if status.shows_since and since is not None:
        return f"{status.value} since {format_timestamp(since)}"
    return status.value
