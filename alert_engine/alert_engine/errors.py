"""Exception taxonomy shared by the engine and the API layer.

Execution failures are deliberately absent: a failed run is recorded as a
``broken`` outcome and returned to the caller, never raised.
"""

from __future__ import annotations


class AlertEngineError(Exception):
    """Base exception for all alert engine errors."""


class ValidationRejected(AlertEngineError):
    """Pre-commit validation refused an alert definition.

    The message is user-facing and must be preserved verbatim; it always
    contains ``could not connect`` or ``invalid query``.
    """

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class ScheduleFormatInvalid(AlertEngineError):
    """A schedule string is not a valid cron expression."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class NotFound(AlertEngineError):
    """Unknown alert or data source id."""

    def __init__(self, kind: str, identifier: object) -> None:
        super().__init__(f"{kind} {identifier} not found")
        self.kind = kind
        self.identifier = identifier


class DuplicateName(AlertEngineError):
    """A data source with the same name already exists."""


class ConcurrencyConflict(AlertEngineError):
    """Two writers produced the same history sequence for one alert.

    Per-alert serialization makes this unreachable; seeing it means an
    invariant was broken.
    """
