"""Alert status labels.

The enum values are the stable strings exposed to API consumers, who match
on them by substring, so they must never change.
"""

from __future__ import annotations

from enum import Enum


class AlertStatus(str, Enum):
    """Derived classification of an alert."""

    NEVER_RUN = "never run"
    NEEDS_REFRESHING = "needs refreshing"
    BROKEN = "broken"
    GOOD = "good"
    UNDER_THRESHOLD = "under threshold"
    BAD = "bad"

    @property
    def shows_since(self) -> bool:
        """Whether the status reflects a completed execution and carries a "since"."""
        return self in _EXECUTION_STATUSES


_EXECUTION_STATUSES = frozenset(
    {
        AlertStatus.BROKEN,
        AlertStatus.GOOD,
        AlertStatus.UNDER_THRESHOLD,
        AlertStatus.BAD,
    }
)
