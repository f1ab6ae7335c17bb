"""History ledger entry kinds."""

from __future__ import annotations

from enum import Enum


class HistoryKind(str, Enum):
    """Tag of a history entry.

    DEFINITION_CHANGE entries carry field-level ``{old, new}`` diffs;
    EXECUTION entries carry the outcome snapshot as well.
    """

    DEFINITION_CHANGE = "definition_change"
    EXECUTION = "execution"
