"""Domain models for the alert engine."""

from alert_engine.models.data_source import DataSourceDescriptor, DriverKind, ProbeResult
from alert_engine.models.history import HistoryKind
from alert_engine.models.outcome import ExecutionOutcome, RawResult
from alert_engine.models.status import AlertStatus

__all__ = [
    "AlertStatus",
    "DataSourceDescriptor",
    "DriverKind",
    "ExecutionOutcome",
    "HistoryKind",
    "ProbeResult",
    "RawResult",
]
