"""Prometheus metrics emitted by the alert engine.

Registered on the default ``prometheus_client`` registry so the API's
``/metrics`` endpoint exports them alongside the HTTP metrics.
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

ALERT_RUNS_TOTAL = Counter(
    "alertwatch_alert_runs_total",
    "Total alert executions by resulting status",
    ["status"],
)

ALERT_RUN_DURATION = Histogram(
    "alertwatch_alert_run_duration_seconds",
    "Wall-clock duration of alert query executions in seconds",
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)

VALIDATION_REJECTIONS = Counter(
    "alertwatch_validation_rejections_total",
    "Alert definitions rejected by pre-commit validation, by cause",
    ["cause"],
)
