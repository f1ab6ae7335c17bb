"""Single-line JSON log formatter.

Enabled with ``API_STRUCTURED_LOGGING=true``.  Each record becomes one JSON
object::

    {"timestamp": "...", "level": "INFO", "logger": "api.services.execution_service",
     "message": "Alert 3f2a... ran: 0 row(s), status=good (12ms)",
     "trace_id": "...", "request": {...}}

``trace_id``/``span_id`` appear when :class:`TraceLoggingFilter` is
installed on the handler; ``request`` appears on access log lines.
"""

from __future__ import annotations

import json
import logging
import traceback
from datetime import UTC, datetime
from typing import Any

_OPTIONAL_FIELDS = ("trace_id", "span_id", "request", "alert_id")


class JSONFormatter(logging.Formatter):
    """Format log records as single-line JSON."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in _OPTIONAL_FIELDS:
            value = getattr(record, field, None)
            if value:
                payload[field] = value

        if record.exc_info and record.exc_info[0] is not None:
            payload["exc_info"] = "".join(traceback.format_exception(*record.exc_info))

        return json.dumps(payload, default=str, ensure_ascii=False)
