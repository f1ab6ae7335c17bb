"""State persistence layer (PostgreSQL in production, SQLite locally)."""

from alert_engine.state.database import get_engine
from alert_engine.state.repository import (
    AlertRepository,
    DataSourceRepository,
    HistoryRepository,
    new_alert_id,
)

__all__ = [
    "AlertRepository",
    "DataSourceRepository",
    "HistoryRepository",
    "get_engine",
    "new_alert_id",
]
