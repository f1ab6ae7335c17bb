"""Alert engine configuration loaded from environment variables."""

from __future__ import annotations

import logging

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Engine settings loaded from environment variables with ALERTWATCH_ prefix."""

    model_config = SettingsConfigDict(
        env_prefix="ALERTWATCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    debug: bool = False

    # Data source timeouts
    probe_timeout_seconds: float = Field(default=5.0, gt=0)
    validation_timeout_seconds: float = Field(default=10.0, gt=0)
    query_timeout_seconds: float = Field(default=30.0, gt=0)
    connect_timeout_seconds: int = Field(default=5, ge=1)

    # Execution
    fetch_batch_size: int = Field(default=500, ge=1)

    # History
    history_page_limit: int = Field(default=500, ge=1)


def load_settings(**overrides: object) -> Settings:
    """Load settings from environment, with optional overrides for testing."""
    settings = Settings(**overrides)  # type: ignore[arg-type]

    if settings.debug:
        logger.info(
            "Loaded engine settings: probe_timeout=%.1fs query_timeout=%.1fs",
            settings.probe_timeout_seconds,
            settings.query_timeout_seconds,
        )

    return settings
