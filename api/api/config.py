"""API-layer configuration loaded from environment variables."""

from __future__ import annotations

from enum import Enum
from typing import Self

from pydantic import AliasChoices, Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class PlatformEnv(str, Enum):
    """Deployment environment label."""

    DEV = "dev"
    STAGING = "staging"
    PRODUCTION = "production"


class APISettings(BaseSettings):
    """FastAPI application settings.

    All values can be overridden via environment variables prefixed with
    ``API_`` (e.g. ``API_HOST=0.0.0.0``) or through a ``.env`` file in the
    working directory.  The shared master password is read from the
    unprefixed ``MASTER_PASSWORD`` variable.
    """

    model_config = SettingsConfigDict(
        env_prefix="API_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False

    # State store.  aiosqlite for local runs, asyncpg in production.
    database_url: str = "sqlite+aiosqlite:///.alertwatch/state.db"
    db_pool_size: int = 10
    db_max_overflow: int = 20

    platform_env: PlatformEnv = PlatformEnv.DEV

    # Origins permitted by the CORS middleware.
    cors_origins: list[str] = ["http://localhost:3000"]

    # Whether CORS responses include credentials (cookies, auth headers).
    cors_allow_credentials: bool = True

    # Structured JSON logging.
    structured_logging: bool = False

    # Pre-shared secret guarding every non-public endpoint.
    master_password: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices("MASTER_PASSWORD", "API_MASTER_PASSWORD"),
    )

    # Background scheduler for cron-scheduled alerts.
    scheduler_enabled: bool = True
    scheduler_interval_seconds: float = Field(default=30.0, gt=0)

    @model_validator(mode="after")
    def _validate_cors_credentials_not_wildcard(self) -> Self:
        """Reject wildcard origins when credentials are enabled.

        Browsers silently reject ``Access-Control-Allow-Origin: *`` when
        ``Access-Control-Allow-Credentials: true`` is present.
        """
        if self.cors_allow_credentials and "*" in self.cors_origins:
            raise ValueError(
                "Cannot use wildcard origins with credentials. "
                "Specify explicit origins instead of '*' when "
                "cors_allow_credentials=True."
            )
        return self

    @model_validator(mode="after")
    def _require_master_password_outside_dev(self) -> Self:
        if self.platform_env is not PlatformEnv.DEV and not self.master_password_value:
            raise ValueError("MASTER_PASSWORD must be set outside the dev environment")
        return self

    @property
    def master_password_value(self) -> str:
        if self.master_password is None:
            return ""
        return self.master_password.get_secret_value()

    @property
    def uses_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


def load_api_settings() -> APISettings:
    """Construct settings from the environment / ``.env`` file."""
    return APISettings()
