"""
live_rekap.core.config
~~~~~~~~~~~~~~~~~~~~~~

Centralised configuration, loaded with pydantic-settings.

Load order (highest priority first):
  1. environment variables
  2. ``.env.{ENVIRONMENT}`` environment-specific file
  3. ``.env`` base file
  4. field defaults
"""
from __future__ import annotations

import os
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Read before the Settings class so it can pick the matching .env file
_CURRENT_ENV: str = os.getenv("ENVIRONMENT", "dev")


class Settings(BaseSettings):
    """Global settings: env vars > .env.{env} > .env > defaults."""

    # ── Base ──────────────────────────────────────────────────────────
    PROJECT_NAME: str = Field(default="Live Rekap Service", description="Project name")
    VERSION: str = Field(default="0.1.0", description="Version")
    ENVIRONMENT: Literal["dev", "test", "prod"] = Field(
        default="dev",
        description="Runtime environment: dev / test / prod",
    )

    # ── Rekap backend ─────────────────────────────────────────────────
    API_BASE_URL: str = Field(
        default="https://camgm.com/api",
        description="Base URL of the rekap backend (schedule lookup + recap upload)",
    )
    HTTP_TIMEOUT_SECONDS: float = Field(
        default=10.0,
        description="Timeout for outbound REST calls",
    )

    # ── Live sessions ─────────────────────────────────────────────────
    ROOM_INFO_UPDATE_INTERVAL_MS: int = Field(
        default=15000,
        gt=0,
        description="Room metadata refresh interval (ms)",
    )
    DATA_UPDATE_INTERVAL_MS: int = Field(
        default=15000,
        gt=0,
        description="Recap snapshot persistence interval (ms)",
    )
    CONNECT_TIMEOUT_SECONDS: float = Field(
        default=30.0,
        description="Upper bound on establishing a live connection",
    )
    TEARDOWN_TIMEOUT_SECONDS: float = Field(
        default=5.0,
        description="Bounded wait for a session's background tasks on end",
    )
    BROADCAST_QUEUE_SIZE: int = Field(
        default=256,
        gt=0,
        description="Outbound buffer per broadcast subscriber",
    )

    # ── Server ────────────────────────────────────────────────────────
    HOST: str = Field(default="0.0.0.0", description="Listen address")
    PORT: int = Field(default=4000, description="Listen port")
    LOG_LEVEL: str = Field(default="INFO", description="Log level (overridden by environment)")

    # ── Pydantic Settings ─────────────────────────────────────────────
    # Later files win, so .env.{env} overrides .env
    model_config = SettingsConfigDict(
        env_file=(".env", f".env.{_CURRENT_ENV}"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Environment ───────────────────────────────────────────────────

    @property
    def is_prod(self) -> bool:
        """Whether this is the production environment."""
        return self.ENVIRONMENT == "prod"

    @property
    def is_test(self) -> bool:
        """Whether this is the test environment."""
        return self.ENVIRONMENT == "test"

    @property
    def is_dev(self) -> bool:
        """Whether this is the development environment."""
        return self.ENVIRONMENT == "dev"

    # ── Environment-dependent behaviour ───────────────────────────────

    @property
    def debug(self) -> bool:
        """Debug mode, dev only."""
        return self.is_dev

    @property
    def reload(self) -> bool:
        """Hot reload, dev only."""
        return self.is_dev

    @property
    def effective_log_level(self) -> str:
        """Log level derived from the environment.

        - dev  → INFO
        - test → DEBUG (easier to investigate failing tests)
        - prod → WARNING (less noise)

        An explicit ``LOG_LEVEL`` environment variable wins.
        """
        env_log = os.getenv("LOG_LEVEL")
        if env_log:
            return env_log
        return {
            "dev": "INFO",
            "test": "DEBUG",
            "prod": "WARNING",
        }.get(self.ENVIRONMENT, "INFO")

    @property
    def allow_cors_all_origins(self) -> bool:
        """Allow every CORS origin outside prod."""
        return not self.is_prod

    @property
    def room_info_interval(self) -> float:
        """Room metadata refresh interval in seconds."""
        return self.ROOM_INFO_UPDATE_INTERVAL_MS / 1000

    @property
    def data_update_interval(self) -> float:
        """Snapshot persistence interval in seconds."""
        return self.DATA_UPDATE_INTERVAL_MS / 1000


@lru_cache
def get_settings() -> Settings:
    """Cached global Settings instance."""
    return Settings()


settings: Settings = get_settings()
