"""Application configuration settings."""
from __future__ import annotations

import os
from functools import lru_cache

from pydantic import BaseModel, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Runtime toggles -----------------------------------------------------
# Execution environment: "dev" | "local" | "test" | "staging" | "prod"
ENV = os.getenv("ORDERDESK_ENV", "dev").lower()

# Environments where Base.metadata.create_all() may bootstrap the schema.
CREATE_ALL_ENVS = {"dev", "local", "test"}


class Settings(BaseSettings):
    """Environment configuration for the OrderDesk backend."""

    app_env: str = ENV
    database_url: str = "sqlite:///orderdesk.db"
    SECRET_KEY: str = "change-me"
    LOG_LEVEL: str = "INFO"
    CORS_ALLOW_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]
    SENTRY_DSN: str | None = None
    PROMETHEUS_ENABLED: bool = False
    ALLOW_DB_CREATE_ALL: bool = False

    # --- Background jobs -------------------------------------------------
    SCHEDULER_ENABLED: bool = False
    TASK_POLL_SECONDS: int = 15
    TASK_MAX_ATTEMPTS: int = 5
    TASK_BATCH_SIZE: int = 50
    BUDGET_EXPIRY_INTERVAL_MINUTES: int = 60

    model_config = SettingsConfigDict(
        env_file=".env", env_prefix="", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("LOG_LEVEL")
    @classmethod
    def _normalise_level(cls, value: str) -> str:
        return value.strip().upper() or "INFO"

    @field_validator("TASK_MAX_ATTEMPTS", "TASK_POLL_SECONDS", "TASK_BATCH_SIZE")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be >= 1")
        return value


class AppInfo(BaseModel):
    name: str = "orderdesk-backend"
    version: str = "0.1.0"


settings = Settings()


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings."""

    return settings


__all__ = [
    "ENV",
    "CREATE_ALL_ENVS",
    "Settings",
    "AppInfo",
    "settings",
    "get_settings",
]
