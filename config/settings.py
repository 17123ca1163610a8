"""Application settings loaded from environment variables.

Uses pydantic-settings for validation and type coercion. All keys use the
``SAFETYHUB_`` prefix and may also be supplied through a ``.env`` file.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(StrEnum):
    DEVELOPMENT = "development"
    PRODUCTION = "production"


class Settings(BaseSettings):
    """Central configuration for the SafetyHub service.

    Environment variables are loaded from a ``.env`` file when present.
    """

    model_config = SettingsConfigDict(
        env_prefix="SAFETYHUB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # ── App ────────────────────────────────────────────────────────────
    env: Literal["development", "production"] = "development"

    # ── API ────────────────────────────────────────────────────────────
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    cors_origins: str = "http://localhost:3000,http://localhost:5173"

    # ── Logging ────────────────────────────────────────────────────────
    log_level: str = "INFO"
    log_format: str = "json"

    # ── Record store ───────────────────────────────────────────────────
    # Empty means the in-process store (development and tests).
    redis_url: str = ""
    store_cas_retries: int = Field(default=5, ge=1)

    # ── Monitoring loop ────────────────────────────────────────────────
    sos_refresh_interval_seconds: float = Field(default=10.0, gt=0)

    # ── Analytics ──────────────────────────────────────────────────────
    high_risk_zone_threshold: int = Field(default=3, ge=1)
    zone_coordinate_precision: int = Field(default=3, ge=0, le=6)  # ~110 m cells

    # ── Notification fan-out ───────────────────────────────────────────
    notification_webhook_url: str = ""
    notification_timeout_seconds: float = 5.0
    notification_outbox_size: int = Field(default=100, ge=1)

    # ── Derived Properties ─────────────────────────────────────────────

    @property
    def is_production(self) -> bool:
        return self.env == Environment.PRODUCTION

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


# Module-level singleton: import ``settings`` everywhere.
settings = Settings()
