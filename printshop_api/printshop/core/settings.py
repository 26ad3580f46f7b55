from __future__ import annotations

from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """
    Application-level settings for the order engine service.

    This is separate from printshop.db.config.Settings, which focuses on the database layer.
    """

    # FastAPI metadata
    APP_NAME: str = Field(default="Print Shop Orders API")
    APP_DESCRIPTION: str = Field(
        default=(
            "Order lifecycle and inventory consistency engine for a print shop: "
            "multi-channel order intake, material reservation/deduction and "
            "status notifications."
        )
    )
    APP_VERSION: str = Field(default="0.1.0")

    # CORS
    CORS_ORIGINS: List[str] = Field(
        default_factory=lambda: ["*"],
        description="Comma-separated list or JSON array of allowed origins. Default: *",
    )
    CORS_ALLOW_CREDENTIALS: bool = Field(default=True)
    CORS_ALLOW_METHODS: List[str] = Field(default_factory=lambda: ["*"])
    CORS_ALLOW_HEADERS: List[str] = Field(default_factory=lambda: ["*"])

    # Startup behavior
    RUN_MIGRATIONS_ON_STARTUP: bool = Field(
        default=True,
        description="If true, run Alembic migrations (upgrade head) at app startup.",
    )
    ENABLE_SCHEDULER: bool = Field(
        default=True,
        description="If true, start the periodic notification pass at app startup.",
    )

    # Order engine
    RESERVATION_TTL_HOURS: int = Field(
        default=24, ge=1, description="Lifetime of material reservations made at order creation."
    )
    NOTIFICATION_INTERVAL_MINUTES: int = Field(
        default=5, ge=1, description="How often the notification pass runs."
    )
    NOTIFICATION_RECENT_WINDOW_MINUTES: int = Field(
        default=60,
        ge=1,
        description="Only orders updated within this window are considered by a notification pass.",
    )

    # Logging
    LOG_LEVEL: str = Field(default="INFO", description="Root log level name (DEBUG, INFO, WARNING, ...)")

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _parse_cors_origins(cls, v):
        """
        Accept both JSON array format and comma-separated formats for CORS origins.
        """
        if v is None:
            return ["*"]
        if isinstance(v, str):
            parts = [p.strip() for p in v.split(",") if p.strip()]
            return parts or ["*"]
        if isinstance(v, list):
            return v or ["*"]
        return ["*"]


# PUBLIC_INTERFACE
def get_app_settings() -> AppSettings:
    """Return a new AppSettings instance populated from environment variables."""
    return AppSettings()
