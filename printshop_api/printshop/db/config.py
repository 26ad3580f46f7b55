from __future__ import annotations

import logging
import re
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    Where the order database lives and how the engine talks to it.

    Resolution order for the URL:
      1. DATABASE_URL, verbatim;
      2. a PostgreSQL URL built from POSTGRES_USER / POSTGRES_PASSWORD /
         POSTGRES_DB (host and port optional);
      3. a local SQLite file at SQLITE_PATH, for single-machine shops and
         development.
    """

    DATABASE_URL: Optional[str] = Field(
        default=None,
        description="Full SQLAlchemy URL (postgresql://..., sqlite:///...).",
    )
    POSTGRES_USER: Optional[str] = Field(default=None)
    POSTGRES_PASSWORD: Optional[str] = Field(default=None)
    POSTGRES_DB: Optional[str] = Field(default=None)
    POSTGRES_HOST: str = Field(default="localhost")
    POSTGRES_PORT: int = Field(default=5432)
    SQLITE_PATH: str = Field(
        default="printshop.db", description="SQLite file used when no server database is configured"
    )

    SQL_ECHO: bool = Field(default=False, description="Log every SQL statement")
    DB_POOL_SIZE: int = Field(default=5, ge=1, description="Persistent connections per process (server databases)")
    DB_MAX_OVERFLOW: int = Field(default=10, ge=0, description="Extra connections allowed under load")

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        if self.POSTGRES_USER and self.POSTGRES_PASSWORD and self.POSTGRES_DB:
            return (
                f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
                f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
            )
        logger.warning("No server database configured; using SQLite file %s", self.SQLITE_PATH)
        return f"sqlite:///{self.SQLITE_PATH}"

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    @property
    def async_database_url(self) -> str:
        """The URL with an async driver: aiosqlite for SQLite, asyncpg otherwise."""
        url = self.database_url
        if url.startswith("sqlite"):
            return re.sub(r"^sqlite(\+\w+)?://", "sqlite+aiosqlite://", url)
        return re.sub(r"^postgresql(\+\w+)?://", "postgresql+asyncpg://", url)

    @property
    def sync_database_url(self) -> str:
        """The URL with the default sync driver, for Alembic offline mode."""
        return re.sub(r"^(sqlite|postgresql)\+\w+://", r"\1://", self.database_url)


# PUBLIC_INTERFACE
def get_settings() -> Settings:
    """Return a settings object populated from the environment."""
    return Settings()
