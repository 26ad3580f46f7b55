"""Tests for database URL resolution and logging setup."""

import logging

import pytest

from printshop.core.logging import configure_logging, correlation_id_var
from printshop.db.config import Settings


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ("DATABASE_URL", "POSTGRES_USER", "POSTGRES_PASSWORD", "POSTGRES_DB", "SQLITE_PATH"):
        monkeypatch.delenv(name, raising=False)


class TestDatabaseUrl:

    def test_explicit_url_gets_async_and_sync_drivers(self):
        settings = Settings(_env_file=None, DATABASE_URL="postgresql+psycopg://u:p@db:5432/shop")

        assert settings.async_database_url == "postgresql+asyncpg://u:p@db:5432/shop"
        assert settings.sync_database_url == "postgresql://u:p@db:5432/shop"
        assert not settings.is_sqlite

    def test_built_from_postgres_parts(self):
        settings = Settings(
            _env_file=None,
            POSTGRES_USER="shop",
            POSTGRES_PASSWORD="secret",
            POSTGRES_DB="orders",
            POSTGRES_HOST="db",
        )

        assert settings.database_url == "postgresql://shop:secret@db:5432/orders"

    def test_falls_back_to_sqlite_file(self):
        settings = Settings(_env_file=None, SQLITE_PATH="/tmp/shop.db")

        assert settings.is_sqlite
        assert settings.async_database_url == "sqlite+aiosqlite:////tmp/shop.db"
        assert settings.sync_database_url == "sqlite:////tmp/shop.db"


class TestConfigureLogging:

    def test_records_carry_correlation_id(self):
        configure_logging("DEBUG")
        handler = logging.getLogger().handlers[0]
        record = logging.LogRecord("printshop", logging.INFO, __file__, 1, "hello", None, None)

        token = correlation_id_var.set("abc123")
        try:
            handler.filter(record)
        finally:
            correlation_id_var.reset(token)

        assert record.correlation_id == "abc123"
        assert logging.getLogger().level == logging.DEBUG
        assert logging.getLogger("apscheduler").level == logging.WARNING

    def test_reconfiguring_does_not_stack_handlers(self):
        configure_logging(logging.INFO)
        configure_logging(logging.INFO)

        assert len(logging.getLogger().handlers) == 1
