"""Shared fixtures: a throwaway SQLite database per test with the full schema."""

from __future__ import annotations

import pytest

from printshop.db.base import Base
from printshop.db.session import build_engine, build_session_maker
from printshop import db  # noqa: F401  registers every model on Base.metadata


@pytest.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'printshop.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return build_session_maker(engine)


@pytest.fixture
async def session(session_maker):
    async with session_maker() as session:
        yield session
