"""Tests for engine construction and SQLite connection setup."""

from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy import text

import ghd_database.session as session_module
from ghd_database.session import (
    DEFAULT_DATABASE_URL,
    async_url,
    create_engine_for_url,
    create_session_factory,
)


@pytest.fixture
async def engine(tmp_path):
    engine = create_engine_for_url(f"sqlite:///{tmp_path / 'session.sqlite3'}")
    yield engine
    await engine.dispose()


def test_plain_sqlite_url_is_upgraded_to_aiosqlite():
    assert async_url("sqlite:///cache.db") == "sqlite+aiosqlite:///cache.db"
    assert async_url("sqlite+aiosqlite:///cache.db") == "sqlite+aiosqlite:///cache.db"


def test_missing_database_url_falls_back_to_default():
    assert async_url("") == DEFAULT_DATABASE_URL


def test_engine_is_configured_once_per_url():
    fake_engine = MagicMock(name="engine")

    with (
        patch.object(session_module, "create_async_engine", return_value=fake_engine) as create_engine,
        patch.object(session_module, "configure_sqlite_engine", side_effect=lambda e: e) as configure,
    ):
        assert create_engine_for_url("sqlite:///x.db") is fake_engine

    create_engine.assert_called_once()
    assert create_engine.call_args.args[0] == "sqlite+aiosqlite:///x.db"
    configure.assert_called_once_with(fake_engine)


async def test_foreign_keys_enabled(engine):
    async with engine.connect() as conn:
        result = await conn.execute(text("PRAGMA foreign_keys"))
        assert result.scalar() == 1


async def test_ddl_rolls_back_with_transaction(engine):
    with pytest.raises(RuntimeError):
        async with engine.begin() as conn:
            await conn.execute(text("CREATE TABLE scratch (id INTEGER)"))
            raise RuntimeError("abort")

    async with engine.connect() as conn:
        result = await conn.execute(
            text("SELECT name FROM sqlite_master WHERE type = 'table' AND name = 'scratch'")
        )
        assert result.first() is None


async def test_sessions_keep_objects_after_commit(engine):
    factory = create_session_factory(engine)

    async with factory() as session:
        assert session.sync_session.expire_on_commit is False
