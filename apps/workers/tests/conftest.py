"""Shared fixtures for worker tests"""

import os

import pytest

os.environ.setdefault("ENVIRONMENT", "development")

from factories import FakeGitHub  # noqa: E402
from ghd_database.schema import setup_database  # noqa: E402
from ghd_database.session import create_engine_for_url, create_session_factory  # noqa: E402

from ghd_backend.core.config import Settings  # noqa: E402
from ghd_backend.core.events import EventBus  # noqa: E402
from ghd_backend.core.state import AppState  # noqa: E402


@pytest.fixture
async def engine(tmp_path):
    engine = create_engine_for_url(f"sqlite+aiosqlite:///{tmp_path / 'ghd.sqlite3'}")
    await setup_database(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def github():
    return FakeGitHub()


@pytest.fixture
def state(tmp_path, engine, github):
    settings = Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'ghd.sqlite3'}",
        refresh_interval_seconds=60,
        refresh_overlap_seconds=60,
        poll_interval_seconds=0.01,
    )
    return AppState(
        settings=settings,
        engine=engine,
        session_factory=create_session_factory(engine),
        events=EventBus(),
        client_factory=github.client_factory,
    )
