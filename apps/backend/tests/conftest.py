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
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def github():
    return FakeGitHub()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'ghd.sqlite3'}",
        refresh_interval_seconds=60,
        refresh_overlap_seconds=60,
        poll_interval_seconds=0.01,
    )


@pytest.fixture
def state(settings, engine, session_factory, github):
    return AppState(
        settings=settings,
        engine=engine,
        session_factory=session_factory,
        events=EventBus(),
        client_factory=github.client_factory,
    )


@pytest.fixture
def recorded_events(state, monkeypatch):
    """Every (name, payload) published on the state's bus, in order."""
    events: list[tuple] = []
    original = state.events.publish

    async def publish(name, payload=None):
        events.append((name, payload))
        await original(name, payload)

    monkeypatch.setattr(state.events, "publish", publish)
    return events
