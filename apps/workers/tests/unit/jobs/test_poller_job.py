"""Unit tests for the background poller"""

import asyncio
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from factories import ALICE, BOB, make_issue

from ghd_backend.core.errors import CredentialInvalidError
from ghd_backend.core.events import EV_ITERATION
from ghd_backend.core.timeutil import utc_now
from ghd_backend.ingestion.persistence import CacheRepository
from ghd_backend.ingestion.types import UserUpdate
from ghd_backend.services.credential_service import CredentialStore
from ghd_backend.services.refresh_service import RefreshOutcome
from ghd_workers.jobs.poller_job import Poller


@pytest.fixture
async def with_token(state):
    async with state.session_factory() as session:
        await CredentialStore(session).persist_credential("ghp_alice", ALICE)
        await CacheRepository(session).add_user(BOB)


class TestRunIteration:

    async def test_skips_without_token(self, state, github):
        poller = Poller(state)

        async with state.events.subscribe() as queue:
            stats = await poller.run_iteration()
            assert queue.get_nowait().name == EV_ITERATION

        assert stats.skipped is True
        assert github.calls == []

    async def test_refreshes_every_stale_user(self, state, github, with_token):
        github.queue_update("alice", UserUpdate(when=utc_now(), issues=[make_issue(10)]))
        github.queue_update("bob", UserUpdate(when=utc_now()))
        poller = Poller(state)

        stats = await poller.run_iteration()

        assert (stats.stale, stats.updated, stats.unchanged, stats.failed) == (2, 1, 1, 0)
        assert [call[2] for call in github.search_calls()] == ["alice", "bob"]

        second = await poller.run_iteration()
        assert second.iteration == 2
        assert second.stale == 0

    async def test_rejected_token_ends_tick(self, state, github, with_token):
        github.queue_update("alice", CredentialInvalidError("401"))
        poller = Poller(state)

        stats = await poller.run_iteration()

        assert (stats.stale, stats.failed) == (2, 1)
        assert len(github.search_calls()) == 1
        assert (await poller.run_iteration()).skipped is True

    async def test_crash_for_one_user_does_not_stop_tick(self, state, with_token):
        engine = MagicMock()
        engine.stale_cutoff.return_value = datetime(2030, 1, 1, tzinfo=UTC)
        engine.refresh_user = AsyncMock(side_effect=[RuntimeError("boom"), RefreshOutcome.UPDATED])
        poller = Poller(state, engine)

        stats = await poller.run_iteration()

        assert (stats.failed, stats.updated) == (1, 1)
        assert engine.refresh_user.await_count == 2


class TestRun:

    async def test_runs_until_shutdown(self, state):
        poller = Poller(state)
        shutdown = asyncio.Event()

        task = asyncio.create_task(poller.run(shutdown))
        while poller.iteration < 2:
            await asyncio.sleep(0.01)
        shutdown.set()

        result = await asyncio.wait_for(task, timeout=1)
        assert result["status"] == "shutdown"
        assert result["iterations"] >= 2

    async def test_tick_failure_is_survived(self, state, monkeypatch):
        poller = Poller(state)
        shutdown = asyncio.Event()
        calls = 0

        async def failing_iteration():
            nonlocal calls
            calls += 1
            if calls >= 2:
                shutdown.set()
            raise RuntimeError("database is locked")

        monkeypatch.setattr(poller, "run_iteration", failing_iteration)

        result = await asyncio.wait_for(poller.run(shutdown), timeout=1)
        assert result["status"] == "shutdown"
        assert calls == 2
