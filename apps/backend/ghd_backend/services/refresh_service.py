"""
User refresh engine.

Decides whether a tracked user's cached data is stale, fetches the delta from
GitHub with the current credential and reconciles it into the cache together
with the refresh timestamp. A credential rejected by GitHub is invalidated
here, so the poller stops fetching until the user sets a new token.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from enum import Enum
from typing import TYPE_CHECKING

from ghd_backend.core.errors import (
    CredentialInvalidError,
    CredentialMissingError,
    NeverRefreshedError,
    ResourceNotFoundError,
    TransientError,
    UnknownError,
)
from ghd_backend.core.events import EventBus
from ghd_backend.core.timeutil import utc_now
from ghd_backend.ingestion.persistence import CacheRepository
from ghd_backend.services.credential_service import Credential, CredentialStore

if TYPE_CHECKING:
    from ghd_backend.core.state import AppState
    from ghd_backend.ingestion.github_client import GitHubClient
    from ghd_backend.ingestion.types import UserUpdate

logger = logging.getLogger(__name__)


class RefreshOutcome(str, Enum):
    UPDATED = "updated"
    NO_UPDATE = "no_update"
    NO_CREDENTIAL = "no_credential"
    NOT_TRACKED = "not_tracked"
    IN_PROGRESS = "in_progress"
    CREDENTIAL_INVALID = "credential_invalid"
    NOT_FOUND = "not_found"
    FAILED = "failed"


def is_stale(last_refresh: datetime | None, now: datetime, window: timedelta) -> bool:
    """Never refreshed is always stale; exactly `window` old is still fresh."""
    if last_refresh is None:
        return True
    return now - last_refresh > window


class RefreshEngine:
    def __init__(
        self,
        session_factory: Callable,
        client_factory: Callable[[str], GitHubClient],
        events: EventBus,
        lock: asyncio.Lock,
        window: timedelta,
        overlap: timedelta,
    ):
        self._session_factory = session_factory
        self._client_factory = client_factory
        self._events = events
        self._lock = lock
        self.window = window
        self.overlap = overlap
        self._in_flight: set[str] = set()

    @classmethod
    def from_state(cls, state: AppState) -> RefreshEngine:
        return cls(
            session_factory=state.session_factory,
            client_factory=state.client_factory,
            events=state.events,
            lock=state.lock,
            window=timedelta(seconds=state.settings.refresh_interval_seconds),
            overlap=timedelta(seconds=state.settings.refresh_overlap_seconds),
        )

    def stale_cutoff(self, now: datetime | None = None) -> datetime:
        return (now or utc_now()) - self.window

    async def refresh_user(self, login: str, force: bool = False) -> RefreshOutcome:
        if login in self._in_flight:
            logger.debug(f"Refresh of {login} already in progress")
            return RefreshOutcome.IN_PROGRESS

        self._in_flight.add(login)
        try:
            return await self._refresh(login, force)
        finally:
            self._in_flight.discard(login)

    async def _refresh(self, login: str, force: bool) -> RefreshOutcome:
        async with self._lock:
            async with self._session_factory() as session:
                user = await CacheRepository(session).get_user_by_login(login)
                if user is None:
                    return RefreshOutcome.NOT_TRACKED
                user_id = user.id

                try:
                    credential = await CredentialStore(session).get_active_credential()
                except (CredentialMissingError, CredentialInvalidError):
                    return RefreshOutcome.NO_CREDENTIAL

                try:
                    last_refresh = await CacheRepository(session).get_last_refresh(user_id)
                except NeverRefreshedError:
                    last_refresh = None

        if not force and not is_stale(last_refresh, utc_now(), self.window):
            return RefreshOutcome.NO_UPDATE

        since = last_refresh - self.overlap if last_refresh is not None else None
        try:
            update = await self._fetch(credential, login, since)
        except CredentialInvalidError as e:
            await self._handle_rejected_credential(credential, login, e)
            return RefreshOutcome.CREDENTIAL_INVALID
        except ResourceNotFoundError as e:
            logger.warning(f"GitHub has no data for {login}: {e}", extra={"login": login})
            return RefreshOutcome.NOT_FOUND
        except (TransientError, UnknownError) as e:
            logger.warning(
                f"Refresh of {login} failed: {e}",
                extra={"login": login, "error_type": type(e).__name__},
            )
            return RefreshOutcome.FAILED

        async with self._lock:
            async with self._session_factory() as session:
                await CacheRepository(session).reconcile(
                    user_id, update.issues, update.pull_requests, refreshed_at=update.when
                )

        if update.is_empty:
            logger.debug(f"No changes for {login}", extra={"login": login})
            return RefreshOutcome.NO_UPDATE

        logger.info(
            f"Refreshed {login}: {len(update.issues)} issues, {len(update.pull_requests)} pull requests",
            extra={"login": login, "initial": since is None},
        )
        await self._events.emit_pull_requests_update(login)
        return RefreshOutcome.UPDATED

    async def _fetch(self, credential: Credential, login: str, since: datetime | None) -> UserUpdate:
        async with self._client_factory(credential.token) as client:
            return await client.search_user_issues(login, since)

    async def _handle_rejected_credential(
        self, credential: Credential, login: str, error: CredentialInvalidError
    ) -> None:
        logger.warning(
            f"Token rejected while refreshing {login}: {error}",
            extra={"login": login, "token_id": credential.id},
        )
        async with self._lock:
            async with self._session_factory() as session:
                invalidated = await CredentialStore(session).invalidate_active_credential(
                    expected_id=credential.id
                )
        if invalidated:
            await self._events.emit_token_invalid()
