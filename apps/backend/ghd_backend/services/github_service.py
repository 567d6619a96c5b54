"""
Command facade for the GUI.

Every command reads the credential from storage, holds the shared lock only
around database steps and publishes the resulting notifications.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ghd_backend.core.errors import (
    CredentialInvalidError,
    IssueNotFoundError,
    PullRequestNotFoundError,
    UserNotFoundError,
)
from ghd_backend.core.timeutil import utc_now
from ghd_backend.ingestion.persistence import CacheRepository, IssueEntry, IssueKind
from ghd_backend.ingestion.types import GitHubUser, PullRequestDetail
from ghd_backend.services.credential_service import (
    Credential,
    CredentialStatus,
    CredentialStore,
    identify,
)
from ghd_backend.services.refresh_service import RefreshEngine, RefreshOutcome

if TYPE_CHECKING:
    from ghd_database.models import User

    from ghd_backend.core.state import AppState

logger = logging.getLogger(__name__)


def _to_github_user(row: User) -> GitHubUser:
    return GitHubUser(id=row.id, login=row.login, name=row.name, avatar_url=row.avatar_url)


class GithubService:
    def __init__(self, state: AppState, engine: RefreshEngine | None = None):
        self._state = state
        self._lock = state.lock
        self._events = state.events
        self.engine = engine or RefreshEngine.from_state(state)

    def _session(self):
        return self._state.session_factory()

    async def _active_credential(self) -> Credential:
        async with self._lock:
            async with self._session() as session:
                return await CredentialStore(session).get_active_credential()

    async def _invalidate(self, credential: Credential) -> None:
        async with self._lock:
            async with self._session() as session:
                invalidated = await CredentialStore(session).invalidate_active_credential(
                    expected_id=credential.id
                )
        if invalidated:
            await self._events.emit_token_invalid()

    # Token

    async def set_token(self, token: str) -> GitHubUser:
        """
        Verifies the token with GitHub, stores it and populates its owner on
        first sight. A rejected token leaves the store untouched.
        """
        owner = await identify(self._state.client_factory, token)

        async with self._lock:
            async with self._session() as session:
                is_new_owner = await CacheRepository(session).get_user_by_id(owner.id) is None
                await CredentialStore(session).persist_credential(token, owner)

        if is_new_owner:
            await self.engine.refresh_user(owner.login, force=True)

        await self._events.emit_token_set()
        await self._events.emit_user_update(owner)
        return owner

    async def get_token_status(self) -> CredentialStatus:
        async with self._lock:
            async with self._session() as session:
                return await CredentialStore(session).get_credential_status()

    # Users

    async def get_main_user(self) -> GitHubUser:
        async with self._session() as session:
            row = await CacheRepository(session).get_main_user()
        if row is None:
            raise UserNotFoundError("No token has been set")
        return _to_github_user(row)

    async def list_users(self) -> list[GitHubUser]:
        async with self._session() as session:
            rows = await CacheRepository(session).list_users()
        return [_to_github_user(row) for row in rows]

    async def lookup_user(self, login: str) -> GitHubUser:
        """Tracked user if known locally, otherwise asks GitHub"""
        async with self._session() as session:
            row = await CacheRepository(session).get_user_by_login(login)
        if row is not None:
            return _to_github_user(row)

        credential = await self._active_credential()
        try:
            async with self._state.client_factory(credential.token) as client:
                return await client.get_user(login)
        except CredentialInvalidError:
            await self._invalidate(credential)
            raise

    async def user_exists(self, login: str) -> bool:
        try:
            await self.lookup_user(login)
        except UserNotFoundError:
            return False
        return True

    async def track_user(self, login: str) -> GitHubUser:
        """Starts tracking login and runs its initial population"""
        user = await self.lookup_user(login)

        async with self._lock:
            async with self._session() as session:
                repo = CacheRepository(session)
                if await repo.get_user_by_id(user.id) is not None:
                    logger.debug(f"User {login} already tracked")
                    return user
                await repo.add_user(user)

        outcome = await self.engine.refresh_user(user.login, force=True)
        logger.info(
            f"Tracking {user.login}, initial population: {outcome.value}",
            extra={"login": user.login, "outcome": outcome.value},
        )
        await self._events.emit_user_update(user)
        return user

    async def refresh_user(self, login: str) -> RefreshOutcome:
        return await self.engine.refresh_user(login, force=True)

    # Issues

    async def get_issues_by_author(self, login: str, kind: IssueKind = IssueKind.ALL) -> list[IssueEntry]:
        async with self._session() as session:
            return await CacheRepository(session).get_issues_by_author(login, kind)

    async def get_involved_issues(self, login: str, kind: IssueKind = IssueKind.ALL) -> list[IssueEntry]:
        async with self._session() as session:
            return await CacheRepository(session).get_involved_issues(login, kind)

    async def get_issue(self, issue_id: int) -> IssueEntry:
        async with self._session() as session:
            entry = await CacheRepository(session).get_issue(issue_id)
        if entry is None:
            raise IssueNotFoundError(f"Issue {issue_id} not in cache")
        return entry

    async def get_pull_request_detail(self, issue_id: int) -> PullRequestDetail:
        entry = await self.get_issue(issue_id)
        if not entry.is_pull_request:
            raise PullRequestNotFoundError(f"Issue {issue_id} is not a pull request")

        credential = await self._active_credential()
        try:
            async with self._state.client_factory(credential.token) as client:
                return await client.get_pull_request_detail(entry.repo_owner, entry.repo_name, entry.number)
        except CredentialInvalidError:
            await self._invalidate(credential)
            raise

    async def mark_viewed(self, issue_id: int) -> None:
        async with self._lock:
            async with self._session() as session:
                await CacheRepository(session).mark_viewed(issue_id, utc_now())

    async def mark_viewed_many(self, issue_ids: list[int]) -> int:
        async with self._lock:
            async with self._session() as session:
                return await CacheRepository(session).mark_viewed_many(issue_ids, utc_now())

    async def archive_issue(self, issue_id: int) -> None:
        async with self._lock:
            async with self._session() as session:
                await CacheRepository(session).archive_issue(issue_id, utc_now())

    async def archive_issues(self, issue_ids: list[int]) -> int:
        async with self._lock:
            async with self._session() as session:
                return await CacheRepository(session).archive_issues(issue_ids, utc_now())
