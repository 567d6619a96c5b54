"""Local cache of tracked users, their issues and pull requests"""

from __future__ import annotations

import logging
import math
from datetime import datetime
from enum import Enum

from ghd_database.models import NEVER_REFRESHED, Issue, PullRequest, Token, User, UserIssue, UserRefresh
from pydantic import BaseModel
from sqlalchemy import or_, text, update
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from ghd_backend.core.errors import (
    IssueNotFoundError,
    NeverRefreshedError,
    UserConflictError,
    UserNotFoundError,
)
from ghd_backend.core.timeutil import from_timestamp, to_timestamp

from .types import GitHubUser, IssueData, PullRequestData

logger = logging.getLogger(__name__)


class IssueKind(str, Enum):
    ALL = "all"
    PULL_REQUEST = "pull_request"
    ISSUE = "issue"


class IssueEntry(BaseModel):
    """Issue row joined with its pull request extension, if any"""
    id: int
    number: int
    title: str
    author: str
    author_id: int
    url: str
    repo_owner: str
    repo_name: str
    state: str
    created_at: int
    updated_at: int
    closed_at: int | None = None
    is_pull_request: bool
    last_viewed: int | None = None
    archived_at: int | None = None
    is_draft: bool | None = None
    review_decision: str | None = None
    merged_at: int | None = None

    @classmethod
    def from_rows(cls, issue: Issue, pull_request: PullRequest | None) -> IssueEntry:
        entry = cls(**issue.model_dump())
        if pull_request is not None:
            entry.is_draft = pull_request.is_draft
            entry.review_decision = pull_request.review_decision
            entry.merged_at = pull_request.merged_at
        return entry


# last_viewed and archived_at belong to the user and are never overwritten here
UPSERT_ISSUE = text("""
    INSERT INTO issues
        (id, number, title, author, author_id, url, repo_owner, repo_name,
         state, created_at, updated_at, closed_at, is_pull_request)
    VALUES
        (:id, :number, :title, :author, :author_id, :url, :repo_owner, :repo_name,
         :state, :created_at, :updated_at, :closed_at, :is_pull_request)
    ON CONFLICT (id) DO UPDATE SET
        number = excluded.number,
        title = excluded.title,
        author = excluded.author,
        author_id = excluded.author_id,
        url = excluded.url,
        repo_owner = excluded.repo_owner,
        repo_name = excluded.repo_name,
        state = excluded.state,
        created_at = excluded.created_at,
        updated_at = excluded.updated_at,
        closed_at = excluded.closed_at,
        is_pull_request = excluded.is_pull_request
""")

UPSERT_PULL_REQUEST = text("""
    INSERT INTO pull_requests (id, is_draft, review_decision, merged_at)
    VALUES (:id, :is_draft, :review_decision, :merged_at)
    ON CONFLICT (id) DO UPDATE SET
        is_draft = excluded.is_draft,
        review_decision = excluded.review_decision,
        merged_at = excluded.merged_at
""")

LINK_USER_ISSUE = text("""
    INSERT OR IGNORE INTO user_issues (user_id, issue_id)
    VALUES (:user_id, :issue_id)
""")

SET_REFRESH_AT = text("""
    UPDATE user_refresh SET refresh_at = :refresh_at WHERE id = :user_id
""")


class CacheRepository:
    """
    Session-bound access to the cache tables. Callers serialize transaction
    starts; this class never locks.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    # Users

    async def get_user_by_login(self, login: str) -> User | None:
        result = await self._session.exec(select(User).where(User.login == login))
        return result.first()

    async def get_user_by_id(self, user_id: int) -> User | None:
        return await self._session.get(User, user_id)

    async def list_users(self) -> list[User]:
        result = await self._session.exec(select(User).order_by(User.login))
        return list(result.all())

    async def add_user(self, user: GitHubUser, commit: bool = True) -> User:
        """
        Inserts the user with a never-refreshed RefreshState. A user already
        known by id only has its profile fields updated. Raises
        UserConflictError when another id already holds the login.
        """
        holder = await self.get_user_by_login(user.login)
        if holder is not None and holder.id != user.id:
            raise UserConflictError(
                f"Login {user.login} belongs to tracked user {holder.id}, not {user.id}"
            )

        row = await self._session.get(User, user.id)
        if row is not None:
            row.login = user.login
            row.name = user.name
            row.avatar_url = user.avatar_url
            self._session.add(row)
        else:
            row = User(id=user.id, login=user.login, name=user.name, avatar_url=user.avatar_url)
            self._session.add(row)
            await self._session.flush()
            self._session.add(UserRefresh(id=user.id, refresh_at=NEVER_REFRESHED))
            logger.info(f"Tracking new user {user.login}", extra={"login": user.login, "user_id": user.id})

        if commit:
            await self._session.commit()
        else:
            await self._session.flush()
        return row

    async def get_main_user(self) -> User | None:
        """Owner of the most recently stored token, valid or not"""
        stmt = (
            select(User)
            .join(Token, col(Token.user_id) == col(User.id))
            .order_by(col(Token.id).desc())
            .limit(1)
        )
        result = await self._session.exec(stmt)
        return result.first()

    async def get_last_refresh(self, user_id: int) -> datetime:
        state = await self._session.get(UserRefresh, user_id, populate_existing=True)
        if state is None:
            raise UserNotFoundError(f"No refresh state for user {user_id}")
        last = from_timestamp(state.refresh_at)
        if last is None:
            raise NeverRefreshedError(f"User {user_id} has never been refreshed")
        return last

    async def list_stale_users(self, cutoff: datetime) -> list[User]:
        """Users never refreshed or last refreshed strictly before cutoff"""
        stmt = (
            select(User)
            .join(UserRefresh, col(UserRefresh.id) == col(User.id))
            .where(
                or_(
                    col(UserRefresh.refresh_at).is_(None),
                    col(UserRefresh.refresh_at) <= 0,
                    col(UserRefresh.refresh_at) < to_timestamp(cutoff),
                )
            )
            .order_by(col(UserRefresh.refresh_at), User.login)
        )
        result = await self._session.exec(stmt)
        return list(result.all())

    # Reconciliation

    async def reconcile(
        self,
        user_id: int,
        issues: list[IssueData],
        pull_requests: list[PullRequestData],
        refreshed_at: datetime | None = None,
    ) -> int:
        """
        Upserts issues, pull request rows and user links and, when
        refreshed_at is given, advances the user's refresh timestamp. All of
        it commits together or not at all. Returns the number of items.
        """
        issue_rows = [issue.to_row() for issue in issues]
        issue_rows.extend(pr.issue.to_row() for pr in pull_requests)
        pr_rows = [pr.to_row() for pr in pull_requests]
        links = [{"user_id": user_id, "issue_id": row["id"]} for row in issue_rows]

        try:
            if issue_rows:
                await self._session.exec(UPSERT_ISSUE, params=issue_rows)
            if pr_rows:
                await self._session.exec(UPSERT_PULL_REQUEST, params=pr_rows)
            if links:
                await self._session.exec(LINK_USER_ISSUE, params=links)
            if refreshed_at is not None:
                await self._session.exec(
                    SET_REFRESH_AT,
                    params={"user_id": user_id, "refresh_at": to_timestamp(refreshed_at)},
                )
            await self._session.commit()
        except Exception as e:
            await self._session.rollback()
            logger.error(
                f"Reconciliation failed for user {user_id}, rolled back: {e}",
                extra={"user_id": user_id, "items": len(issue_rows), "error": str(e)},
            )
            raise

        logger.debug(
            f"Reconciled {len(issue_rows)} items for user {user_id}",
            extra={"user_id": user_id, "issues": len(issues), "pull_requests": len(pull_requests)},
        )
        return len(issue_rows)

    # Feeds

    def _feed_query(self, kind: IssueKind):
        stmt = (
            select(Issue, PullRequest)
            .outerjoin(PullRequest, col(PullRequest.id) == col(Issue.id))
            .where(col(Issue.archived_at).is_(None))
        )
        if kind == IssueKind.PULL_REQUEST:
            stmt = stmt.where(col(Issue.is_pull_request).is_(True))
        elif kind == IssueKind.ISSUE:
            stmt = stmt.where(col(Issue.is_pull_request).is_(False))
        return stmt.order_by(col(Issue.updated_at).desc(), col(Issue.id).desc()).execution_options(
            populate_existing=True
        )

    async def get_issues_by_author(self, login: str, kind: IssueKind = IssueKind.ALL) -> list[IssueEntry]:
        stmt = self._feed_query(kind).where(Issue.author == login)
        result = await self._session.exec(stmt)
        return [IssueEntry.from_rows(issue, pr) for issue, pr in result.all()]

    async def get_involved_issues(self, login: str, kind: IssueKind = IssueKind.ALL) -> list[IssueEntry]:
        """Items linked to the user that someone else authored"""
        stmt = (
            self._feed_query(kind)
            .join(UserIssue, col(UserIssue.issue_id) == col(Issue.id))
            .join(User, col(User.id) == col(UserIssue.user_id))
            .where(User.login == login, Issue.author != login)
        )
        result = await self._session.exec(stmt)
        return [IssueEntry.from_rows(issue, pr) for issue, pr in result.all()]

    async def get_issue(self, issue_id: int) -> IssueEntry | None:
        stmt = (
            select(Issue, PullRequest)
            .outerjoin(PullRequest, col(PullRequest.id) == col(Issue.id))
            .where(Issue.id == issue_id)
            .execution_options(populate_existing=True)
        )
        result = await self._session.exec(stmt)
        row = result.first()
        if row is None:
            return None
        return IssueEntry.from_rows(*row)

    # User actions

    async def _touch(self, column: str, ids: list[int], now: datetime) -> int:
        """
        Sets one user-owned timestamp column, rounded up so the stored value
        is never earlier than now. Returns rows matched.
        """
        stmt = (
            update(Issue)
            .where(col(Issue.id).in_(ids))
            .values({column: math.ceil(now.timestamp())})
            .execution_options(synchronize_session=False)
        )
        result = await self._session.exec(stmt)
        await self._session.commit()
        return result.rowcount or 0

    async def mark_viewed(self, issue_id: int, now: datetime) -> None:
        if await self._touch("last_viewed", [issue_id], now) == 0:
            raise IssueNotFoundError(f"Issue {issue_id} not in cache")

    async def mark_viewed_many(self, issue_ids: list[int], now: datetime) -> int:
        if not issue_ids:
            return 0
        return await self._touch("last_viewed", issue_ids, now)

    async def archive_issue(self, issue_id: int, now: datetime) -> None:
        if await self._touch("archived_at", [issue_id], now) == 0:
            raise IssueNotFoundError(f"Issue {issue_id} not in cache")

    async def archive_issues(self, issue_ids: list[int], now: datetime) -> int:
        if not issue_ids:
            return 0
        return await self._touch("archived_at", issue_ids, now)
