"""
Credential store. The active credential is the newest valid token; storing a
new one supersedes every older token. Tokens are invalidated, never deleted.
"""
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal

from ghd_database.models import Token, User
from pydantic import BaseModel
from sqlalchemy import func, text, update
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from ghd_backend.core.errors import CredentialInvalidError, CredentialMissingError
from ghd_backend.ingestion.github_client import GitHubClient
from ghd_backend.ingestion.persistence import CacheRepository
from ghd_backend.ingestion.types import GitHubUser

logger = logging.getLogger(__name__)

ClientFactory = Callable[[str], GitHubClient]

# Same (token, user) pair replaces the old row and takes a fresh id
INSERT_TOKEN = text("""
    INSERT OR REPLACE INTO tokens (token, user_id, invalid)
    VALUES (:token, :user_id, 0)
""")


@dataclass(frozen=True)
class Credential:
    id: int
    token: str
    user_id: int | None


class CredentialStatus(BaseModel):
    status: Literal["valid", "invalid", "missing"]
    hint: str | None = None
    login: str | None = None


def mask_token(token: str) -> str:
    if len(token) <= 8:
        return "*" * len(token)
    return f"{token[:4]}...{token[-4:]}"


async def identify(client_factory: ClientFactory, token: str) -> GitHubUser:
    """Asks GitHub who owns the token. Network only; persists nothing."""
    async with client_factory(token) as client:
        return await client.whoami()


class CredentialStore:
    def __init__(self, session: AsyncSession):
        self._session = session

    async def _newest(self, valid_only: bool) -> Token | None:
        stmt = (
            select(Token)
            .order_by(col(Token.id).desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        if valid_only:
            stmt = stmt.where(col(Token.invalid).is_(False))
        result = await self._session.exec(stmt)
        return result.first()

    async def get_active_credential(self) -> Credential:
        token = await self._newest(valid_only=True)
        if token is None:
            if await self._newest(valid_only=False) is None:
                raise CredentialMissingError("No token stored")
            raise CredentialInvalidError("All stored tokens are invalid")
        return Credential(id=token.id, token=token.token, user_id=token.user_id)

    async def persist_credential(self, token: str, owner: GitHubUser) -> Credential:
        """
        Stores a verified token for its owner in one transaction: the owner is
        tracked if new, older tokens are superseded, the token becomes active.
        """
        try:
            await CacheRepository(self._session).add_user(owner, commit=False)
            await self._session.exec(
                update(Token)
                .where(col(Token.invalid).is_(False))
                .values(invalid=True)
                .execution_options(synchronize_session=False)
            )
            await self._session.exec(INSERT_TOKEN, params={"token": token, "user_id": owner.id})
            await self._session.commit()
        except Exception:
            await self._session.rollback()
            raise

        logger.info(f"Stored token for {owner.login}", extra={"login": owner.login, "user_id": owner.id})
        return await self.get_active_credential()

    async def invalidate_active_credential(self, expected_id: int | None = None) -> bool:
        """
        Marks the active credential invalid. With expected_id, only that
        credential is touched. Returns whether anything changed.
        """
        stmt = update(Token).where(col(Token.invalid).is_(False))
        if expected_id is not None:
            stmt = stmt.where(col(Token.id) == expected_id)
        else:
            newest_valid = select(func.max(Token.id)).where(col(Token.invalid).is_(False))
            stmt = stmt.where(col(Token.id) == newest_valid.scalar_subquery())

        result = await self._session.exec(stmt.values(invalid=True).execution_options(synchronize_session=False))
        await self._session.commit()

        changed = (result.rowcount or 0) > 0
        if changed:
            logger.warning("Active token invalidated", extra={"token_id": expected_id})
        return changed

    async def get_credential_status(self) -> CredentialStatus:
        newest = await self._newest(valid_only=False)
        if newest is None:
            return CredentialStatus(status="missing")

        active = await self._newest(valid_only=True)
        token = active or newest
        owner = await self._session.get(User, token.user_id) if token.user_id is not None else None
        return CredentialStatus(
            status="valid" if active is not None else "invalid",
            hint=mask_token(token.token),
            login=owner.login if owner else None,
        )
