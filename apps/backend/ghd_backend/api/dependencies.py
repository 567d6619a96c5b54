from collections.abc import AsyncGenerator

from fastapi import Request
from sqlmodel.ext.asyncio.session import AsyncSession

from ghd_backend.core.state import AppState
from ghd_backend.services.github_service import GithubService


def get_state(request: Request) -> AppState:
    return request.app.state.ghd


def get_service(request: Request) -> GithubService:
    return request.app.state.service


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    async with get_state(request).session_factory() as session:
        yield session
