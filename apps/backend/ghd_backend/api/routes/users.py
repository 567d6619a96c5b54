"""API routes for tracked users."""
from typing import Annotated

from fastapi import APIRouter, Depends, Path
from pydantic import BaseModel, Field

from ghd_backend.api.dependencies import get_service
from ghd_backend.core.errors import UserNotFoundError
from ghd_backend.ingestion.types import GitHubUser
from ghd_backend.services.github_service import GithubService
from ghd_backend.services.refresh_service import RefreshOutcome

router = APIRouter()

# GitHub logins: alphanumerics and single hyphens, at most 39 characters
Login = Annotated[str, Path(min_length=1, max_length=39, pattern=r"^[A-Za-z0-9-]+$")]


class UserResponse(BaseModel):
    id: int
    login: str
    name: str
    avatar_url: str

    @classmethod
    def from_user(cls, user: GitHubUser) -> "UserResponse":
        return cls(id=user.id, login=user.login, name=user.name, avatar_url=user.avatar_url)


class TrackUserRequest(BaseModel):
    login: str = Field(min_length=1, max_length=39, pattern=r"^[A-Za-z0-9-]+$")


class UserExistsResponse(BaseModel):
    login: str
    exists: bool


class RefreshResponse(BaseModel):
    login: str
    outcome: RefreshOutcome


@router.get("/me", response_model=UserResponse)
async def get_main_user(
    service: GithubService = Depends(get_service),
) -> UserResponse:
    """Owner of the current token."""
    return UserResponse.from_user(await service.get_main_user())


@router.get("", response_model=list[UserResponse])
async def list_users(
    service: GithubService = Depends(get_service),
) -> list[UserResponse]:
    return [UserResponse.from_user(user) for user in await service.list_users()]


@router.post("", response_model=UserResponse)
async def track_user(
    body: TrackUserRequest,
    service: GithubService = Depends(get_service),
) -> UserResponse:
    """
    Starts tracking a GitHub user. Already tracked users are returned as-is;
    new ones are populated before the response is sent.
    """
    return UserResponse.from_user(await service.track_user(body.login))


@router.get("/{login}/exists", response_model=UserExistsResponse)
async def check_user_exists(
    login: Login,
    service: GithubService = Depends(get_service),
) -> UserExistsResponse:
    return UserExistsResponse(login=login, exists=await service.user_exists(login))


@router.post("/{login}/refresh", response_model=RefreshResponse)
async def refresh_user(
    login: Login,
    service: GithubService = Depends(get_service),
) -> RefreshResponse:
    outcome = await service.refresh_user(login)
    if outcome == RefreshOutcome.NOT_TRACKED:
        raise UserNotFoundError(f"{login} is not tracked")
    return RefreshResponse(login=login, outcome=outcome)
