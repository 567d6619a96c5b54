"""API routes for the GitHub token."""
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ghd_backend.api.dependencies import get_service
from ghd_backend.api.routes.users import UserResponse
from ghd_backend.services.credential_service import CredentialStatus
from ghd_backend.services.github_service import GithubService

router = APIRouter()


class SetTokenRequest(BaseModel):
    token: str = Field(min_length=1, max_length=255)


@router.post("", response_model=UserResponse)
async def set_token(
    body: SetTokenRequest,
    service: GithubService = Depends(get_service),
) -> UserResponse:
    """Verifies the token with GitHub and makes it the active one. Returns its owner."""
    owner = await service.set_token(body.token.strip())
    return UserResponse.from_user(owner)


@router.get("", response_model=CredentialStatus)
async def get_token_status(
    service: GithubService = Depends(get_service),
) -> CredentialStatus:
    return await service.get_token_status()
