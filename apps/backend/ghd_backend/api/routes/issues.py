"""API routes for cached issues and pull requests."""
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from ghd_backend.api.dependencies import get_service
from ghd_backend.api.routes.users import Login
from ghd_backend.ingestion.persistence import IssueEntry, IssueKind
from ghd_backend.ingestion.types import PullRequestDetail
from ghd_backend.services.github_service import GithubService

router = APIRouter()

MAX_BULK_IDS: int = 500


class IssueIdsRequest(BaseModel):
    ids: list[int] = Field(min_length=1, max_length=MAX_BULK_IDS)


class BulkUpdateResponse(BaseModel):
    updated: int


class IssueActionResponse(BaseModel):
    id: int
    ok: bool = True


# Feeds

@router.get("/authored/{login}", response_model=list[IssueEntry])
async def get_authored(
    login: Login,
    kind: Annotated[IssueKind, Query()] = IssueKind.ALL,
    service: GithubService = Depends(get_service),
) -> list[IssueEntry]:
    """Items authored by login, newest activity first. Archived items are hidden."""
    return await service.get_issues_by_author(login, kind)


@router.get("/involved/{login}", response_model=list[IssueEntry])
async def get_involved(
    login: Login,
    kind: Annotated[IssueKind, Query()] = IssueKind.ALL,
    service: GithubService = Depends(get_service),
) -> list[IssueEntry]:
    """Items involving login that someone else authored."""
    return await service.get_involved_issues(login, kind)


# Bulk actions

@router.post("/viewed", response_model=BulkUpdateResponse)
async def mark_viewed_many(
    body: IssueIdsRequest,
    service: GithubService = Depends(get_service),
) -> BulkUpdateResponse:
    return BulkUpdateResponse(updated=await service.mark_viewed_many(body.ids))


@router.post("/archive", response_model=BulkUpdateResponse)
async def archive_many(
    body: IssueIdsRequest,
    service: GithubService = Depends(get_service),
) -> BulkUpdateResponse:
    return BulkUpdateResponse(updated=await service.archive_issues(body.ids))


# Single item

@router.get("/{issue_id}", response_model=IssueEntry)
async def get_issue(
    issue_id: int,
    service: GithubService = Depends(get_service),
) -> IssueEntry:
    """Cached row regardless of archive state."""
    return await service.get_issue(issue_id)


@router.get("/{issue_id}/pull-request")
async def get_pull_request_detail(
    issue_id: int,
    service: GithubService = Depends(get_service),
) -> PullRequestDetail:
    """Live details from GitHub for a cached pull request."""
    return await service.get_pull_request_detail(issue_id)


@router.post("/{issue_id}/viewed", response_model=IssueActionResponse)
async def mark_viewed(
    issue_id: int,
    service: GithubService = Depends(get_service),
) -> IssueActionResponse:
    await service.mark_viewed(issue_id)
    return IssueActionResponse(id=issue_id)


@router.post("/{issue_id}/archive", response_model=IssueActionResponse)
async def archive_issue(
    issue_id: int,
    service: GithubService = Depends(get_service),
) -> IssueActionResponse:
    await service.archive_issue(issue_id)
    return IssueActionResponse(id=issue_id)
