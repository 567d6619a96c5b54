"""Translates GitHub REST/GraphQL payloads into domain types"""

from __future__ import annotations

import logging
from typing import Any

from ghd_backend.core.timeutil import parse_github_datetime

from .types import (
    GitHubUser,
    IssueData,
    Label,
    Milestone,
    PullRequestData,
    PullRequestDetail,
    UserReview,
)

logger = logging.getLogger(__name__)

GHOST_LOGIN = "ghost"


def parse_rest_user(payload: dict[str, Any]) -> GitHubUser:
    return GitHubUser(
        id=int(payload["id"]),
        login=payload["login"],
        name=payload.get("name") or "",
        avatar_url=payload.get("avatar_url") or "",
    )


def parse_graphql_user(payload: dict[str, Any] | None) -> GitHubUser:
    if not payload:
        return GitHubUser(id=0, login=GHOST_LOGIN)
    return GitHubUser(
        id=int(payload.get("databaseId") or 0),
        login=payload.get("login") or GHOST_LOGIN,
        name=payload.get("name") or "",
        avatar_url=payload.get("avatarUrl") or "",
    )


def _parse_common(node: dict[str, Any], is_pull_request: bool) -> IssueData:
    author = node.get("author") or {}
    repository = node.get("repository") or {}
    owner = repository.get("owner") or {}
    return IssueData(
        id=int(node["databaseId"]),
        number=int(node["number"]),
        title=node["title"],
        author=author.get("login") or GHOST_LOGIN,
        author_id=int(author.get("databaseId") or 0),
        url=node["url"],
        repo_owner=owner.get("login", ""),
        repo_name=repository.get("name", ""),
        state=str(node["state"]).lower(),
        created_at=parse_github_datetime(node["createdAt"]),
        updated_at=parse_github_datetime(node["updatedAt"]),
        closed_at=parse_github_datetime(node.get("closedAt")),
        is_pull_request=is_pull_request,
    )


def parse_search_node(node: dict[str, Any] | None) -> IssueData | PullRequestData | None:
    """Returns None for nodes that are neither issues nor pull requests"""
    if not node:
        return None

    typename = node.get("__typename")
    if typename not in ("Issue", "PullRequest"):
        return None
    if node.get("databaseId") is None:
        logger.debug(f"Skipping {typename} without databaseId: {node.get('url')}")
        return None

    if typename == "Issue":
        return _parse_common(node, is_pull_request=False)

    return PullRequestData(
        issue=_parse_common(node, is_pull_request=True),
        is_draft=bool(node.get("isDraft")),
        review_decision=node.get("reviewDecision") or "",
        merged_at=parse_github_datetime(node.get("mergedAt")),
    )


def split_search_nodes(nodes: list[dict[str, Any] | None]) -> tuple[list[IssueData], list[PullRequestData]]:
    issues: list[IssueData] = []
    pull_requests: list[PullRequestData] = []
    for node in nodes:
        parsed = parse_search_node(node)
        if isinstance(parsed, PullRequestData):
            pull_requests.append(parsed)
        elif isinstance(parsed, IssueData):
            issues.append(parsed)
    return issues, pull_requests


def parse_pull_request_detail(node: dict[str, Any]) -> PullRequestDetail:
    repository = node.get("repository") or {}
    milestone = node.get("milestone")
    return PullRequestDetail(
        number=int(node["number"]),
        title=node["title"],
        body_html=node.get("bodyHTML") or "",
        author=parse_graphql_user(node.get("author")),
        repo_owner=(repository.get("owner") or {}).get("login", ""),
        repo_name=repository.get("name", ""),
        url=node["url"],
        state=str(node["state"]).lower(),
        is_draft=bool(node.get("isDraft")),
        milestone=Milestone(
            title=milestone["title"],
            state=str(milestone["state"]).lower(),
            due_on=parse_github_datetime(milestone.get("dueOn")),
        ) if milestone else None,
        labels=[
            Label(name=label["name"], color=label["color"])
            for label in (node.get("labels") or {}).get("nodes") or []
            if label
        ],
        total_comments=int(node.get("totalCommentsCount") or 0),
        participants=[
            parse_graphql_user(user)
            for user in (node.get("participants") or {}).get("nodes") or []
            if user
        ],
        reviews=[
            UserReview(author=parse_graphql_user(review.get("author")), state=review["state"])
            for review in (node.get("latestReviews") or {}).get("nodes") or []
            if review
        ],
    )
