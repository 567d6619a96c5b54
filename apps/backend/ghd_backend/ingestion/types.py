"""Domain shapes produced by the GitHub client; the wire schema stops here"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime

from ghd_backend.core.timeutil import to_timestamp


@dataclass
class GitHubUser:
    id: int
    login: str
    name: str = ""
    avatar_url: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class IssueData:
    """Fields shared by issues and pull requests"""
    id: int
    number: int
    title: str
    author: str
    author_id: int
    url: str
    repo_owner: str
    repo_name: str
    state: str
    created_at: datetime
    updated_at: datetime
    closed_at: datetime | None = None
    is_pull_request: bool = False

    def to_row(self) -> dict:
        return {
            "id": self.id,
            "number": self.number,
            "title": self.title,
            "author": self.author,
            "author_id": self.author_id,
            "url": self.url,
            "repo_owner": self.repo_owner,
            "repo_name": self.repo_name,
            "state": self.state,
            "created_at": to_timestamp(self.created_at),
            "updated_at": to_timestamp(self.updated_at),
            "closed_at": to_timestamp(self.closed_at),
            "is_pull_request": self.is_pull_request,
        }


@dataclass
class PullRequestData:
    issue: IssueData
    is_draft: bool = False
    review_decision: str = ""
    merged_at: datetime | None = None

    def to_row(self) -> dict:
        return {
            "id": self.issue.id,
            "is_draft": self.is_draft,
            "review_decision": self.review_decision,
            "merged_at": to_timestamp(self.merged_at),
        }


@dataclass
class UserUpdate:
    when: datetime
    issues: list[IssueData] = field(default_factory=list)
    pull_requests: list[PullRequestData] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.issues and not self.pull_requests


@dataclass
class Milestone:
    title: str
    state: str
    due_on: datetime | None = None


@dataclass
class Label:
    name: str
    color: str


@dataclass
class UserReview:
    author: GitHubUser
    state: str


@dataclass
class PullRequestDetail:
    number: int
    title: str
    body_html: str
    author: GitHubUser
    repo_owner: str
    repo_name: str
    url: str
    state: str
    is_draft: bool
    milestone: Milestone | None = None
    labels: list[Label] = field(default_factory=list)
    total_comments: int = 0
    participants: list[GitHubUser] = field(default_factory=list)
    reviews: list[UserReview] = field(default_factory=list)
