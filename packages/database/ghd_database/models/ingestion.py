from typing import Optional

import sqlalchemy as sa
from sqlmodel import Field, SQLModel


class Issue(SQLModel, table=True):
    """Plain issues and pull requests alike; pull requests also own a PullRequest row."""
    __tablename__ = "issues"
    __table_args__ = (
        sa.Index("ix_issues_author_updated", "author", "updated_at"),
    )

    id: int = Field(sa_column=sa.Column(sa.Integer, primary_key=True, autoincrement=False))
    number: int
    title: str
    author: str
    author_id: int
    url: str
    repo_owner: str
    repo_name: str

    # Free-form tag (open, closed, merged, ...) so upstream additions don't break us
    state: str

    # Epoch seconds
    created_at: int
    updated_at: int
    closed_at: Optional[int] = Field(default=None)

    is_pull_request: bool = Field(default=False)

    # Only ever set by explicit user action
    last_viewed: Optional[int] = Field(default=None)
    archived_at: Optional[int] = Field(default=None)


class PullRequest(SQLModel, table=True):
    __tablename__ = "pull_requests"

    id: int = Field(
        sa_column=sa.Column(
            sa.Integer, sa.ForeignKey("issues.id"), primary_key=True, autoincrement=False
        )
    )
    is_draft: bool = Field(default=False)
    review_decision: str = Field(default="")
    merged_at: Optional[int] = Field(default=None)


class UserIssue(SQLModel, table=True):
    __tablename__ = "user_issues"

    user_id: int = Field(foreign_key="users.id", primary_key=True)
    issue_id: int = Field(foreign_key="issues.id", primary_key=True)
