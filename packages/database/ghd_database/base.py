from sqlmodel import SQLModel

from ghd_database.models.identity import Setting, Token, User, UserRefresh
from ghd_database.models.ingestion import Issue, PullRequest, UserIssue

Base = SQLModel

__all__ = [
    "Base",
    "SQLModel",
    "User",
    "UserRefresh",
    "Token",
    "Setting",
    "Issue",
    "PullRequest",
    "UserIssue",
]
