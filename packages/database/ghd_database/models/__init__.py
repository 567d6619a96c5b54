"""Database models for ghd."""

from ghd_database.models.identity import NEVER_REFRESHED, Setting, Token, User, UserRefresh
from ghd_database.models.ingestion import Issue, PullRequest, UserIssue

__all__ = [
    # Identity
    "User",
    "UserRefresh",
    "Token",
    "Setting",
    "NEVER_REFRESHED",
    # Ingestion
    "Issue",
    "PullRequest",
    "UserIssue",
]
