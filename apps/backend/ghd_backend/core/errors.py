"""
Centralized error definitions and user-friendly message mapping.

The Remote Client raises these after classifying HTTP and GraphQL failures;
the refresh engine branches on them and the API layer renders them.
"""
import logging

from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class GHDError(Exception):
    """Base class for ghd errors with user message and status code."""
    status_code: int = 500
    user_message: str = "Something went wrong. Please try again."

    def __init__(self, detail: str | None = None):
        self.detail = detail
        super().__init__(detail or self.user_message)


class CredentialMissingError(GHDError):
    status_code = 401
    user_message = "Please set a GitHub token"


class CredentialInvalidError(GHDError):
    status_code = 401
    user_message = "GitHub token is invalid or expired; please set a new one"


class ResourceNotFoundError(GHDError):
    status_code = 404
    user_message = "Not found on GitHub"

    def __init__(self, detail: str | None = None, path: list | None = None):
        super().__init__(detail)
        # GraphQL error path, when the failure came from a GraphQL query
        self.path = path or []


class UserNotFoundError(ResourceNotFoundError):
    user_message = "User not found"


class PullRequestNotFoundError(ResourceNotFoundError):
    user_message = "Pull request not found"


class IssueNotFoundError(ResourceNotFoundError):
    user_message = "Issue not found"


class RepositoryNotFoundError(ResourceNotFoundError):
    user_message = "Repository not found"


class UserConflictError(GHDError):
    """A different tracked account already holds the login."""
    status_code = 409
    user_message = "Another tracked GitHub account already uses this login"


class NeverRefreshedError(GHDError):
    """Sentinel for a tracked user that has never been refreshed; always stale."""
    status_code = 409
    user_message = "User has not been refreshed yet"


class TransientError(GHDError):
    status_code = 503
    user_message = "GitHub is unavailable right now. We'll try again shortly."


class RateLimitedError(TransientError):
    user_message = "GitHub is busy. We'll try again shortly."

    def __init__(self, reset_at: int | None = None):
        super().__init__("GitHub API rate limit exceeded")
        self.reset_at = reset_at


class UnknownError(GHDError):
    status_code = 502
    user_message = "Unexpected response from GitHub"


async def ghd_exception_handler(request: Request, exc: GHDError) -> JSONResponse:
    """FastAPI exception handler for GHDError subclasses."""
    logger.warning(
        f"Request error: {type(exc).__name__}, "
        f"path={request.url.path}, detail={exc.detail}"
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.user_message},
    )


__all__ = [
    "GHDError",
    "CredentialMissingError",
    "CredentialInvalidError",
    "ResourceNotFoundError",
    "UserNotFoundError",
    "PullRequestNotFoundError",
    "IssueNotFoundError",
    "RepositoryNotFoundError",
    "UserConflictError",
    "NeverRefreshedError",
    "TransientError",
    "RateLimitedError",
    "UnknownError",
    "ghd_exception_handler",
]
