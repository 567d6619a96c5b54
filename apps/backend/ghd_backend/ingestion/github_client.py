"""GitHub REST and GraphQL client with domain error classification"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import httpx

from ghd_backend.core.errors import (
    CredentialInvalidError,
    PullRequestNotFoundError,
    RateLimitedError,
    RepositoryNotFoundError,
    ResourceNotFoundError,
    TransientError,
    UnknownError,
    UserNotFoundError,
)
from ghd_backend.core.timeutil import format_github_datetime, utc_now

from .parsing import parse_pull_request_detail, parse_rest_user, split_search_nodes
from .queries import PULL_REQUEST_DETAIL_QUERY, USER_ISSUES_SEARCH_QUERY, involvement_search
from .types import GitHubUser, PullRequestDetail, UserUpdate

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"
GITHUB_GRAPHQL_URL = "https://api.github.com/graphql"

RATE_LIMIT_WARNING_THRESHOLD: int = 200


@dataclass
class RateLimitInfo:
    remaining: int
    limit: int
    reset_at: int
    used: int


class GitHubClient:
    """One bearer token per client; use as an async context manager"""

    MAX_RETRIES: int = 3
    RETRY_DELAY_SECONDS: float = 1.0
    TIMEOUT_SECONDS: float = 30.0
    PAGE_SIZE: int = 100
    MAX_PAGES: int = 10

    def __init__(
        self,
        token: str,
        api_url: str = GITHUB_API_URL,
        graphql_url: str = GITHUB_GRAPHQL_URL,
        timeout: float | None = None,
        page_size: int | None = None,
        max_pages: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if not token:
            raise ValueError("GitHub token is required")

        self._token = token
        self._api_url = api_url.rstrip("/")
        self._graphql_url = graphql_url
        self._timeout = timeout or self.TIMEOUT_SECONDS
        self._page_size = page_size or self.PAGE_SIZE
        self._max_pages = max_pages or self.MAX_PAGES
        self._transport = transport
        self._header_rate_limit: RateLimitInfo | None = None
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> GitHubClient:
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(self._timeout),
            headers={
                "Authorization": f"Bearer {self._token}",
                "Accept": "application/vnd.github+json",
                "User-Agent": "ghd",
            },
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Retries server errors and network failures; classifies everything else"""
        if not self._client:
            raise RuntimeError("Client not initialized; use async context manager")

        last_error: Exception | None = None

        for attempt in range(self.MAX_RETRIES):
            try:
                response = await self._client.request(method, url, **kwargs)
            except httpx.TimeoutException as e:
                last_error = TransientError(f"Request timeout: {e}")
                await self._backoff(attempt)
                continue
            except httpx.RequestError as e:
                last_error = TransientError(f"Request failed: {e}")
                await self._backoff(attempt)
                continue

            self._update_header_rate_limit(response)

            if response.status_code >= 500:
                last_error = TransientError(f"Server error: {response.status_code}")
                await self._backoff(attempt)
                continue

            self._raise_for_status(response)
            return response

        raise last_error or TransientError("Max retries exceeded")

    async def _backoff(self, attempt: int) -> None:
        # No wait once the last attempt has failed
        if attempt < self.MAX_RETRIES - 1:
            await asyncio.sleep(self.RETRY_DELAY_SECONDS * (attempt + 1))

    def _raise_for_status(self, response: httpx.Response) -> None:
        status = response.status_code
        if status < 400:
            return

        if status == 401:
            raise CredentialInvalidError("GitHub rejected the token (401)")

        if status == 429 or (status == 403 and self._is_rate_limited(response)):
            reset_at = self._header_rate_limit.reset_at if self._header_rate_limit else None
            raise RateLimitedError(reset_at=reset_at)

        if status == 403:
            raise CredentialInvalidError("GitHub refused the token (403)")

        if status == 404:
            raise ResourceNotFoundError(f"Not found: {response.request.url}")

        raise UnknownError(f"Unexpected status {status} from {response.request.url}")

    def _is_rate_limited(self, response: httpx.Response) -> bool:
        if response.headers.get("x-ratelimit-remaining") == "0":
            return True
        if "retry-after" in response.headers:
            return True
        return "rate limit" in response.text.lower()

    def _decode(self, response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise TransientError(f"Malformed response from GitHub: {e}") from e

    async def rest_get(self, path: str) -> dict[str, Any]:
        url = f"{self._api_url}/{path.lstrip('/')}"
        response = await self._send("GET", url)
        data = self._decode(response)
        if not isinstance(data, dict):
            raise TransientError(f"Unexpected payload from {path}")
        return data

    async def execute_query(
        self,
        query: str,
        variables: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {"query": query}
        if variables:
            payload["variables"] = variables

        response = await self._send("POST", self._graphql_url, json=payload)
        full_response = self._decode(response)
        if not isinstance(full_response, dict):
            raise TransientError("Malformed GraphQL response")

        if full_response.get("errors"):
            self._raise_graphql_errors(full_response["errors"])

        data = full_response.get("data")
        if not isinstance(data, dict):
            raise TransientError("GraphQL response without data")

        self._log_query_cost(data)
        return data

    def _raise_graphql_errors(self, errors: list[dict[str, Any]]) -> None:
        messages = "; ".join(e.get("message", "Unknown") for e in errors)
        types = [e.get("type") for e in errors]

        if "UNAUTHENTICATED" in types or "FORBIDDEN" in types:
            raise CredentialInvalidError(f"GraphQL errors: {messages}")
        if "RATE_LIMITED" in types:
            raise RateLimitedError()
        if "NOT_FOUND" in types:
            path = next((e.get("path") for e in errors if e.get("type") == "NOT_FOUND"), None)
            raise ResourceNotFoundError(f"GraphQL errors: {messages}", path=path)
        raise UnknownError(f"GraphQL errors: {messages}")

    def _update_header_rate_limit(self, response: httpx.Response) -> None:
        try:
            remaining = response.headers.get("x-ratelimit-remaining")
            limit = response.headers.get("x-ratelimit-limit")
            reset_at = response.headers.get("x-ratelimit-reset")
            used = response.headers.get("x-ratelimit-used")

            if all([remaining, limit, reset_at, used]):
                self._header_rate_limit = RateLimitInfo(
                    remaining=int(remaining),
                    limit=int(limit),
                    reset_at=int(reset_at),
                    used=int(used),
                )
                if self._header_rate_limit.remaining < RATE_LIMIT_WARNING_THRESHOLD:
                    logger.warning(
                        f"GitHub REST rate limit low: {remaining} remaining",
                        extra={"remaining": int(remaining), "reset_at": int(reset_at)},
                    )
        except (ValueError, TypeError):
            pass

    def _log_query_cost(self, data: dict[str, Any]) -> None:
        rate_limit = data.get("rateLimit")
        if not rate_limit:
            return
        try:
            remaining = int(rate_limit.get("remaining", 5000))
            cost = int(rate_limit.get("cost", 0))
        except (ValueError, TypeError) as e:
            logger.warning(f"Failed to parse query cost: {e}")
            return

        logger.debug(f"Query cost: {cost} points, {remaining} remaining")
        if remaining < RATE_LIMIT_WARNING_THRESHOLD:
            logger.warning(
                f"GitHub rate limit critically low: {remaining} remaining",
                extra={"remaining": remaining, "reset_at": rate_limit.get("resetAt")},
            )

    async def whoami(self) -> GitHubUser:
        """Identifies the token owner"""
        return parse_rest_user(await self.rest_get("/user"))

    async def get_user(self, login: str) -> GitHubUser:
        try:
            return parse_rest_user(await self.rest_get(f"/users/{login}"))
        except UserNotFoundError:
            raise
        except ResourceNotFoundError as e:
            raise UserNotFoundError(f"GitHub user '{login}' not found") from e

    async def search_user_issues(
        self,
        login: str,
        since: datetime | None = None,
    ) -> UserUpdate:
        """
        Issues and pull requests involving login: everything open when since
        is None, otherwise everything updated at or after since.
        """
        search = involvement_search(
            login, format_github_datetime(since) if since is not None else None
        )
        update = UserUpdate(when=utc_now())
        after: str | None = None

        for page in range(self._max_pages):
            data = await self.execute_query(
                USER_ISSUES_SEARCH_QUERY,
                {"query": search, "first": self._page_size, "after": after},
            )
            result = data.get("search") or {}
            issues, pull_requests = split_search_nodes(result.get("nodes") or [])
            update.issues.extend(issues)
            update.pull_requests.extend(pull_requests)

            page_info = result.get("pageInfo") or {}
            if not page_info.get("hasNextPage"):
                break
            after = page_info.get("endCursor")
        else:
            logger.warning(
                f"Search for '{login}' truncated after {self._max_pages} pages",
                extra={"login": login, "issue_count": result.get("issueCount")},
            )

        update.when = utc_now()
        logger.debug(
            f"Fetched {len(update.issues)} issues, {len(update.pull_requests)} pull requests for {login}",
            extra={"login": login, "since": search},
        )
        return update

    async def get_pull_request_detail(self, owner: str, repo: str, number: int) -> PullRequestDetail:
        try:
            data = await self.execute_query(
                PULL_REQUEST_DETAIL_QUERY,
                {"owner": owner, "name": repo, "number": number},
            )
        except ResourceNotFoundError as e:
            if list(e.path) == ["repository"]:
                raise RepositoryNotFoundError(f"Repository {owner}/{repo} not found") from e
            raise PullRequestNotFoundError(f"Pull request {owner}/{repo}#{number} not found") from e

        repository = data.get("repository")
        if repository is None:
            raise RepositoryNotFoundError(f"Repository {owner}/{repo} not found")
        node = repository.get("pullRequest")
        if node is None:
            raise PullRequestNotFoundError(f"Pull request {owner}/{repo}#{number} not found")
        return parse_pull_request_detail(node)


def make_client_factory(settings):
    """Builds GitHubClient instances configured from settings"""

    def factory(token: str) -> GitHubClient:
        return GitHubClient(
            token,
            api_url=settings.github_api_url,
            graphql_url=settings.github_graphql_url,
            timeout=settings.github_request_timeout_seconds,
            page_size=settings.search_page_size,
            max_pages=settings.search_max_pages,
        )

    return factory
