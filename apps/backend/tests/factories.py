"""Builders and a scripted GitHub stand-in shared by the backend tests."""

from datetime import UTC, datetime

from ghd_backend.core.errors import UserNotFoundError
from ghd_backend.ingestion.types import GitHubUser, IssueData, PullRequestData, UserUpdate

ALICE = GitHubUser(id=1, login="alice", name="Alice", avatar_url="https://avatars/alice")
BOB = GitHubUser(id=2, login="bob", name="", avatar_url="https://avatars/bob")


def make_issue(
    issue_id: int,
    author: str = "alice",
    updated_at: datetime | None = None,
    state: str = "open",
    title: str | None = None,
    is_pull_request: bool = False,
) -> IssueData:
    updated_at = updated_at or datetime(2024, 1, 1, tzinfo=UTC)
    return IssueData(
        id=issue_id,
        number=issue_id % 1000,
        title=title if title is not None else f"Item {issue_id}",
        author=author,
        author_id={"alice": 1, "bob": 2}.get(author, 99),
        url=f"https://github.com/org/repo/issues/{issue_id}",
        repo_owner="org",
        repo_name="repo",
        state=state,
        created_at=datetime(2023, 12, 1, tzinfo=UTC),
        updated_at=updated_at,
        is_pull_request=is_pull_request,
    )


def make_pull_request(issue_id: int, author: str = "alice", **kwargs) -> PullRequestData:
    is_draft = kwargs.pop("is_draft", False)
    review_decision = kwargs.pop("review_decision", "")
    return PullRequestData(
        issue=make_issue(issue_id, author=author, is_pull_request=True, **kwargs),
        is_draft=is_draft,
        review_decision=review_decision,
    )


class FakeGitHub:
    """
    Scripted stand-in for the GitHub API shared by every FakeClient it
    hands out. Records the calls made through it.
    """

    def __init__(self):
        self.owners: dict[str, GitHubUser] = {}
        self.users: dict[str, GitHubUser] = {}
        self.updates: dict[str, list[UserUpdate | Exception]] = {}
        self.details: dict[tuple[str, str, int], object] = {}
        self.whoami_error: Exception | None = None
        self.calls: list[tuple] = []

    def client_factory(self, token: str) -> "FakeClient":
        return FakeClient(self, token)

    def queue_update(self, login: str, result: UserUpdate | Exception) -> None:
        self.updates.setdefault(login, []).append(result)

    def search_calls(self, login: str | None = None) -> list[tuple]:
        return [c for c in self.calls if c[0] == "search" and (login is None or c[2] == login)]


class FakeClient:
    def __init__(self, github: FakeGitHub, token: str):
        self._github = github
        self.token = token

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return None

    async def whoami(self) -> GitHubUser:
        self._github.calls.append(("whoami", self.token))
        if self._github.whoami_error is not None:
            raise self._github.whoami_error
        return self._github.owners[self.token]

    async def get_user(self, login: str) -> GitHubUser:
        self._github.calls.append(("get_user", self.token, login))
        if login not in self._github.users:
            raise UserNotFoundError(f"{login} not found")
        return self._github.users[login]

    async def search_user_issues(self, login: str, since: datetime | None = None) -> UserUpdate:
        self._github.calls.append(("search", self.token, login, since))
        queued = self._github.updates.get(login) or []
        result = queued.pop(0) if queued else UserUpdate(when=datetime.now(UTC))
        if isinstance(result, Exception):
            raise result
        return result

    async def get_pull_request_detail(self, owner: str, repo: str, number: int):
        self._github.calls.append(("detail", self.token, owner, repo, number))
        result = self._github.details[(owner, repo, number)]
        if isinstance(result, Exception):
            raise result
        return result
