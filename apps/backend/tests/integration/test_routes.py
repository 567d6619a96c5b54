"""Integration tests for the API routes with a mocked command facade."""
from unittest.mock import AsyncMock, MagicMock

import pytest
from factories import ALICE, BOB
from fastapi.testclient import TestClient

from ghd_backend.core.errors import (
    CredentialInvalidError,
    CredentialMissingError,
    IssueNotFoundError,
    PullRequestNotFoundError,
    TransientError,
    UserConflictError,
    UserNotFoundError,
)
from ghd_backend.ingestion.persistence import IssueEntry, IssueKind
from ghd_backend.ingestion.types import Label, PullRequestDetail
from ghd_backend.main import create_app
from ghd_backend.services.credential_service import CredentialStatus
from ghd_backend.services.github_service import GithubService
from ghd_backend.services.refresh_service import RefreshOutcome


@pytest.fixture
def service():
    return AsyncMock(spec=GithubService)


@pytest.fixture
def client(service):
    state = MagicMock()
    state.settings.cors_origin_list = ["tauri://localhost"]
    app = create_app(state=state, service=service)
    return TestClient(app, raise_server_exceptions=False)


def entry(issue_id: int, **overrides) -> IssueEntry:
    fields = {
        "id": issue_id,
        "number": issue_id,
        "title": f"Item {issue_id}",
        "author": "alice",
        "author_id": 1,
        "url": f"https://github.com/org/repo/pull/{issue_id}",
        "repo_owner": "org",
        "repo_name": "repo",
        "state": "open",
        "created_at": 1700000000,
        "updated_at": 1700000100,
        "is_pull_request": True,
        "is_draft": False,
        "review_decision": "APPROVED",
    }
    fields.update(overrides)
    return IssueEntry(**fields)


class TestHealth:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_cors_uses_state_settings(self, client):
        allowed = client.get("/health", headers={"Origin": "tauri://localhost"})
        other = client.get("/health", headers={"Origin": "http://localhost:1420"})

        assert allowed.headers["access-control-allow-origin"] == "tauri://localhost"
        assert "access-control-allow-origin" not in other.headers


class TestTokenRoutes:

    def test_set_token_returns_owner(self, client, service):
        service.set_token.return_value = ALICE

        response = client.post("/token", json={"token": "  ghp_abc  "})

        assert response.status_code == 200
        assert response.json()["login"] == "alice"
        service.set_token.assert_awaited_once_with("ghp_abc")

    def test_rejected_token(self, client, service):
        service.set_token.side_effect = CredentialInvalidError("401 from GitHub")

        response = client.post("/token", json={"token": "ghp_bad"})

        assert response.status_code == 401
        assert response.json() == {"detail": CredentialInvalidError.user_message}

    def test_owner_login_taken_by_another_account(self, client, service):
        service.set_token.side_effect = UserConflictError("bob is tracked as 2")

        response = client.post("/token", json={"token": "ghp_new_bob"})

        assert response.status_code == 409
        assert response.json() == {"detail": UserConflictError.user_message}

    def test_empty_token_is_rejected(self, client, service):
        response = client.post("/token", json={"token": ""})

        assert response.status_code == 422
        service.set_token.assert_not_awaited()

    def test_status(self, client, service):
        service.get_token_status.return_value = CredentialStatus(
            status="valid", hint="ghp_...abcd", login="alice"
        )

        response = client.get("/token")

        assert response.json() == {"status": "valid", "hint": "ghp_...abcd", "login": "alice"}


class TestUserRoutes:

    def test_main_user(self, client, service):
        service.get_main_user.return_value = ALICE

        response = client.get("/users/me")

        assert response.json() == ALICE.to_dict()

    def test_main_user_missing(self, client, service):
        service.get_main_user.side_effect = UserNotFoundError("no token")

        assert client.get("/users/me").status_code == 404

    def test_list_users(self, client, service):
        service.list_users.return_value = [ALICE, BOB]

        response = client.get("/users")

        assert [u["login"] for u in response.json()] == ["alice", "bob"]

    def test_track_user(self, client, service):
        service.track_user.return_value = BOB

        response = client.post("/users", json={"login": "bob"})

        assert response.status_code == 200
        assert response.json()["id"] == BOB.id
        service.track_user.assert_awaited_once_with("bob")

    @pytest.mark.parametrize("login", ["", "not a login", "x" * 40])
    def test_track_user_validates_login(self, client, service, login):
        response = client.post("/users", json={"login": login})

        assert response.status_code == 422
        service.track_user.assert_not_awaited()

    def test_track_user_without_token(self, client, service):
        service.track_user.side_effect = CredentialMissingError("no token")

        response = client.post("/users", json={"login": "bob"})

        assert response.status_code == 401
        assert response.json() == {"detail": CredentialMissingError.user_message}

    def test_exists(self, client, service):
        service.user_exists.return_value = False

        response = client.get("/users/nobody/exists")

        assert response.json() == {"login": "nobody", "exists": False}

    def test_refresh(self, client, service):
        service.refresh_user.return_value = RefreshOutcome.UPDATED

        response = client.post("/users/alice/refresh")

        assert response.json() == {"login": "alice", "outcome": "updated"}

    def test_refresh_untracked(self, client, service):
        service.refresh_user.return_value = RefreshOutcome.NOT_TRACKED

        assert client.post("/users/carol/refresh").status_code == 404


class TestIssueRoutes:

    def test_authored_feed(self, client, service):
        service.get_issues_by_author.return_value = [entry(11), entry(10, is_pull_request=False)]

        response = client.get("/issues/authored/alice")

        assert [item["id"] for item in response.json()] == [11, 10]
        service.get_issues_by_author.assert_awaited_once_with("alice", IssueKind.ALL)

    def test_involved_feed_with_kind(self, client, service):
        service.get_involved_issues.return_value = []

        response = client.get("/issues/involved/alice", params={"kind": "pull_request"})

        assert response.status_code == 200
        service.get_involved_issues.assert_awaited_once_with("alice", IssueKind.PULL_REQUEST)

    def test_unknown_kind(self, client, service):
        assert client.get("/issues/authored/alice", params={"kind": "bogus"}).status_code == 422

    def test_get_issue(self, client, service):
        service.get_issue.return_value = entry(11, last_viewed=1700000200)

        body = client.get("/issues/11").json()

        assert body["last_viewed"] == 1700000200
        assert body["review_decision"] == "APPROVED"

    def test_get_missing_issue(self, client, service):
        service.get_issue.side_effect = IssueNotFoundError("999")

        response = client.get("/issues/999")

        assert response.status_code == 404
        assert response.json() == {"detail": IssueNotFoundError.user_message}

    def test_pull_request_detail(self, client, service):
        service.get_pull_request_detail.return_value = PullRequestDetail(
            number=11,
            title="Add feature",
            body_html="<p>hi</p>",
            author=ALICE,
            repo_owner="org",
            repo_name="repo",
            url="https://github.com/org/repo/pull/11",
            state="OPEN",
            is_draft=True,
            labels=[Label(name="bug", color="d73a4a")],
        )

        body = client.get("/issues/11/pull-request").json()

        assert body["author"]["login"] == "alice"
        assert body["labels"] == [{"name": "bug", "color": "d73a4a"}]
        assert body["milestone"] is None

    def test_pull_request_detail_of_issue(self, client, service):
        service.get_pull_request_detail.side_effect = PullRequestNotFoundError("10")

        assert client.get("/issues/10/pull-request").status_code == 404

    def test_github_unavailable(self, client, service):
        service.get_pull_request_detail.side_effect = TransientError("timeout")

        assert client.get("/issues/11/pull-request").status_code == 503

    def test_mark_viewed(self, client, service):
        response = client.post("/issues/11/viewed")

        assert response.json() == {"id": 11, "ok": True}
        service.mark_viewed.assert_awaited_once_with(11)

    def test_archive_missing(self, client, service):
        service.archive_issue.side_effect = IssueNotFoundError("999")

        assert client.post("/issues/999/archive").status_code == 404

    def test_bulk_viewed(self, client, service):
        service.mark_viewed_many.return_value = 2

        response = client.post("/issues/viewed", json={"ids": [10, 11]})

        assert response.json() == {"updated": 2}

    def test_bulk_archive(self, client, service):
        service.archive_issues.return_value = 1

        response = client.post("/issues/archive", json={"ids": [10]})

        assert response.json() == {"updated": 1}
        service.archive_issues.assert_awaited_once_with([10])

    @pytest.mark.parametrize("ids", [[], list(range(501))])
    def test_bulk_limits(self, client, service, ids):
        assert client.post("/issues/archive", json={"ids": ids}).status_code == 422
        service.archive_issues.assert_not_awaited()
