"""Unit tests for the error taxonomy and its HTTP rendering"""

import json
from unittest.mock import MagicMock

import pytest

from ghd_backend.core.errors import (
    CredentialInvalidError,
    CredentialMissingError,
    GHDError,
    IssueNotFoundError,
    NeverRefreshedError,
    RateLimitedError,
    RepositoryNotFoundError,
    ResourceNotFoundError,
    TransientError,
    UnknownError,
    UserNotFoundError,
    ghd_exception_handler,
)


class TestTaxonomy:

    @pytest.mark.parametrize(
        "error_class",
        [UserNotFoundError, IssueNotFoundError, RepositoryNotFoundError],
    )
    def test_not_found_family(self, error_class):
        assert issubclass(error_class, ResourceNotFoundError)
        assert error_class.status_code == 404

    def test_credential_errors_are_unauthorized(self):
        assert CredentialMissingError.status_code == 401
        assert CredentialInvalidError.status_code == 401

    def test_rate_limit_keeps_reset_timestamp(self):
        error = RateLimitedError(reset_at=1704067200)
        assert isinstance(error, TransientError)
        assert error.reset_at == 1704067200

    def test_detail_defaults_to_user_message(self):
        assert str(UnknownError()) == UnknownError.user_message
        assert str(NeverRefreshedError("user 1")) == "user 1"

    def test_not_found_carries_graphql_path(self):
        assert ResourceNotFoundError("x", path=["repository"]).path == ["repository"]
        assert ResourceNotFoundError("x").path == []


class TestExceptionHandler:

    async def test_renders_user_message_and_status(self):
        request = MagicMock()
        request.url.path = "/users/me"

        response = await ghd_exception_handler(request, UserNotFoundError("internal detail"))

        assert response.status_code == 404
        assert json.loads(response.body) == {"detail": UserNotFoundError.user_message}

    async def test_base_error_is_server_error(self):
        request = MagicMock()
        response = await ghd_exception_handler(request, GHDError())
        assert response.status_code == 500
