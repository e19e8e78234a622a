"""End-to-end tests for the authentication endpoints.

# Test Coverage

The tests cover:
  - Login with valid, invalid and incomplete credentials
  - GET /auth/me with valid, invalid and missing tokens
  - Token refresh with valid and invalid refresh tokens

# Running Tests

Requires network access to the API under test. Run with:
    pytest -m e2e tests/e2e/test_authentication.py
"""

# pylint: disable=redefined-outer-name

from collections.abc import Awaitable, Callable
from typing import Any

import pytest
import pytest_asyncio

from apiprobe.clients.auth import AuthClient
from apiprobe.clients.models import LoginResponse
from apiprobe.testing import TestDataFactory

pytestmark = [pytest.mark.e2e, pytest.mark.asyncio]


@pytest_asyncio.fixture
async def session_tokens(auth: AuthClient, test_name: str) -> LoginResponse:
    """Log in with the valid account and return the tokens."""
    response = await auth.login(TestDataFactory.create_valid_login_credentials(), test_name=f"{test_name} (login)")
    assert response.status_code == 200
    return LoginResponse.model_validate(response.json())


# =============================================================================
# Login
# =============================================================================


class TestLogin:
    """Test suite for POST /auth/login."""

    async def test_valid_credentials(self, auth: AuthClient, test_name: str) -> None:
        credentials = TestDataFactory.create_valid_login_credentials()

        response = await auth.login(credentials, test_name=test_name)

        assert response.status_code == 200
        login = LoginResponse.model_validate(response.json())
        assert login.username == credentials.username
        assert login.access_token
        assert login.refresh_token
        assert login.email
        assert login.first_name
        assert login.last_name

    async def test_invalid_credentials_are_rejected(
        self,
        auth: AuthClient,
        test_name: str,
        logged_rows: Callable[[], Awaitable[list[dict]]],
    ) -> None:
        """Test the rejected login and its log row.

        **What it tests:**
          - 400 with a `message` in the error body
          - With call logging on, one new row with status 400
        """
        before = len(await logged_rows())

        response = await auth.login(TestDataFactory.create_invalid_login_credentials(), test_name=test_name)

        assert response.status_code == 400
        assert "message" in response.json()

        rows = await logged_rows()
        if rows or before:
            assert len(rows) == before + 1
            assert rows[0]["response_status"] == 400

    @pytest.mark.parametrize(
        "credentials",
        [
            TestDataFactory.create_login_with_missing_password(),
            {"username": "", "password": ""},
            {"username": "", "password": "somepassword"},
        ],
        ids=["missing-password", "empty", "missing-username"],
    )
    async def test_incomplete_credentials_are_rejected(
        self, auth: AuthClient, test_name: str, credentials: dict[str, Any]
    ) -> None:
        response = await auth.login(credentials, test_name=test_name)

        assert response.status_code in (400, 422)


# =============================================================================
# Current user
# =============================================================================


class TestCurrentUser:
    """Test suite for GET /auth/me."""

    async def test_valid_token(self, auth: AuthClient, test_name: str, session_tokens: LoginResponse) -> None:
        response = await auth.get_current_user(session_tokens.access_token, test_name=test_name)

        assert response.status_code == 200
        me = response.json()
        assert me["id"] == session_tokens.id
        assert me["username"] == session_tokens.username
        assert "email" in me

    async def test_invalid_token(self, auth: AuthClient, test_name: str) -> None:
        response = await auth.get_current_user("invalid.token.here", test_name=test_name)

        assert response.status_code in (401, 500)

    async def test_missing_token(self, auth: AuthClient, test_name: str) -> None:
        response = await auth.get_current_user("", test_name=test_name)

        assert response.status_code in (401, 403)


# =============================================================================
# Token refresh
# =============================================================================


class TestTokenRefresh:
    """Test suite for POST /auth/refresh."""

    async def test_valid_refresh_token(self, auth: AuthClient, test_name: str, session_tokens: LoginResponse) -> None:
        response = await auth.refresh_token(session_tokens.refresh_token, test_name=test_name)

        assert response.status_code == 200
        refreshed = response.json()
        assert refreshed["accessToken"]
        assert refreshed["refreshToken"]

    async def test_invalid_refresh_token(self, auth: AuthClient, test_name: str) -> None:
        response = await auth.refresh_token("invalid.refresh.accessToken", test_name=test_name)

        assert response.status_code in (400, 401, 403)
