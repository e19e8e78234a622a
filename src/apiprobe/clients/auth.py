"""Client for the authentication endpoints of the API under test."""

from typing import Any

import attrs
import httpx

from .base import ApiClientBase
from .models import LoginRequest


@attrs.define(frozen=False, slots=True)
class AuthClient(ApiClientBase):
    """Login, current-user lookup and token refresh."""

    async def login(self, credentials: LoginRequest | dict[str, Any], test_name: str | None = None) -> httpx.Response:
        """Post credentials to `/auth/login`.

        Args:
            credentials: A `LoginRequest`, or a raw dict for malformed-input
                tests (e.g. a missing password).
            test_name: Name of the calling test.
        """
        payload = credentials.to_payload() if isinstance(credentials, LoginRequest) else credentials
        return await self.post("/auth/login", json=payload, test_name=test_name)

    async def get_current_user(self, token: str, test_name: str | None = None) -> httpx.Response:
        return await self.get("/auth/me", headers={"Authorization": f"Bearer {token}"}, test_name=test_name)

    async def refresh_token(self, refresh_token: str, test_name: str | None = None) -> httpx.Response:
        return await self.post("/auth/refresh", json={"refreshToken": refresh_token}, test_name=test_name)
