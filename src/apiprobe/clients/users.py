"""Client for the user endpoints of the API under test."""

from typing import Any

import attrs
import httpx

from .base import ApiClientBase


@attrs.define(frozen=False, slots=True)
class UserClient(ApiClientBase):
    """User listing, search and CRUD operations.

    Every method takes an optional `test_name` that is recorded with the
    call when call logging is enabled.
    """

    async def get_users(
        self,
        limit: int | None = None,
        skip: int | None = None,
        test_name: str | None = None,
    ) -> httpx.Response:
        """List users. `limit` and `skip` are only sent when non-zero."""
        params: dict[str, Any] = {}
        if limit:
            params["limit"] = limit
        if skip:
            params["skip"] = skip
        return await self.get("/users", params=params, test_name=test_name)

    async def get_user_by_id(self, user_id: int, test_name: str | None = None) -> httpx.Response:
        return await self.get(f"/users/{user_id}", test_name=test_name)

    async def search_users(self, query: str, test_name: str | None = None) -> httpx.Response:
        return await self.get("/users/search", params={"q": query}, test_name=test_name)

    async def create_user(self, user_data: dict[str, Any], test_name: str | None = None) -> httpx.Response:
        return await self.post("/users/add", json=user_data, test_name=test_name)

    async def update_user_put(
        self, user_id: int, user_data: dict[str, Any], test_name: str | None = None
    ) -> httpx.Response:
        return await self.put(f"/users/{user_id}", json=user_data, test_name=test_name)

    async def update_user_patch(
        self, user_id: int, user_data: dict[str, Any], test_name: str | None = None
    ) -> httpx.Response:
        return await self.patch(f"/users/{user_id}", json=user_data, test_name=test_name)

    async def delete_user(self, user_id: int, test_name: str | None = None) -> httpx.Response:
        return await self.delete(f"/users/{user_id}", test_name=test_name)
