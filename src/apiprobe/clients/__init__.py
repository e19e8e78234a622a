"""Clients for the API under test.

- `ApiClientBase`: logging-enabled request client.
- `UserClient` and `AuthClient`: endpoint-specific clients.
- `ApiClientFactory`: builds clients sharing one HTTP client and recorder.
"""

from .auth import AuthClient
from .base import ApiClientBase
from .factory import ApiClientFactory
from .models import LoginRequest, LoginResponse, User, UsersResponse
from .users import UserClient

__all__ = [
    "ApiClientBase",
    "ApiClientFactory",
    "AuthClient",
    "LoginRequest",
    "LoginResponse",
    "User",
    "UserClient",
    "UsersResponse",
]
