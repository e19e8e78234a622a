"""Test data for the end-to-end suite.

`UserBuilder` assembles user payloads field by field; `TestDataFactory`
returns the canned payloads and credentials the suite posts to the API.
"""

import os
from typing import Any

from apiprobe.clients.models import LoginRequest


class UserBuilder:
    """Fluent builder of user payloads.

    Example:
        ```python
        payload = UserBuilder().with_first_name("Ada").with_last_name("Lovelace").with_age(36).build()
        # {"firstName": "Ada", "lastName": "Lovelace", "age": 36}
        ```
    """

    def __init__(self) -> None:
        self._user: dict[str, Any] = {}

    def _set(self, key: str, value: Any) -> "UserBuilder":
        self._user[key] = value
        return self

    def with_first_name(self, first_name: str) -> "UserBuilder":
        return self._set("firstName", first_name)

    def with_last_name(self, last_name: str) -> "UserBuilder":
        return self._set("lastName", last_name)

    def with_age(self, age: int) -> "UserBuilder":
        return self._set("age", age)

    def with_gender(self, gender: str) -> "UserBuilder":
        return self._set("gender", gender)

    def with_email(self, email: str) -> "UserBuilder":
        return self._set("email", email)

    def with_phone(self, phone: str) -> "UserBuilder":
        return self._set("phone", phone)

    def with_username(self, username: str) -> "UserBuilder":
        return self._set("username", username)

    def with_password(self, password: str) -> "UserBuilder":
        return self._set("password", password)

    def with_birth_date(self, birth_date: str) -> "UserBuilder":
        return self._set("birthDate", birth_date)

    def with_blood_group(self, blood_group: str) -> "UserBuilder":
        return self._set("bloodGroup", blood_group)

    def with_height(self, height: float) -> "UserBuilder":
        return self._set("height", height)

    def with_weight(self, weight: float) -> "UserBuilder":
        return self._set("weight", weight)

    def build(self) -> dict[str, Any]:
        """Return a copy of every field set so far."""
        return dict(self._user)

    def build_minimal(self) -> dict[str, Any]:
        """Return only the name and age fields that were set."""
        return {k: self._user[k] for k in ("firstName", "lastName", "age") if k in self._user}


class TestDataFactory:
    """Canned payloads for user and authentication tests."""

    __test__ = False

    @staticmethod
    def create_valid_user() -> dict[str, Any]:
        return (
            UserBuilder()
            .with_first_name("John")
            .with_last_name("Doe")
            .with_age(30)
            .with_gender("male")
            .with_email("john.doe@example.com")
            .with_phone("+1234567890")
            .with_username("johndoe")
            .with_password("johndoe123")
            .with_birth_date("1993-01-01")
            .with_blood_group("O+")
            .with_height(175)
            .with_weight(70)
            .build()
        )

    @staticmethod
    def create_minimal_user() -> dict[str, Any]:
        return UserBuilder().with_first_name("Jane").with_last_name("Smith").with_age(25).build_minimal()

    @staticmethod
    def create_user_with_missing_required_fields() -> dict[str, Any]:
        return UserBuilder().with_last_name("Incomplete").with_age(20).build_minimal()

    @staticmethod
    def create_user_with_invalid_age() -> dict[str, Any]:
        return UserBuilder().with_first_name("Invalid").with_last_name("Age").with_age(-5).build()

    @staticmethod
    def create_user_with_invalid_email() -> dict[str, Any]:
        return (
            UserBuilder()
            .with_first_name("Invalid")
            .with_last_name("Email")
            .with_age(30)
            .with_email("invalid-email")
            .build()
        )

    @staticmethod
    def create_valid_login_credentials() -> LoginRequest:
        """Credentials of the valid account, from `API_USERNAME` and `API_PASSWORD`."""
        return LoginRequest(
            username=os.environ.get("API_USERNAME") or "emilys",
            password=os.environ.get("API_PASSWORD") or "emilyspass",
            expires_in_mins=30,
        )

    @staticmethod
    def create_invalid_login_credentials() -> LoginRequest:
        return LoginRequest(username="invaliduser", password="wrongpassword")

    @staticmethod
    def create_login_with_missing_password() -> dict[str, Any]:
        return {"username": "testuser"}
