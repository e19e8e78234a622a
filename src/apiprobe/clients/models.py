"""Pydantic models for the user and authentication API.

These models describe the fixed JSON contract of the API under test. Extra
fields are allowed so that additions on the server side never break parsing.

## Models

- `User`: A user record, with nested `Address`, `Hair`, `Bank`, `Company`, `Crypto`.
- `UsersResponse`: Paginated list of users.
- `LoginRequest`: Credentials posted to `/auth/login`.
- `LoginResponse`: Tokens and profile returned by `/auth/login`.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class _ApiModel(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)


class Coordinates(_ApiModel):
    lat: float
    lng: float


class Address(_ApiModel):
    address: str
    city: str
    state: str | None = None
    state_code: str | None = Field(None, alias="stateCode")
    postal_code: str | None = Field(None, alias="postalCode")
    coordinates: Coordinates
    country: str | None = None


class Hair(_ApiModel):
    color: str
    type: str


class Bank(_ApiModel):
    card_expire: str = Field(alias="cardExpire")
    card_number: str = Field(alias="cardNumber")
    card_type: str = Field(alias="cardType")
    currency: str
    iban: str


class Company(_ApiModel):
    department: str
    name: str
    title: str
    address: Address | None = None


class Crypto(_ApiModel):
    coin: str
    wallet: str
    network: str


class User(_ApiModel):
    """A user record.

    Only the identity fields are required; the API returns many more, which
    are kept as typed optional attributes or as extra fields.
    """

    id: int
    first_name: str = Field(alias="firstName")
    last_name: str = Field(alias="lastName")
    maiden_name: str | None = Field(None, alias="maidenName")
    age: int
    gender: str | None = None
    email: str
    phone: str | None = None
    username: str | None = None
    password: str | None = None
    birth_date: str | None = Field(None, alias="birthDate")
    image: str | None = None
    blood_group: str | None = Field(None, alias="bloodGroup")
    height: float | None = None
    weight: float | None = None
    eye_color: str | None = Field(None, alias="eyeColor")
    hair: Hair | None = None
    ip: str | None = None
    address: Address | None = None
    mac_address: str | None = Field(None, alias="macAddress")
    university: str | None = None
    bank: Bank | None = None
    company: Company | None = None
    ein: str | None = None
    ssn: str | None = None
    user_agent: str | None = Field(None, alias="userAgent")
    crypto: Crypto | None = None
    role: str | None = None


class UsersResponse(_ApiModel):
    """Paginated list of users.

    Attributes:
        users: Users on this page.
        total: Total number of users on the server.
        skip: Number of users skipped.
        limit: Page size requested.
    """

    users: list[User]
    total: int
    skip: int
    limit: int


class LoginRequest(_ApiModel):
    username: str
    password: str
    expires_in_mins: int | None = Field(None, alias="expiresInMins")

    def to_payload(self) -> dict[str, object]:
        """Return the JSON body expected by `/auth/login`."""
        return self.model_dump(by_alias=True, exclude_none=True)


class LoginResponse(_ApiModel):
    id: int
    username: str
    email: str
    first_name: str = Field(alias="firstName")
    last_name: str = Field(alias="lastName")
    gender: str | None = None
    image: str | None = None
    access_token: str = Field(alias="accessToken")
    refresh_token: str = Field(alias="refreshToken")
