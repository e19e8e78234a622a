"""Domain models for container lifecycle and API call logging.

All classes use `attrs` for concise, correct class definitions.
"""

import datetime
from typing import Any

import attrs


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


@attrs.define(frozen=True, slots=True)
class ContainerInfo:
    """A running container as reported by the container runtime.

    Attributes:
        container_id: Full or short container id.
        host_port: Host port published for the database port, or None when
            the mapping is missing or could not be parsed.
    """

    container_id: str
    host_port: int | None = None

    @property
    def short_id(self) -> str:
        return self.container_id[:12]


@attrs.define(frozen=False, slots=True)
class ContainerHandle:
    """A database container started by this process.

    Attributes:
        container_id: Container id.
        host: Host the database port is published on.
        host_port: Published host port of the database.
        database: Database name configured in the container.
        user: Database user configured in the container.
        password: Database password configured in the container.
        running: False once the container has been stopped.
    """

    container_id: str
    host: str
    host_port: int
    database: str
    user: str
    password: str
    running: bool = True

    @property
    def short_id(self) -> str:
        return self.container_id[:12]

    def connection_env(self) -> dict[str, str]:
        """Return the environment variables describing this database."""
        return {
            "DB_HOST": self.host,
            "DB_PORT": str(self.host_port),
            "DB_NAME": self.database,
            "DB_USER": self.user,
            "DB_PASSWORD": self.password,
        }


@attrs.define(frozen=True, slots=True, kw_only=True)
class ApiCallLogEntry:
    """One attempted HTTP call, as persisted to the `api_logs` table.

    Response fields are None when the call raised instead of returning.

    Attributes:
        endpoint: Endpoint path relative to the API base URL.
        method: HTTP method.
        test_name: Name of the test that issued the call.
        request_headers: Headers sent with the request.
        request_body: JSON body sent with the request.
        response_status: HTTP status code.
        response_headers: Response headers.
        response_body: Parsed JSON body, or the raw text when not JSON.
        execution_time_ms: Wall-clock duration of the call.
        created_at: When the entry was created.
    """

    endpoint: str
    method: str
    test_name: str | None = None
    request_headers: Any = None
    request_body: Any = None
    response_status: int | None = None
    response_headers: Any = None
    response_body: Any = None
    execution_time_ms: int | None = None
    created_at: datetime.datetime = attrs.field(factory=_utcnow)
