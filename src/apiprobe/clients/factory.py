"""Factory for the API clients of one test run."""

import attrs
import httpx

from apiprobe.config import ApiConfig
from apiprobe.services.recorder import ApiCallRecorder

from .auth import AuthClient
from .users import UserClient


@attrs.define(frozen=True, slots=True)
class ApiClientFactory:
    """Create API clients that share one HTTP client and one recorder.

    Attributes:
        http: Shared async HTTP client.
        config: API settings passed to every client.
        recorder: Recorder for call logging, or None to disable it.
        log_api_calls: Whether the created clients log their calls.

    Example:
        ```python
        factory = ApiClientFactory(http=http, recorder=harness.recorder, log_api_calls=True)
        users = factory.create_user_client()
        response = await users.get_users(limit=5, test_name="lists five users")
        ```
    """

    http: httpx.AsyncClient
    config: ApiConfig = attrs.field(factory=ApiConfig.from_env)
    recorder: ApiCallRecorder | None = None
    log_api_calls: bool = False

    def create_user_client(self) -> UserClient:
        return UserClient(http=self.http, config=self.config, recorder=self.recorder, log_api_calls=self.log_api_calls)

    def create_auth_client(self) -> AuthClient:
        return AuthClient(http=self.http, config=self.config, recorder=self.recorder, log_api_calls=self.log_api_calls)
