"""Shared fixtures for client tests.

Clients are exercised against an `httpx.MockTransport` whose handler records
every request and returns canned responses, so no network is used.
"""

# pylint: disable=redefined-outer-name

from collections.abc import AsyncIterator, Callable
from unittest.mock import MagicMock

import httpx
import pytest
import pytest_asyncio

from apiprobe.config import ApiConfig
from apiprobe.foundation.http import create_async_client
from apiprobe.services.recorder import ApiCallRecorder

BASE_URL = "https://api.test"


class RecordingHandler:
    """MockTransport handler that records requests and replays responses.

    Attributes:
        requests: Every request received, in order.
        responder: Builds the response for a request. Defaults to 200 `{}`.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.responder: Callable[[httpx.Request], httpx.Response] = lambda request: httpx.Response(200, json={})

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responder(request)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]


@pytest.fixture
def handler() -> RecordingHandler:
    return RecordingHandler()


@pytest_asyncio.fixture
async def http(handler: RecordingHandler) -> AsyncIterator[httpx.AsyncClient]:
    async with create_async_client(transport=httpx.MockTransport(handler)) as client:
        yield client


@pytest.fixture
def api_config() -> ApiConfig:
    return ApiConfig(base_url=BASE_URL, retry_wait_s=0)


@pytest.fixture
def recorder() -> MagicMock:
    """Recorder whose database reports ready."""
    mock = MagicMock(spec=ApiCallRecorder)
    mock.db = MagicMock()
    mock.db.is_ready.return_value = True
    mock.submit.return_value = True
    return mock
