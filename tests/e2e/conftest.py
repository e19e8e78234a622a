"""Fixtures for the end-to-end suite against the live API under test.

The harness is set up once per session. With `LOG_API_CALLS=true` every
call made through the clients below is persisted to the log database under
the name of the test that made it.
"""

# pylint: disable=redefined-outer-name

from collections.abc import AsyncIterator, Awaitable, Callable

import httpx
import pytest
import pytest_asyncio

from apiprobe.clients.auth import AuthClient
from apiprobe.clients.factory import ApiClientFactory
from apiprobe.clients.users import UserClient
from apiprobe.config import ApiConfig
from apiprobe.foundation.http import create_async_client
from apiprobe.foundation.logger import configure_logging
from apiprobe.harness import TestRunHarness


@pytest_asyncio.fixture(scope="session")
async def harness() -> AsyncIterator[TestRunHarness]:
    harness = TestRunHarness()
    configure_logging(debug=harness.run_config.debug)
    async with harness.session():
        yield harness


@pytest_asyncio.fixture(scope="session")
async def http() -> AsyncIterator[httpx.AsyncClient]:
    async with create_async_client(timeout_s=ApiConfig.from_env().timeout_s) as client:
        yield client


@pytest.fixture
def clients(harness: TestRunHarness, http: httpx.AsyncClient) -> ApiClientFactory:
    return harness.client_factory(http)


@pytest.fixture
def users(clients: ApiClientFactory) -> UserClient:
    return clients.create_user_client()


@pytest.fixture
def auth(clients: ApiClientFactory) -> AuthClient:
    return clients.create_auth_client()


@pytest.fixture
def test_name(request: pytest.FixtureRequest) -> str:
    """Name recorded with every call the test makes."""
    return request.node.name


@pytest.fixture
def logged_rows(harness: TestRunHarness, test_name: str) -> Callable[[], Awaitable[list[dict]]]:
    """Return a coroutine function fetching this test's log rows.

    Pending entries are flushed first. Returns an empty list when call logging
    is disabled.
    """

    async def fetch() -> list[dict]:
        if not harness.ready:
            return []
        await harness.recorder.flush()
        return await harness.db.fetch_logs(limit=1000, test_name=test_name)

    return fetch
