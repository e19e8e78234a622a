"""Shared HTTP utilities for the API clients.

This module provides a factory for the `httpx.AsyncClient` shared by every
API client in a test run, so timeouts, default headers and connection
pooling are configured in one place.
"""

import httpx

# Default client configuration
DEFAULT_TIMEOUT_S = 30.0
DEFAULT_HEADERS = {"Content-Type": "application/json"}
DEFAULT_MAX_CONNECTIONS = 20


def create_async_client(
    base_url: str = "",
    timeout_s: float = DEFAULT_TIMEOUT_S,
    headers: dict[str, str] | None = None,
    max_connections: int = DEFAULT_MAX_CONNECTIONS,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create an async HTTP client for calls against the API under test.

    Args:
        base_url: Optional base URL. The API clients build absolute URLs
            themselves, so this is usually left empty.
        timeout_s: Timeout applied to every request (default: 30 seconds).
        headers: Extra default headers (default: JSON content type).
        max_connections: Connection pool size.
        transport: Optional transport, used by tests to stub the network.

    Returns:
        Configured httpx.AsyncClient. The caller owns it and must close it.

    Example:
        ```python
        from apiprobe.foundation.http import create_async_client

        async with create_async_client() as client:
            response = await client.get("https://dummyjson.com/users")
        ```
    """
    if headers is None:
        headers = DEFAULT_HEADERS

    return httpx.AsyncClient(
        base_url=base_url,
        timeout=httpx.Timeout(timeout_s),
        headers=headers,
        limits=httpx.Limits(max_connections=max_connections),
        transport=transport,
    )
