"""Logging-enabled request client.

`ApiClientBase` is the single path every call to the API under test goes
through. It builds the URL, applies the request timeout, retries the one
transient transport failure worth retrying, and hands a description of the
call to the `ApiCallRecorder` when call logging is enabled.

## Retry

Only a `RuntimeError` whose message contains `"client has been closed"`
(the shared HTTP client was torn down concurrently) is retried, at most
`ApiConfig.max_retries` more times with a fixed `ApiConfig.retry_wait_s`
delay. Every other error propagates on the first attempt.

## Call logging

When `log_api_calls` is set and the recorder's database reports ready, one
`ApiCallLogEntry` is submitted per call, including calls that raised (with
the response fields left empty). Building or submitting the entry can never
change the response returned to the caller or the error raised to it.
"""

import logging
import time
from collections.abc import Mapping
from typing import Any

import attrs
import httpx

from apiprobe.config import ApiConfig
from apiprobe.core.models import ApiCallLogEntry
from apiprobe.foundation.retry import AsyncRetryOnError, MessageErrorClassifier
from apiprobe.services.recorder import ApiCallRecorder

CLIENT_CLOSED_FRAGMENT = "client has been closed"
UNPARSABLE_BODY = "Unable to parse response"


class LoggerMixin:
    """Gives every subclass a `_logger` named after the module it is defined in."""

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        cls._logger = logging.getLogger(cls.__module__)  # type: ignore[attr-defined]


def read_response_body(response: httpx.Response) -> Any:
    """Return the JSON body of `response`, its text, or a placeholder."""
    try:
        return response.json()
    except ValueError:
        pass
    try:
        return response.text
    except Exception:
        return UNPARSABLE_BODY


@attrs.define(frozen=False, slots=True)
class ApiClientBase(LoggerMixin):
    """Base class for clients of the API under test.

    Attributes:
        http: Shared async HTTP client. The caller owns and closes it.
        config: API settings (base URL, timeout, retry policy).
        recorder: Recorder that receives call log entries. Calls are not
            logged when None.
        log_api_calls: Whether calls are logged at all.

    Example:
        ```python
        async with create_async_client() as http:
            client = ApiClientBase(http=http, config=ApiConfig.from_env())
            response = await client.get("/users", params={"limit": 5}, test_name="lists users")
        ```
    """

    http: httpx.AsyncClient
    config: ApiConfig = attrs.field(factory=ApiConfig.from_env)
    recorder: ApiCallRecorder | None = None
    log_api_calls: bool = False
    _retry: AsyncRetryOnError = attrs.field(init=False)

    def __attrs_post_init__(self) -> None:
        self._retry = AsyncRetryOnError(
            classifier=MessageErrorClassifier(RuntimeError, CLIENT_CLOSED_FRAGMENT),
            max_retries=self.config.max_retries,
            wait_seconds=self.config.retry_wait_s,
            logger=self._logger,
        )

    def build_url(self, endpoint: str, params: Mapping[str, Any] | None = None) -> str:
        """Join the base URL and `endpoint`, appending `params` as a query string."""
        url = f"{self.config.base_url.rstrip('/')}{endpoint}"
        if params:
            return str(httpx.URL(url, params={k: str(v) for k, v in params.items()}))
        return url

    async def request(
        self,
        method: str,
        endpoint: str,
        *,
        headers: Mapping[str, str] | None = None,
        json: Any = None,
        params: Mapping[str, Any] | None = None,
        test_name: str | None = None,
    ) -> httpx.Response:
        """Send one request and return the response unchanged.

        Args:
            method: HTTP method.
            endpoint: Path relative to the API base URL, e.g. `/users/1`.
            headers: Extra request headers.
            json: JSON request body.
            params: Query parameters.
            test_name: Name of the calling test, recorded with the call.

        Returns:
            The HTTP response, whatever its status code.

        Raises:
            httpx.HTTPError: On transport failures.
            RuntimeError: If the HTTP client is closed and stays closed
                through every retry.
        """
        url = self.build_url(endpoint, params)
        start = time.perf_counter()
        try:
            response = await self._retry.call(
                self.http.request,
                method,
                url,
                headers=dict(headers) if headers else None,
                json=json,
                timeout=self.config.timeout_s,
            )
        except Exception as e:
            self._logger.error(
                "API call failed",
                extra={"method": method, "endpoint": endpoint, "error": str(e)},
            )
            self._record(method, endpoint, headers, json, test_name, None, start)
            raise

        self._record(method, endpoint, headers, json, test_name, response, start)
        return response

    def _should_log(self) -> bool:
        return self.log_api_calls and self.recorder is not None and self.recorder.db.is_ready()

    def _record(
        self,
        method: str,
        endpoint: str,
        headers: Mapping[str, str] | None,
        body: Any,
        test_name: str | None,
        response: httpx.Response | None,
        start: float,
    ) -> None:
        execution_time_ms = int((time.perf_counter() - start) * 1000)
        try:
            if not self._should_log():
                return
            entry = ApiCallLogEntry(
                endpoint=endpoint,
                method=method,
                test_name=test_name,
                request_headers=dict(headers) if headers is not None else None,
                request_body=body,
                response_status=response.status_code if response is not None else None,
                response_headers=dict(response.headers) if response is not None else None,
                response_body=read_response_body(response) if response is not None else None,
                execution_time_ms=execution_time_ms,
            )
            self.recorder.submit(entry)  # type: ignore[union-attr]
        except Exception as e:
            self._logger.debug("Failed to log API call", extra={"endpoint": endpoint, "error": str(e)})

    async def get(self, endpoint: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", endpoint, **kwargs)

    async def post(self, endpoint: str, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", endpoint, **kwargs)

    async def put(self, endpoint: str, **kwargs: Any) -> httpx.Response:
        return await self.request("PUT", endpoint, **kwargs)

    async def patch(self, endpoint: str, **kwargs: Any) -> httpx.Response:
        return await self.request("PATCH", endpoint, **kwargs)

    async def delete(self, endpoint: str, **kwargs: Any) -> httpx.Response:
        return await self.request("DELETE", endpoint, **kwargs)
