"""Retry utilities with fixed backoff using tenacity.

This module provides the retry behaviour used by the API clients: a bounded
number of extra attempts with a fixed delay, applied only to errors that an
error classifier marks as transient. Everything else fails immediately.

## Components

### ErrorClassifier (Protocol)
What a classifier must answer: retry this error or not, and which fields
to log about it.

### MessageErrorClassifier
Classifier matching an exception type plus a message substring. Used for
transport failures that carry no structured error code.

### create_retry_logger
Builds the `before_sleep` callback that logs each retry as a WARNING.

### AsyncRetryOnError
Class-based async retry utility wrapping `tenacity.AsyncRetrying`.

## Usage

```python
from apiprobe.foundation.retry import AsyncRetryOnError, MessageErrorClassifier

classifier = MessageErrorClassifier(RuntimeError, "client has been closed")
retry = AsyncRetryOnError(classifier=classifier, max_retries=2, wait_seconds=1.0)
response = await retry.call(client.request, "GET", url)
```
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Any, Protocol, TypeVar, runtime_checkable

from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_fixed

T = TypeVar("T")

DEFAULT_MAX_RETRIES = 2
DEFAULT_WAIT_SECONDS = 1.0


@runtime_checkable
class ErrorClassifier(Protocol):
    """Decides which failures `AsyncRetryOnError` retries.

    `is_retriable()` returning False makes the error propagate at once.
    `get_error_details()` adds fields to the retry warning; return an empty
    dict when there is nothing to add.
    """

    def is_retriable(self, exc: BaseException) -> bool: ...

    def get_error_details(self, exc: BaseException) -> dict[str, Any]: ...


class MessageErrorClassifier:
    """Classify an error as retriable by its type and message.

    Attributes:
        exc_type: Exception type (or tuple of types) that may be retried.
        fragment: Substring that must appear in `str(exc)`.
    """

    def __init__(self, exc_type: type[BaseException] | tuple[type[BaseException], ...], fragment: str) -> None:
        self.exc_type = exc_type
        self.fragment = fragment

    def is_retriable(self, exc: BaseException) -> bool:
        return isinstance(exc, self.exc_type) and self.fragment in str(exc)

    def get_error_details(self, exc: BaseException) -> dict[str, Any]:
        return {"error": str(exc)}


def create_retry_logger(
    logger: logging.Logger,
    get_error_details: Callable[[BaseException], dict[str, Any]] | None = None,
    message: str = "Operation failed, retrying",
    max_attempts: int | None = None,
) -> Callable[[Any], None]:
    """Return a tenacity `before_sleep` callback that logs the failed attempt.

    The warning carries `attempt`, `wait_seconds`, `error_type`, the optional
    `max_attempts`, and whatever `get_error_details` returns for the error.
    """

    def log_retry(retry_state: Any) -> None:
        if retry_state.outcome is None or not retry_state.outcome.failed:
            return

        exc = retry_state.outcome.exception()
        wait_time = retry_state.next_action.sleep if retry_state.next_action else 0

        extra: dict[str, Any] = {
            "attempt": retry_state.attempt_number,
            "wait_seconds": round(wait_time, 2),
            "error_type": type(exc).__name__,
        }
        if max_attempts is not None:
            extra["max_attempts"] = max_attempts

        if get_error_details is not None:
            extra.update(get_error_details(exc))

        logger.warning(message, extra=extra)

    return log_retry


class AsyncRetryOnError:
    """Retry an awaitable a bounded number of times on classified errors.

    Attributes:
        classifier: Decides which exceptions are retried.
        max_retries: Extra attempts after the first one (default: 2).
        wait_seconds: Fixed delay between attempts (default: 1.0).
        logger: Logger for retry attempts.

    Note:
        Errors the classifier rejects propagate on the first attempt. After
        the last retry the final error is re-raised unchanged.
    """

    def __init__(
        self,
        classifier: ErrorClassifier,
        max_retries: int = DEFAULT_MAX_RETRIES,
        wait_seconds: float = DEFAULT_WAIT_SECONDS,
        logger: logging.Logger | None = None,
    ) -> None:
        self.classifier = classifier
        self.max_retries = max_retries
        self.wait_seconds = wait_seconds
        self.logger = logger or logging.getLogger(__name__)

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_fixed(self.wait_seconds),
            retry=retry_if_exception(self.classifier.is_retriable),
            before_sleep=create_retry_logger(
                self.logger,
                self.classifier.get_error_details,
                "Request failed, retrying",
                max_attempts=self.max_attempts,
            ),
            reraise=True,
        )

    async def call(self, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """Await `func(*args, **kwargs)` with retry logic.

        Args:
            func: Coroutine function to call.
            *args: Positional arguments to pass to func.
            **kwargs: Keyword arguments to pass to func.

        Returns:
            Result of the first successful attempt.

        Raises:
            Exception: The first non-retriable error, or the last retriable
                error once all attempts are used.
        """
        result: T = await self._retrying()(func, *args, **kwargs)
        return result
