"""Async utilities for detached background tasks.

This module provides helpers for running work in background tasks whose
failures must be observed and logged rather than silently lost, and for
shutting those tasks down cleanly.
"""

import asyncio
import contextlib
import logging
from collections.abc import Callable, Coroutine
from typing import Any

logger = logging.getLogger(__name__)


def _create_done_callback(task_name: str) -> Callable[[asyncio.Task], None]:
    """Create a callback to log the outcome of a background task.

    Args:
        task_name: Name of the task (for logging).

    Returns:
        Callback function that logs unexpected errors.
    """

    def callback(task: asyncio.Task) -> None:
        if task.cancelled():
            logger.debug("Background task cancelled", extra={"task": task_name})
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Background task failed",
                exc_info=exc,
                extra={"task": task_name, "error": str(exc)},
            )

    return callback


def spawn_background(coro: Coroutine[Any, Any, Any], task_name: str) -> asyncio.Task:
    """Schedule `coro` on the running loop with error logging attached.

    Args:
        coro: Coroutine to run detached from the caller.
        task_name: Name used for the task and in log messages.

    Returns:
        The scheduled task.

    Raises:
        RuntimeError: If no event loop is running.
    """
    task = asyncio.get_running_loop().create_task(coro, name=task_name)
    task.add_done_callback(_create_done_callback(task_name))
    return task


async def cancel_task(task: asyncio.Task | None) -> None:
    """Cancel `task` and wait for it to finish.

    Safe to call with None or with a task that has already completed.
    """
    if task is None or task.done():
        return
    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task
