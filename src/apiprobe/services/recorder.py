"""Background recorder for API call log entries.

The request clients hand every `ApiCallLogEntry` to an `ApiCallRecorder`
instead of writing it themselves. Entries go into a bounded in-memory queue
drained by a single background task, so a slow or broken database never
delays or fails the HTTP call being logged.

## Semantics

- `submit()` never blocks and never raises. A full queue drops the entry and
  reports it at DEBUG level.
- Write failures are contained by `DatabaseManager.log_api_call()`.
- `close()` waits up to a timeout for queued entries to be written, then
  cancels the worker. Entries still queued at that point are discarded.
"""

import asyncio
import logging

import attrs

from apiprobe.core.models import ApiCallLogEntry
from apiprobe.foundation.async_utils import cancel_task, spawn_background

from .database import DatabaseManager

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 1000
DEFAULT_DRAIN_TIMEOUT_S = 10.0


@attrs.define(frozen=False, slots=True)
class ApiCallRecorder:
    """Queue-backed writer of API call log entries.

    Attributes:
        db: Database the entries are written to.
        max_queue_size: Entries held in memory before new ones are dropped.
        drain_timeout_s: Default time `close()` waits for the queue to drain.
    """

    db: DatabaseManager
    max_queue_size: int = DEFAULT_QUEUE_SIZE
    drain_timeout_s: float = DEFAULT_DRAIN_TIMEOUT_S
    _queue: asyncio.Queue[ApiCallLogEntry] | None = attrs.field(init=False, default=None)
    _worker: asyncio.Task | None = attrs.field(init=False, default=None)
    _dropped: int = attrs.field(init=False, default=0)
    _written: int = attrs.field(init=False, default=0)

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    @property
    def dropped(self) -> int:
        """Entries discarded because the queue was full or not started."""
        return self._dropped

    @property
    def written(self) -> int:
        """Entries the database accepted."""
        return self._written

    @property
    def pending(self) -> int:
        return self._queue.qsize() if self._queue is not None else 0

    def start(self) -> None:
        """Start the background worker. Does nothing if already running.

        Raises:
            RuntimeError: If called outside a running event loop.
        """
        if self.running:
            return
        self._queue = asyncio.Queue(maxsize=self.max_queue_size)
        self._worker = spawn_background(self._run(), "api-call-recorder")
        logger.debug("API call recorder started", extra={"max_queue_size": self.max_queue_size})

    def submit(self, entry: ApiCallLogEntry) -> bool:
        """Queue `entry` for writing without waiting.

        Returns:
            True if the entry was queued, False if it was dropped.
        """
        if self._queue is None or not self.running:
            self._dropped += 1
            logger.debug("Recorder not running, dropping API call log", extra={"endpoint": entry.endpoint})
            return False

        try:
            self._queue.put_nowait(entry)
        except asyncio.QueueFull:
            self._dropped += 1
            logger.debug(
                "Recorder queue full, dropping API call log",
                extra={"endpoint": entry.endpoint, "max_queue_size": self.max_queue_size},
            )
            return False
        return True

    async def _run(self) -> None:
        assert self._queue is not None
        queue = self._queue
        while True:
            entry = await queue.get()
            try:
                if await self.db.log_api_call(entry) is not None:
                    self._written += 1
            finally:
                queue.task_done()

    async def flush(self) -> None:
        """Wait until every queued entry has been processed."""
        if self._queue is not None and self.running:
            await self._queue.join()

    async def close(self, timeout_s: float | None = None) -> None:
        """Drain the queue, then stop the worker. Safe to call repeatedly.

        Args:
            timeout_s: Maximum time to wait for the drain. Defaults to
                `drain_timeout_s`.
        """
        if self._worker is None:
            return

        timeout = self.drain_timeout_s if timeout_s is None else timeout_s
        try:
            await asyncio.wait_for(self.flush(), timeout=timeout)
        except TimeoutError:
            logger.warning(
                "Timed out draining API call logs",
                extra={"pending": self.pending, "timeout_s": timeout},
            )

        await cancel_task(self._worker)
        self._worker = None
        self._queue = None
        logger.debug("API call recorder stopped", extra={"written": self._written, "dropped": self._dropped})
