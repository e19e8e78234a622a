"""Setup and teardown of the API call logging pipeline for one test run.

`TestRunHarness` owns the one `ContainerManager`, `DatabaseManager` and
`ApiCallRecorder` of a run and wires them together. The end-to-end test
session calls `setup()` once before the first test and `teardown()` once
after the last.

## Setup (only when `LOG_API_CALLS=true`)

1. Start or reuse the PostgreSQL container.
2. Wait `CONTAINER_SETTLE_SECONDS` for it to settle.
3. Initialize the connection pool, schema and `api_logs` table.
4. Start the background recorder.

Any failure aborts the run with `SetupError` after logging troubleshooting
steps.

## Teardown

Drains the recorder, closes the pool, then stops the container unless
`KEEP_CONTAINER_RUNNING=true`. Failures are logged and never raised.
"""

import asyncio
import logging
import os
from collections.abc import AsyncIterator, MutableMapping
from contextlib import asynccontextmanager

import attrs
import httpx

from apiprobe.clients.factory import ApiClientFactory
from apiprobe.config import ApiConfig, ContainerConfig, DatabaseConfig, RunConfig
from apiprobe.core.exceptions import SetupError
from apiprobe.services.container import ContainerManager
from apiprobe.services.database import DatabaseManager
from apiprobe.services.recorder import ApiCallRecorder

logger = logging.getLogger(__name__)

BANNER = "=" * 40

TROUBLESHOOTING = (
    "1. Check that the container runtime is running (docker info)",
    "2. Check that Docker is accessible: docker ps",
    "3. Try restarting the container runtime",
    "4. Check for port conflicts on 5432: lsof -i :5432",
)


@attrs.define(frozen=False, slots=True)
class TestRunHarness:
    """Services of one test run and their setup and teardown.

    Attributes:
        environ: Environment the run flags and connection details are read
            from. The container manager publishes the database port into it.
        containers: Container lifecycle manager.
        db: Connection pool manager.
        recorder: Background writer of API call logs.
    """

    __test__ = False

    environ: MutableMapping[str, str] = attrs.field(factory=lambda: os.environ)
    containers: ContainerManager = attrs.field(default=None)
    db: DatabaseManager = attrs.field(default=None)
    recorder: ApiCallRecorder = attrs.field(default=None)
    _ready: bool = attrs.field(init=False, default=False)

    def __attrs_post_init__(self) -> None:
        run = self.run_config
        if self.containers is None:
            self.containers = ContainerManager(config=ContainerConfig.from_env(self.environ), environ=self.environ)
        if self.db is None:
            self.db = DatabaseManager(environ=self.environ)
        if self.recorder is None:
            self.recorder = ApiCallRecorder(
                db=self.db,
                max_queue_size=run.log_queue_size,
                drain_timeout_s=run.log_drain_timeout_s,
            )

    @property
    def run_config(self) -> RunConfig:
        return RunConfig.from_env(self.environ)

    @property
    def ready(self) -> bool:
        """True once setup has completed with call logging active."""
        return self._ready

    async def setup(self) -> None:
        """Bring up the logging pipeline if call logging is enabled.

        Raises:
            SetupError: If the container, the database or the recorder could
                not be started.
        """
        run = self.run_config
        logger.info(BANNER)
        logger.info("GLOBAL SETUP - Starting test environment")
        logger.info(
            "Configuration",
            extra={"log_api_calls": run.log_api_calls, "keep_container_running": run.keep_container_running},
        )

        if not run.log_api_calls:
            logger.info("API logging disabled, skipping database setup. Set LOG_API_CALLS=true to enable it.")
            return

        try:
            logger.info("Step 1: Setting up PostgreSQL container")
            await self.containers.start()
            await asyncio.sleep(self.containers.config.settle_seconds)

            config = DatabaseConfig.from_env(self.environ)
            logger.info("Step 2: Initializing database schema", extra={"host": config.host, "port": config.port})
            await self.db.initialize()

            logger.info("Step 3: Starting API call recorder")
            self.recorder.start()

            if self.db.is_ready():
                logger.info("Database is ready for logging")
            else:
                logger.warning("Database initialization completed but not ready")
        except Exception as e:
            logger.error(
                "GLOBAL SETUP FAILED",
                extra={"error": str(e), "troubleshooting": list(TROUBLESHOOTING)},
            )
            msg = f"Test run setup failed: {e}"
            raise SetupError(msg) from e

        self._ready = True
        logger.info("GLOBAL SETUP COMPLETED SUCCESSFULLY")
        if run.keep_container_running:
            logger.info("Container will stay running after tests. Stop it with: apiprobe db stop")
        logger.info(BANNER)

    async def teardown(self) -> None:
        """Flush logs, close the pool and stop the container. Never raises."""
        run = self.run_config
        logger.info(BANNER)
        logger.info("GLOBAL TEARDOWN - Cleaning up")

        if not run.log_api_calls:
            logger.info("API logging was disabled, no cleanup needed")
            return

        try:
            logger.info("Step 1: Flushing API call logs")
            await self.recorder.close()

            logger.info("Step 2: Closing database connections")
            await self.db.close()

            if run.keep_container_running:
                logger.info(
                    "Step 3: Container kept running for debugging (KEEP_CONTAINER_RUNNING=true). "
                    "Inspect logs with: apiprobe db logs"
                )
            else:
                logger.info("Step 3: Stopping container")
                await self.containers.stop()
        except Exception as e:
            logger.error(
                "GLOBAL TEARDOWN FAILED",
                extra={"error": str(e), "hint": "Clean up manually with: apiprobe db clean"},
            )
            return
        finally:
            self._ready = False

        logger.info("GLOBAL TEARDOWN COMPLETED")

    def client_factory(self, http: httpx.AsyncClient, config: ApiConfig | None = None) -> ApiClientFactory:
        """Return a client factory whose clients log through this run's recorder."""
        return ApiClientFactory(
            http=http,
            config=config or ApiConfig.from_env(self.environ),
            recorder=self.recorder,
            log_api_calls=self.run_config.log_api_calls,
        )

    @asynccontextmanager
    async def session(self) -> AsyncIterator["TestRunHarness"]:
        """Run `setup()` on entry and `teardown()` on exit."""
        await self.setup()
        try:
            yield self
        finally:
            await self.teardown()
