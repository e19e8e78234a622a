"""Database container lifecycle manager.

This module finds, labels, verifies, or creates the disposable PostgreSQL
container that stores API call logs, and publishes its connection details
into the environment so `DatabaseConfig.from_env()` resolves to it.

## Discovery

1. Running containers carrying the harness label are preferred.
2. Otherwise running containers of the legacy base image are adopted, and
   the label is added on a best-effort basis.
3. A candidate is only reused when its published database port can be
   determined and the runtime confirms it is running. A candidate that fails
   verification is force-removed.

Any discovery failure is logged and treated as "nothing to reuse". Failure
to create a new container raises `ContainerStartupError`.

## Usage

```python
manager = ContainerManager()
handle = await manager.start()   # None when an existing container was reused
...
await manager.stop()
```
"""

import asyncio
import contextlib
import logging
import os
import time
from collections.abc import MutableMapping

import attrs

from apiprobe.config import ENV_DB_INITIALIZED, ContainerConfig, DatabaseConfig, RunConfig
from apiprobe.core.exceptions import ContainerRuntimeError, ContainerStartupError
from apiprobe.core.models import ContainerHandle, ContainerInfo

from .runtime import ContainerRuntime, create_container_runtime

logger = logging.getLogger(__name__)

READY_POLL_INTERVAL_S = 0.5


@attrs.define(frozen=False, slots=True)
class ContainerManager:
    """Start-or-reuse manager for the log database container.

    Attributes:
        config: Container settings (image, label, timeouts).
        runtime: Container runtime adapter. Defaults to the adapter selected
            by `config.runtime`.
        environ: Environment the connection details are read from and
            published to. Defaults to `os.environ`.
    """

    config: ContainerConfig = attrs.field(factory=ContainerConfig.from_env)
    runtime: ContainerRuntime = attrs.field(default=None)
    environ: MutableMapping[str, str] = attrs.field(factory=lambda: os.environ)
    _handle: ContainerHandle | None = attrs.field(init=False, default=None)

    def __attrs_post_init__(self) -> None:
        if self.runtime is None:
            self.runtime = create_container_runtime(self.config)

    @property
    def handle(self) -> ContainerHandle | None:
        """The container started by this manager, if any."""
        return self._handle

    # =========================================================================
    # Discovery
    # =========================================================================

    async def find_existing(self) -> ContainerInfo | None:
        """Find a running container that can be reused.

        Returns:
            The first labelled (or legacy-image) container whose database port
            could be parsed, or None. Runtime failures yield None.
        """
        try:
            candidates = await self.runtime.list_containers(db_port=self.config.db_port, label=self.config.label)
            if not candidates:
                candidates = await self.runtime.list_containers(
                    db_port=self.config.db_port, image=self.config.legacy_image
                )
                if candidates:
                    logger.info(
                        "Found existing PostgreSQL container without label, adding label",
                        extra={"container_id": candidates[0].short_id},
                    )
                    await self._label_legacy(candidates[0])
        except ContainerRuntimeError as e:
            logger.info("Container discovery failed", extra={"error": str(e)})
            return None

        if not candidates:
            return None

        candidate = candidates[0]
        if candidate.host_port is None:
            logger.info(
                "Existing container has no published database port",
                extra={"container_id": candidate.short_id},
            )
            return None

        logger.info(
            "Found existing container",
            extra={"container_id": candidate.short_id, "port": candidate.host_port},
        )
        return candidate

    async def _label_legacy(self, container: ContainerInfo) -> None:
        try:
            await self.runtime.add_label(container.container_id, self.config.label_key, self.config.label_value)
            logger.info("Label added to existing container", extra={"container_id": container.short_id})
        except ContainerRuntimeError as e:
            logger.warning(
                "Could not add label, container will still be reused",
                extra={"container_id": container.short_id, "error": str(e)},
            )

    async def _reuse(self, container: ContainerInfo) -> bool:
        """Verify `container` is running and publish its coordinates.

        Returns:
            True if the container was adopted, False if it was broken and
            has been removed.
        """
        try:
            running = await self.runtime.is_running(container.container_id)
        except ContainerRuntimeError as e:
            logger.warning("Could not inspect existing container", extra={"error": str(e)})
            running = False

        if running:
            db = DatabaseConfig.from_env(self.environ)
            self._publish(
                {
                    "DB_HOST": "localhost",
                    "DB_PORT": str(container.host_port),
                    "DB_NAME": db.database,
                    "DB_USER": db.user,
                    "DB_PASSWORD": db.password,
                }
            )
            logger.info(
                "Reusing existing PostgreSQL container",
                extra={"host": "localhost", "port": container.host_port, "database": db.database},
            )
            return True

        logger.warning(
            "Existing container is not healthy, creating a new one",
            extra={"container_id": container.short_id},
        )
        with contextlib.suppress(ContainerRuntimeError):
            await self.runtime.remove(container.container_id)
        return False

    # =========================================================================
    # Creation
    # =========================================================================

    async def _create(self) -> ContainerHandle:
        db = DatabaseConfig.from_env(self.environ)
        await self._clear_name()

        try:
            info = await self.runtime.run(
                image=self.config.image,
                name=self.config.name,
                environment={
                    "POSTGRES_DB": db.database,
                    "POSTGRES_USER": db.user,
                    "POSTGRES_PASSWORD": db.password,
                },
                labels={self.config.label_key: self.config.label_value},
                db_port=self.config.db_port,
            )
        except ContainerRuntimeError as e:
            msg = f"Failed to start PostgreSQL container: {e}"
            raise ContainerStartupError(msg) from e

        if info.host_port is None:
            msg = f"Container {info.short_id} did not publish port {self.config.db_port}"
            raise ContainerStartupError(msg)

        handle = ContainerHandle(
            container_id=info.container_id,
            host="localhost",
            host_port=info.host_port,
            database=db.database,
            user=db.user,
            password=db.password,
        )
        await self._wait_until_ready(handle)
        return handle

    async def _clear_name(self) -> None:
        """Remove a stopped container left under our name.

        Raises:
            ContainerStartupError: If a container with our name is running.
                It may belong to another run, so it is never removed.
        """
        try:
            running = await self.runtime.is_running(self.config.name)
        except ContainerRuntimeError:
            # No container under that name
            return

        if running:
            msg = (
                f"Container {self.config.name} is already running but could not be reused; "
                "stop it or run `apiprobe db clean`"
            )
            raise ContainerStartupError(msg)

        logger.info("Removing stopped container", extra={"container_name": self.config.name})
        with contextlib.suppress(ContainerRuntimeError):
            await self.runtime.remove(self.config.name)

    async def _wait_until_ready(self, handle: ContainerHandle) -> None:
        """Poll `pg_isready` inside the container until it succeeds.

        Raises:
            ContainerStartupError: If the database is not ready in time.
        """
        command = ["pg_isready", "-h", "127.0.0.1", "-U", handle.user, "-d", handle.database]
        deadline = time.monotonic() + self.config.startup_timeout_s
        while time.monotonic() < deadline:
            try:
                if await self.runtime.exec(handle.container_id, command) == 0:
                    return
            except ContainerRuntimeError as e:
                logger.debug("Readiness probe failed", extra={"error": str(e)})
            await asyncio.sleep(READY_POLL_INTERVAL_S)

        msg = f"PostgreSQL in container {handle.short_id} not ready after {self.config.startup_timeout_s}s"
        raise ContainerStartupError(msg)

    def _publish(self, values: dict[str, str]) -> None:
        self.environ.update(values)
        self.environ[ENV_DB_INITIALIZED] = "true"

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self) -> ContainerHandle | None:
        """Start or reuse the PostgreSQL container.

        Returns:
            None when an existing container was reused (nothing new to
            track), otherwise the handle of the newly created container.

        Raises:
            ContainerStartupError: If a new container cannot be created.
        """
        logger.info("Checking for existing PostgreSQL container")
        existing = await self.find_existing()

        if existing is not None:
            if await self._reuse(existing):
                return None
            logger.info("Could not reuse existing container, creating new one")
        else:
            logger.info("No existing container found, creating new one")

        handle = await self._create()
        self._handle = handle
        self._publish(handle.connection_env())

        logger.info(
            "PostgreSQL container started",
            extra={
                "container_id": handle.short_id,
                "host": handle.host,
                "port": handle.host_port,
                "database": handle.database,
                "keep_running": RunConfig.from_env(self.environ).keep_container_running,
            },
        )
        return handle

    async def stop(self) -> None:
        """Stop the container this manager started.

        Does nothing when KEEP_CONTAINER_RUNNING is set, or when the
        container in use was reused rather than started here.
        """
        if RunConfig.from_env(self.environ).keep_container_running:
            logger.info("Container kept running for debugging (KEEP_CONTAINER_RUNNING=true)")
            return

        if self._handle is None:
            return

        handle = self._handle
        await self.runtime.stop(handle.container_id)
        handle.running = False
        self._handle = None
        logger.info("PostgreSQL container stopped", extra={"container_id": handle.short_id})
