"""Container runtime adapters.

The container lifecycle manager talks to the container runtime only through
the `ContainerRuntime` protocol defined here, so it never sees raw command
output or SDK objects.

## Adapters

- `DockerSdkRuntime`: Uses the structured Docker SDK (default). Blocking SDK
  calls run in a worker thread so they never stall the event loop.
- `DockerCliRuntime`: Shells out to the `docker` (or compatible) CLI and
  parses its fixed-format output line by line. Useful where only the CLI is
  available, e.g. a remote context configured for the CLI alone.

Every adapter method raises `ContainerRuntimeError` on failure.
"""

import asyncio
import logging
import re
from typing import Any, Protocol, runtime_checkable

import docker
import docker.errors
import requests

from apiprobe.config import ContainerConfig
from apiprobe.core.exceptions import ContainerRuntimeError
from apiprobe.core.models import ContainerInfo

logger = logging.getLogger(__name__)


@runtime_checkable
class ContainerRuntime(Protocol):
    """Typed interface to the container runtime."""

    async def version(self) -> str:
        """Return the runtime server version."""
        ...

    async def list_containers(
        self,
        *,
        db_port: int,
        label: str | None = None,
        image: str | None = None,
        include_stopped: bool = False,
    ) -> list[ContainerInfo]:
        """List containers filtered by label (`key=value`) or by base image."""
        ...

    async def add_label(self, container_id: str, key: str, value: str) -> None:
        """Attach a label to an existing container."""
        ...

    async def is_running(self, container_id: str) -> bool:
        """Return True if the container is running.

        `container_id` may also be a container name. Raises
        `ContainerRuntimeError` if no such container exists.
        """
        ...

    async def run(
        self,
        *,
        image: str,
        name: str,
        environment: dict[str, str],
        labels: dict[str, str],
        db_port: int,
    ) -> ContainerInfo:
        """Start a detached container publishing `db_port` on a random host port."""
        ...

    async def exec(self, container_id: str, command: list[str]) -> int:
        """Run a command inside the container and return its exit code."""
        ...

    async def stop(self, container_id: str) -> None:
        """Stop a container."""
        ...

    async def remove(self, container_id: str) -> None:
        """Forcibly remove a container, running or not."""
        ...


# =============================================================================
# Docker SDK adapter
# =============================================================================


class DockerSdkRuntime:
    """Container runtime backed by the Docker SDK.

    The SDK client is created on first use from the standard environment
    (`DOCKER_HOST`, `DOCKER_CONTEXT` and friends).
    """

    def __init__(self, client: Any | None = None) -> None:
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            try:
                self._client = docker.from_env()
            except docker.errors.DockerException as e:
                msg = f"Docker is not reachable: {e}"
                raise ContainerRuntimeError(msg) from e
        return self._client

    async def _call(self, func: Any, *args: Any, **kwargs: Any) -> Any:
        try:
            return await asyncio.to_thread(func, *args, **kwargs)
        except (docker.errors.DockerException, requests.RequestException) as e:
            msg = f"Docker call failed: {e}"
            raise ContainerRuntimeError(msg) from e

    @staticmethod
    def _host_port(ports: dict[str, Any] | None, db_port: int) -> int | None:
        bindings = (ports or {}).get(f"{db_port}/tcp") or []
        for binding in bindings:
            host_port = binding.get("HostPort")
            if host_port and host_port.isdigit():
                return int(host_port)
        return None

    async def version(self) -> str:
        info = await self._call(self.client.version)
        return str(info.get("Version", "unknown"))

    async def list_containers(
        self,
        *,
        db_port: int,
        label: str | None = None,
        image: str | None = None,
        include_stopped: bool = False,
    ) -> list[ContainerInfo]:
        filters: dict[str, str] = {}
        if label is not None:
            filters["label"] = label
        if image is not None:
            filters["ancestor"] = image

        containers = await self._call(self.client.containers.list, all=include_stopped, filters=filters)
        return [ContainerInfo(container_id=c.id, host_port=self._host_port(c.ports, db_port)) for c in containers]

    async def add_label(self, container_id: str, key: str, value: str) -> None:
        # The Engine API has no endpoint for changing labels of an existing container
        msg = f"Docker does not support adding label {key}={value} to existing container {container_id[:12]}"
        raise ContainerRuntimeError(msg)

    async def is_running(self, container_id: str) -> bool:
        container = await self._call(self.client.containers.get, container_id)
        return bool(container.attrs.get("State", {}).get("Running", False))

    async def run(
        self,
        *,
        image: str,
        name: str,
        environment: dict[str, str],
        labels: dict[str, str],
        db_port: int,
    ) -> ContainerInfo:
        container = await self._call(
            self.client.containers.run,
            image=image,
            name=name,
            environment=environment,
            labels=labels,
            ports={f"{db_port}/tcp": None},
            detach=True,
        )
        await self._call(container.reload)
        return ContainerInfo(container_id=container.id, host_port=self._host_port(container.ports, db_port))

    async def exec(self, container_id: str, command: list[str]) -> int:
        container = await self._call(self.client.containers.get, container_id)
        result = await self._call(container.exec_run, command)
        return int(result.exit_code)

    async def stop(self, container_id: str) -> None:
        container = await self._call(self.client.containers.get, container_id)
        await self._call(container.stop)

    async def remove(self, container_id: str) -> None:
        container = await self._call(self.client.containers.get, container_id)
        await self._call(container.remove, force=True)


# =============================================================================
# CLI adapter
# =============================================================================

# `ps --format` template: one `<id>,<ports>` line per container
PS_FORMAT = "{{.ID}},{{.Ports}}"


def parse_host_port(ports: str, db_port: int) -> int | None:
    """Extract the host port mapped to `db_port` from a CLI ports column.

    Args:
        ports: Ports column, e.g. `0.0.0.0:49153->5432/tcp, :::49153->5432/tcp`.
        db_port: Container port to look for.

    Returns:
        The host port, or None if the mapping is absent.
    """
    match = re.search(rf"(?:0\.0\.0\.0|\[::\]|::|127\.0\.0\.1):(\d+)->{db_port}\b", ports)
    return int(match.group(1)) if match else None


def parse_ps_output(stdout: str, db_port: int) -> list[ContainerInfo]:
    """Parse `ps --format "{{.ID}},{{.Ports}}"` output into ContainerInfo records."""
    containers = []
    for line in stdout.splitlines():
        line = line.strip()
        if not line:
            continue
        container_id, _, ports = line.partition(",")
        containers.append(ContainerInfo(container_id=container_id, host_port=parse_host_port(ports, db_port)))
    return containers


class DockerCliRuntime:
    """Container runtime backed by the container CLI.

    Attributes:
        binary: CLI executable (`docker`, `podman`, ...).
    """

    def __init__(self, binary: str = "docker") -> None:
        self.binary = binary

    async def _run(self, *args: str) -> str:
        logger.debug("Running container CLI", extra={"binary": self.binary, "cli_args": list(args)})
        try:
            process = await asyncio.create_subprocess_exec(
                self.binary,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            msg = f"Could not run {self.binary}: {e}"
            raise ContainerRuntimeError(msg) from e

        stdout, stderr = await process.communicate()
        if process.returncode != 0:
            msg = f"{self.binary} {args[0]} failed ({process.returncode}): {stderr.decode().strip()}"
            raise ContainerRuntimeError(msg)
        return stdout.decode()

    async def version(self) -> str:
        return (await self._run("version", "--format", "{{.Server.Version}}")).strip()

    async def list_containers(
        self,
        *,
        db_port: int,
        label: str | None = None,
        image: str | None = None,
        include_stopped: bool = False,
    ) -> list[ContainerInfo]:
        args = ["ps"]
        if include_stopped:
            args.append("--all")
        if label is not None:
            args += ["--filter", f"label={label}"]
        if image is not None:
            args += ["--filter", f"ancestor={image}"]
        args += ["--format", PS_FORMAT]
        return parse_ps_output(await self._run(*args), db_port)

    async def add_label(self, container_id: str, key: str, value: str) -> None:
        await self._run("update", "--label", f"{key}={value}", container_id)

    async def is_running(self, container_id: str) -> bool:
        stdout = await self._run("inspect", container_id, "--format", "{{.State.Running}}")
        return stdout.strip() == "true"

    async def run(
        self,
        *,
        image: str,
        name: str,
        environment: dict[str, str],
        labels: dict[str, str],
        db_port: int,
    ) -> ContainerInfo:
        args = ["run", "--detach", "--name", name, "--publish", str(db_port)]
        for key, value in labels.items():
            args += ["--label", f"{key}={value}"]
        for key, value in environment.items():
            args += ["--env", f"{key}={value}"]
        args.append(image)

        container_id = (await self._run(*args)).strip()
        port_output = await self._run("port", container_id, f"{db_port}/tcp")
        host_port = None
        for line in port_output.splitlines():
            _, _, port = line.strip().rpartition(":")
            if port.isdigit():
                host_port = int(port)
                break
        return ContainerInfo(container_id=container_id, host_port=host_port)

    async def exec(self, container_id: str, command: list[str]) -> int:
        try:
            await self._run("exec", container_id, *command)
        except ContainerRuntimeError:
            return 1
        return 0

    async def stop(self, container_id: str) -> None:
        await self._run("stop", container_id)

    async def remove(self, container_id: str) -> None:
        await self._run("rm", "--force", container_id)


def create_container_runtime(config: ContainerConfig) -> ContainerRuntime:
    """Create the runtime adapter selected by `config.runtime`."""
    if config.runtime == "cli":
        return DockerCliRuntime(binary=config.cli_binary)
    return DockerSdkRuntime()
