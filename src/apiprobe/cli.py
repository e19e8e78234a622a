"""Operator CLI for the log database container.

```
apiprobe check-runtime
apiprobe db status
apiprobe db stop
apiprobe db clean
apiprobe db logs --limit 50 --test-name "should login"
```
"""

import asyncio
import json
import os
from typing import Annotated

import typer
from sqlalchemy.exc import SQLAlchemyError

from apiprobe.config import ENV_DB_INITIALIZED, ContainerConfig, RunConfig
from apiprobe.core.exceptions import ApiProbeError, ContainerRuntimeError
from apiprobe.foundation.logger import configure_logging
from apiprobe.services.container import ContainerManager
from apiprobe.services.database import DatabaseManager
from apiprobe.services.runtime import create_container_runtime

app = typer.Typer(pretty_exceptions_enable=False, help="API test harness tooling.")
db_app = typer.Typer(pretty_exceptions_enable=False, help="Manage the API call log database container.")
app.add_typer(db_app, name="db")


@app.callback()
def main() -> None:
    """Configure logging for every command."""
    configure_logging(debug=RunConfig.from_env().debug)


@app.command("check-runtime")
def check_runtime() -> None:
    """Check that the container runtime is reachable and list running containers."""
    config = ContainerConfig.from_env()
    runtime = create_container_runtime(config)

    async def _check() -> tuple[str, list]:
        version = await runtime.version()
        containers = await runtime.list_containers(db_port=config.db_port)
        return version, containers

    try:
        version, containers = asyncio.run(_check())
    except ContainerRuntimeError as e:
        typer.echo(f"Container runtime is not running: {e}", err=True)
        typer.echo("Start Docker (or your runtime) and check `docker ps`.", err=True)
        raise typer.Exit(code=1) from e

    typer.echo(f"Container runtime is running (server version {version})")
    typer.echo(f"Running containers: {len(containers)}")
    for container in containers:
        port = container.host_port if container.host_port is not None else "-"
        typer.echo(f"  {container.short_id}  {config.db_port}/tcp -> {port}")


@db_app.command("status")
def status() -> None:
    """Show the labelled database containers."""
    config = ContainerConfig.from_env()
    runtime = create_container_runtime(config)

    async def _status() -> list[tuple[str, int | None, bool]]:
        containers = await runtime.list_containers(db_port=config.db_port, label=config.label, include_stopped=True)
        return [(c.short_id, c.host_port, await runtime.is_running(c.container_id)) for c in containers]

    try:
        rows = asyncio.run(_status())
    except ContainerRuntimeError as e:
        typer.echo(f"Could not query the container runtime: {e}", err=True)
        raise typer.Exit(code=1) from e

    if not rows:
        typer.echo(f"No container labelled {config.label}")
        return
    for short_id, port, running in rows:
        state = "running" if running else "stopped"
        typer.echo(f"{short_id}  port={port if port is not None else '-'}  {state}")


@db_app.command("stop")
def stop() -> None:
    """Stop the labelled database containers."""
    config = ContainerConfig.from_env()
    runtime = create_container_runtime(config)

    async def _stop() -> list[str]:
        containers = await runtime.list_containers(db_port=config.db_port, label=config.label)
        for container in containers:
            await runtime.stop(container.container_id)
        return [c.short_id for c in containers]

    try:
        stopped = asyncio.run(_stop())
    except ContainerRuntimeError as e:
        typer.echo(f"Could not stop containers: {e}", err=True)
        raise typer.Exit(code=1) from e

    typer.echo(f"Stopped {len(stopped)} container(s) {' '.join(stopped)}".rstrip())


@db_app.command("clean")
def clean() -> None:
    """Force-remove the labelled database containers, running or not."""
    config = ContainerConfig.from_env()
    runtime = create_container_runtime(config)

    async def _clean() -> list[str]:
        containers = await runtime.list_containers(db_port=config.db_port, label=config.label, include_stopped=True)
        for container in containers:
            await runtime.remove(container.container_id)
        return [c.short_id for c in containers]

    try:
        removed = asyncio.run(_clean())
    except ContainerRuntimeError as e:
        typer.echo(f"Could not remove containers: {e}", err=True)
        raise typer.Exit(code=1) from e

    typer.echo(f"Removed {len(removed)} container(s) {' '.join(removed)}".rstrip())


@db_app.command("logs")
def logs(
    limit: Annotated[int, typer.Option(help="Number of rows to show")] = 20,
    test_name: Annotated[str | None, typer.Option(help="Only rows recorded by this test")] = None,
) -> None:
    """Print the most recent API call log rows as JSON lines."""
    environ = dict(os.environ)
    config = ContainerConfig.from_env(environ)

    async def _logs() -> list[dict]:
        if "DB_PORT" not in environ:
            manager = ContainerManager(config=config, runtime=create_container_runtime(config), environ=environ)
            existing = await manager.find_existing()
            if existing is None:
                msg = f"No running container labelled {config.label}"
                raise ApiProbeError(msg)
            environ["DB_PORT"] = str(existing.host_port)
        environ[ENV_DB_INITIALIZED] = "true"

        db = DatabaseManager(environ=environ)
        try:
            db.is_ready()
            return await db.fetch_logs(limit=limit, test_name=test_name)
        finally:
            await db.close()

    try:
        rows = asyncio.run(_logs())
    except (ApiProbeError, SQLAlchemyError) as e:
        typer.echo(f"Could not read API call logs: {e}", err=True)
        raise typer.Exit(code=1) from e

    for row in rows:
        typer.echo(json.dumps(row, default=str))


if __name__ == "__main__":
    app()
