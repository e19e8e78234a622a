"""Configuration management for the API test harness.

This module provides the configuration system for the harness using Pydantic
models. All settings are loaded from environment variables with sensible
local-development defaults.

## Configuration Sources

Configuration is read from environment variables on every call to a
`from_env()` method. Nothing is cached: the container lifecycle manager
publishes the database port into the environment after the container is
started, and later readers must see the new value.

Every `from_env()` accepts an optional mapping. When omitted, `os.environ`
is used. Tests and the harness pass their own mapping to avoid touching the
process environment.

## Environment Variables

**Database (API call log store)**
- `DB_HOST`: Database host (default: `localhost`)
- `DB_PORT`: Database port (default: `5432`)
- `DB_NAME`: Database name (default: `api_test_db`)
- `DB_USER`: Database user (default: `testuser`)
- `DB_PASSWORD`: Database password (default: `testpass`)
- `DB_SCHEMA`: Schema holding the `api_logs` table (default: `api_logs`)
- `DB_INITIALIZED`: Set to `true` once a database container is available

**Container**
- `CONTAINER_RUNTIME`: Runtime adapter, `sdk` or `cli` (default: `sdk`)
- `CONTAINER_CLI`: CLI binary used by the `cli` adapter (default: `docker`)
- `CONTAINER_STARTUP_TIMEOUT`: Seconds to wait for a new database to
  accept connections (default: `60`)
- `CONTAINER_SETTLE_SECONDS`: Pause after the container is up
  (default: `2`)

**API under test**
- `API_BASE_URL`: Base URL of the API (default: `https://dummyjson.com`)
- `API_TIMEOUT`: Request timeout in seconds (default: `30`)
- `API_USERNAME`, `API_PASSWORD`: Valid login credentials
  (default: `emilys` / `emilyspass`)

**Run flags**
- `LOG_API_CALLS`: Persist every API call to the database (default: `false`)
- `KEEP_CONTAINER_RUNNING`: Leave the database container running after the
  run (default: `false`)
- `DEBUG`: Verbose diagnostic logging (default: `false`)
- `LOG_QUEUE_SIZE`: Maximum pending log entries (default: `1000`)
- `LOG_DRAIN_TIMEOUT`: Seconds to wait for pending entries at shutdown
  (default: `10`)

## Usage

```python
from apiprobe.config import DatabaseConfig, RunConfig

db = DatabaseConfig.from_env()
print(db.host, db.port)

if RunConfig.from_env().log_api_calls:
    ...
```
"""

import os
from collections.abc import Mapping
from typing import Literal

from pydantic import BaseModel, ConfigDict
from sqlalchemy import URL

ENV_DB_INITIALIZED = "DB_INITIALIZED"


def _env(environ: Mapping[str, str] | None) -> Mapping[str, str]:
    return os.environ if environ is None else environ


def _flag(environ: Mapping[str, str], name: str) -> bool:
    return environ.get(name, "false").lower() == "true"


class DatabaseConfig(BaseModel):
    """Connection descriptor for the API call log database.

    Attributes:
        host: Database host.
        port: Database port.
        database: Database name.
        user: Database user.
        password: Database password.
        schema_name: Schema that holds the `api_logs` table.
        pool_size: Maximum pooled connections. Default: 10.
        pool_recycle_s: Maximum age in seconds of a pooled connection. Older
            connections are replaced on checkout, not while idle.
            Default: 30.
        connect_timeout_s: Seconds to wait for a new connection. Default: 5.
    """

    host: str = "localhost"
    port: int = 5432
    database: str = "api_test_db"
    user: str = "testuser"
    password: str = "testpass"
    schema_name: str = "api_logs"

    pool_size: int = 10
    pool_recycle_s: int = 30
    connect_timeout_s: int = 5

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "DatabaseConfig":
        """Build the connection descriptor from the current environment.

        Args:
            environ: Mapping to read from. Defaults to `os.environ`.

        Returns:
            Configured DatabaseConfig instance. Absent values fall back to
            the defaults; this never raises for missing variables.
        """
        env = _env(environ)
        return cls(
            host=env.get("DB_HOST") or "localhost",
            port=int(env.get("DB_PORT") or "5432"),
            database=env.get("DB_NAME") or "api_test_db",
            user=env.get("DB_USER") or "testuser",
            password=env.get("DB_PASSWORD") or "testpass",
            schema_name=env.get("DB_SCHEMA") or "api_logs",
        )

    def sqlalchemy_url(self) -> URL:
        """Return the SQLAlchemy URL for the async psycopg driver.

        Credentials are carried as URL components, so reserved characters
        in the user or password need no escaping.
        """
        return URL.create(
            drivername="postgresql+psycopg",
            username=self.user,
            password=self.password,
            host=self.host,
            port=self.port,
            database=self.database,
        )


class ContainerConfig(BaseModel):
    """Configuration for the disposable database container.

    Attributes:
        image: Image used for new containers.
        legacy_image: Image matched when looking for unlabelled containers
            started by older setups.
        label_key: Label identifying containers owned by this harness.
        label_value: Value of the identifying label.
        name: Name given to new containers.
        db_port: Database port inside the container.
        startup_timeout_s: Seconds to wait for a new database to accept
            connections.
        settle_seconds: Pause after the container is available.
        runtime: Container runtime adapter (`sdk` or `cli`).
        cli_binary: Binary used by the `cli` adapter.
    """

    image: str = "postgres:16-alpine"
    legacy_image: str = "postgres:16-alpine"
    label_key: str = "apiprobe-test"
    label_value: str = "true"
    name: str = "apiprobe-postgres"
    db_port: int = 5432
    startup_timeout_s: int = 60
    settle_seconds: float = 2.0
    runtime: Literal["sdk", "cli"] = "sdk"
    cli_binary: str = "docker"

    model_config = ConfigDict(frozen=True)

    @property
    def label(self) -> str:
        """Label in `key=value` form, as used by runtime filters."""
        return f"{self.label_key}={self.label_value}"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "ContainerConfig":
        """Create ContainerConfig from environment variables.

        Raises:
            ValueError: If CONTAINER_RUNTIME is not `sdk` or `cli`.
        """
        env = _env(environ)
        runtime = env.get("CONTAINER_RUNTIME", "sdk").lower()
        if runtime not in ("sdk", "cli"):
            msg = f"Invalid CONTAINER_RUNTIME: {runtime}. Must be one of: ('sdk', 'cli')"
            raise ValueError(msg)

        return cls(
            runtime=runtime,
            cli_binary=env.get("CONTAINER_CLI", "docker"),
            startup_timeout_s=int(env.get("CONTAINER_STARTUP_TIMEOUT", "60")),
            settle_seconds=float(env.get("CONTAINER_SETTLE_SECONDS", "2")),
        )


class ApiConfig(BaseModel):
    """Configuration for the API under test.

    Attributes:
        base_url: Base URL every endpoint is appended to.
        timeout_s: Per-request timeout in seconds. Default: 30.
        max_retries: Extra attempts for a torn-down HTTP client. Default: 2.
        retry_wait_s: Fixed delay between attempts. Default: 1.0.
        username: Username of a valid account.
        password: Password of a valid account.
    """

    base_url: str = "https://dummyjson.com"
    timeout_s: float = 30.0
    max_retries: int = 2
    retry_wait_s: float = 1.0
    username: str = "emilys"
    password: str = "emilyspass"

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "ApiConfig":
        """Create ApiConfig from environment variables."""
        env = _env(environ)
        return cls(
            base_url=env.get("API_BASE_URL") or "https://dummyjson.com",
            timeout_s=float(env.get("API_TIMEOUT", "30")),
            username=env.get("API_USERNAME") or "emilys",
            password=env.get("API_PASSWORD") or "emilyspass",
        )


class RunConfig(BaseModel):
    """Flags controlling a single test run.

    Attributes:
        log_api_calls: Persist every API call to the database.
        keep_container_running: Leave the database container running after
            the run for manual inspection.
        debug: Emit diagnostic output for best-effort paths.
        log_queue_size: Maximum number of pending API call log entries.
        log_drain_timeout_s: Seconds to wait for pending entries at shutdown.
    """

    log_api_calls: bool = False
    keep_container_running: bool = False
    debug: bool = False
    log_queue_size: int = 1000
    log_drain_timeout_s: float = 10.0

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "RunConfig":
        """Create RunConfig from environment variables."""
        env = _env(environ)
        return cls(
            log_api_calls=_flag(env, "LOG_API_CALLS"),
            keep_container_running=_flag(env, "KEEP_CONTAINER_RUNNING"),
            debug=_flag(env, "DEBUG"),
            log_queue_size=int(env.get("LOG_QUEUE_SIZE", "1000")),
            log_drain_timeout_s=float(env.get("LOG_DRAIN_TIMEOUT", "10")),
        )


def is_database_initialized(environ: Mapping[str, str] | None = None) -> bool:
    """Return True if another component already published a usable database."""
    return _flag(_env(environ), ENV_DB_INITIALIZED)
