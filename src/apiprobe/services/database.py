"""Connection pool and schema for the API call log database.

This module owns the pooled connection to the PostgreSQL database described by
`DatabaseConfig` and the single append-only `api_logs` table.

## Table

`api_logs` lives in the configured schema (`DB_SCHEMA`). The ORM model is
declared without a schema and every statement is routed to the configured
schema through SQLAlchemy's `schema_translate_map`.

## Behaviour

- `initialize()` is idempotent and single-flight: concurrent callers wait on
  one lock and converge on one engine.
- `is_ready()` re-creates the engine without touching the schema when another
  component already published a database (`DB_INITIALIZED=true`) but this
  manager has none.
- `log_api_call()` never raises. Failures are reported at DEBUG level only.

## Usage

```python
db = DatabaseManager()
await db.initialize()
row_id = await db.log_api_call(ApiCallLogEntry(endpoint="/users", method="GET"))
rows = await db.query("SELECT count(*) AS n FROM api_logs.api_logs")
await db.close()
```
"""

import asyncio
import datetime
import json
import logging
import os
from collections.abc import Mapping
from typing import Any

import attrs
from sqlalchemy import DateTime, Index, Integer, String, func, insert, select, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.schema import CreateSchema

from apiprobe.config import DatabaseConfig, is_database_initialized
from apiprobe.core.exceptions import DatabaseNotInitializedError
from apiprobe.core.models import ApiCallLogEntry

logger = logging.getLogger(__name__)

UNSERIALIZABLE_PLACEHOLDER = {"error": "Failed to stringify object"}


class Base(DeclarativeBase):
    """The base class for all declarative ORM models."""


class ApiLog(Base):
    """Declarative model of the `api_logs` table."""

    __tablename__ = "api_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    test_name: Mapped[str | None] = mapped_column(String(255))
    endpoint: Mapped[str] = mapped_column(String(500), nullable=False)
    method: Mapped[str] = mapped_column(String(10), nullable=False)
    request_headers = mapped_column(JSONB(none_as_null=True))
    request_body = mapped_column(JSONB(none_as_null=True))
    response_status: Mapped[int | None] = mapped_column(Integer)
    response_headers = mapped_column(JSONB(none_as_null=True))
    response_body = mapped_column(JSONB(none_as_null=True))
    execution_time_ms: Mapped[int | None] = mapped_column(Integer)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime, server_default=func.current_timestamp())

    def __repr__(self) -> str:
        return f"ApiLog(id={self.id}, method={self.method}, endpoint={self.endpoint}, status={self.response_status})"


Index("idx_api_logs_method", ApiLog.method)
Index("idx_api_logs_endpoint", ApiLog.endpoint)
Index("idx_api_logs_created_at", ApiLog.created_at.desc())
Index("idx_api_logs_test_name", ApiLog.test_name)
Index("idx_api_logs_response_status", ApiLog.response_status)


def to_json_value(obj: Any) -> Any:
    """Return `obj` if it is JSON serializable, otherwise a placeholder.

    None stays None so the column is stored as SQL NULL. Non-finite floats
    count as unserializable.
    """
    if obj is None:
        return None
    try:
        # PostgreSQL rejects the NaN and Infinity tokens json.dumps emits by default
        json.dumps(obj, allow_nan=False)
    except (TypeError, ValueError):
        return UNSERIALIZABLE_PLACEHOLDER
    return obj


def _naive_utc(value: datetime.datetime) -> datetime.datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(datetime.timezone.utc).replace(tzinfo=None)


def create_engine_for(config: DatabaseConfig) -> AsyncEngine:
    """Create a pooled async engine for `config`.

    No connection is opened until the engine is first used.
    """
    return create_async_engine(
        config.sqlalchemy_url(),
        pool_size=config.pool_size,
        max_overflow=0,
        pool_timeout=config.connect_timeout_s,
        pool_recycle=config.pool_recycle_s,
        pool_pre_ping=True,
        connect_args={"connect_timeout": config.connect_timeout_s},
        execution_options={"schema_translate_map": {None: config.schema_name}},
    )


@attrs.define(frozen=False, slots=True)
class DatabaseManager:
    """Pooled access to the API call log database.

    Attributes:
        environ: Environment the connection descriptor is resolved from on
            every (re)initialization. Defaults to `os.environ`.
    """

    environ: Mapping[str, str] = attrs.field(factory=lambda: os.environ)
    _engine: AsyncEngine | None = attrs.field(init=False, default=None)
    _config: DatabaseConfig | None = attrs.field(init=False, default=None)
    _initialized: bool = attrs.field(init=False, default=False)
    _init_lock: asyncio.Lock = attrs.field(init=False, factory=asyncio.Lock)

    @property
    def config(self) -> DatabaseConfig | None:
        """Connection descriptor the current engine was built from."""
        return self._config

    async def initialize(self) -> None:
        """Connect, verify connectivity, and create the schema and table.

        Does nothing if already initialized. Concurrent callers wait for the
        first one to finish.

        Raises:
            Exception: Any connection or DDL error. The manager is left
                uninitialized.
        """
        async with self._init_lock:
            if self._initialized:
                logger.info("Database already initialized")
                return

            config = DatabaseConfig.from_env(self.environ)
            logger.info("Connecting to PostgreSQL", extra={"host": config.host, "port": config.port})

            engine = create_engine_for(config)
            try:
                async with engine.connect() as conn:
                    await conn.execute(text("SELECT 1"))
                logger.info("Database connection verified")
                await self._create_schema(engine, config)
            except Exception as e:
                logger.error(
                    "Database initialization failed",
                    extra={"host": config.host, "port": config.port, "error": str(e)},
                )
                await engine.dispose()
                raise

            self._engine = engine
            self._config = config
            self._initialized = True
            logger.info("Database initialized successfully")

    @staticmethod
    async def _create_schema(engine: AsyncEngine, config: DatabaseConfig) -> None:
        async with engine.begin() as conn:
            await conn.execute(CreateSchema(config.schema_name, if_not_exists=True))
            await conn.run_sync(Base.metadata.create_all)

        logger.info(
            "Database schema and tables created/verified",
            extra={
                "schema": config.schema_name,
                "tables": ["api_logs"],
                "indexes": ["method", "endpoint", "created_at", "test_name", "response_status"],
            },
        )

    def is_ready(self) -> bool:
        """Return True if a pool is available.

        If another component published a database (`DB_INITIALIZED=true`) but
        this manager has no pool, a pool is re-created for the current
        connection descriptor. The schema is not touched.
        """
        if not self._initialized and is_database_initialized(self.environ):
            self._reinitialize_engine()

        return self._initialized and self._engine is not None

    def _reinitialize_engine(self) -> None:
        try:
            config = DatabaseConfig.from_env(self.environ)
            self._engine = create_engine_for(config)
            self._config = config
            self._initialized = True
        except Exception as e:
            logger.debug("The pool could not be recreated", extra={"error": str(e)})

    def _require_engine(self) -> AsyncEngine:
        if self._engine is None or not self._initialized:
            raise DatabaseNotInitializedError("Database pool not initialized. Call initialize() first.")
        return self._engine

    async def query(self, sql: str, params: Mapping[str, Any] | None = None) -> list[dict[str, Any]]:
        """Execute `sql` in its own transaction and return the rows.

        Args:
            sql: SQL text using `:name` placeholders.
            params: Values for the placeholders.

        Returns:
            One dict per row, or an empty list for statements without rows.

        Raises:
            DatabaseNotInitializedError: If `initialize()` has not succeeded.
        """
        engine = self._require_engine()
        async with engine.begin() as conn:
            result = await conn.execute(text(sql), dict(params or {}))
            if not result.returns_rows:
                return []
            return [dict(row) for row in result.mappings()]

    async def log_api_call(self, entry: ApiCallLogEntry) -> int | None:
        """Insert one `api_logs` row for `entry`. Never raises.

        Headers and bodies that cannot be serialized to JSON are stored as a
        placeholder object.

        Returns:
            The generated row id, or None if the database is not ready or
            the insert failed.
        """
        if not self.is_ready():
            logger.debug("Database not ready, skipping log")
            return None

        try:
            values = {
                "test_name": entry.test_name or None,
                "endpoint": entry.endpoint,
                "method": entry.method,
                "request_headers": to_json_value(entry.request_headers),
                "request_body": to_json_value(entry.request_body),
                "response_status": entry.response_status,
                "response_headers": to_json_value(entry.response_headers),
                "response_body": to_json_value(entry.response_body),
                "execution_time_ms": entry.execution_time_ms,
                "created_at": _naive_utc(entry.created_at),
            }
            engine = self._require_engine()
            async with engine.begin() as conn:
                result = await conn.execute(insert(ApiLog).values(**values).returning(ApiLog.id))
                log_id = result.scalar_one()
        except Exception as e:
            logger.debug(
                "Failed to log API call to database",
                extra={
                    "error": str(e),
                    "test_name": entry.test_name,
                    "endpoint": entry.endpoint,
                    "method": entry.method,
                    "has_request_headers": entry.request_headers is not None,
                    "has_request_body": entry.request_body is not None,
                    "response_status": entry.response_status,
                    "has_response_headers": entry.response_headers is not None,
                    "has_response_body": entry.response_body is not None,
                },
            )
            return None

        logger.debug(
            "API call logged",
            extra={
                "log_id": log_id,
                "api_call": {
                    "method": entry.method,
                    "endpoint": entry.endpoint,
                    "status": entry.response_status,
                    "duration_ms": entry.execution_time_ms,
                },
            },
        )
        return log_id

    async def fetch_logs(self, limit: int = 20, test_name: str | None = None) -> list[dict[str, Any]]:
        """Return the most recent `api_logs` rows, newest first.

        Raises:
            DatabaseNotInitializedError: If `initialize()` has not succeeded.
        """
        engine = self._require_engine()
        stmt = select(ApiLog.__table__).order_by(ApiLog.created_at.desc(), ApiLog.id.desc()).limit(limit)
        if test_name is not None:
            stmt = stmt.where(ApiLog.test_name == test_name)

        async with engine.connect() as conn:
            result = await conn.execute(stmt)
            return [dict(row) for row in result.mappings()]

    async def close(self) -> None:
        """Dispose of the pool. Safe to call when already closed."""
        if self._engine is None:
            self._initialized = False
            return

        await self._engine.dispose()
        self._engine = None
        self._config = None
        self._initialized = False
        logger.info("Database connection closed")
