"""Unit tests for the connection pool manager.

This file tests DatabaseManager without a database: the engine factory is
patched to return a MagicMock engine. Round-trips against a real PostgreSQL
live in tests/integration/test_database_integration.py.

# Test Coverage

The tests cover:
  - is_ready(): before initialize, after initialize, after close, and
    re-creation from the DB_INITIALIZED signal
  - initialize(): idempotence, single-flight under concurrency, failure
    leaves the manager uninitialized
  - query(): refused before initialize
  - log_api_call(): never raises, skips when not ready, returns the row id
  - to_json_value(): placeholder for unserializable payloads and
    non-finite floats
  - ApiLog table definition: columns and indexes

# Running Tests

Run with: pytest tests/unit/services/test_database.py
"""

# pylint: disable=redefined-outer-name

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from apiprobe.config import DatabaseConfig
from apiprobe.core.exceptions import DatabaseNotInitializedError
from apiprobe.core.models import ApiCallLogEntry
from apiprobe.services.database import (
    UNSERIALIZABLE_PLACEHOLDER,
    ApiLog,
    DatabaseManager,
    create_engine_for,
    to_json_value,
)


def _mock_engine(conn: AsyncMock | None = None) -> MagicMock:
    """Engine whose connect() and begin() yield `conn`."""
    conn = conn or AsyncMock()
    engine = MagicMock()
    engine.connect.return_value.__aenter__.return_value = conn
    engine.begin.return_value.__aenter__.return_value = conn
    engine.dispose = AsyncMock()
    engine.conn = conn
    return engine


@pytest.fixture
def engine() -> MagicMock:
    return _mock_engine()


@pytest.fixture
def db(environ: dict[str, str]) -> DatabaseManager:
    return DatabaseManager(environ=environ)


# =============================================================================
# Readiness and initialization
# =============================================================================


class TestInitialize:
    """Test suite for initialize(), is_ready() and close()."""

    def test_not_ready_before_initialize(self, db: DatabaseManager) -> None:
        assert db.is_ready() is False

    @pytest.mark.asyncio
    async def test_ready_after_initialize_and_not_after_close(self, db: DatabaseManager, engine: MagicMock) -> None:
        """Test the readiness lifecycle.

        **Why this test is important:**
          - Clients only log while the pool is ready

        **What it tests:**
          - is_ready() is True after initialize() and False after close()
          - close() disposes the engine
        """
        with patch("apiprobe.services.database.create_engine_for", return_value=engine):
            await db.initialize()

        assert db.is_ready() is True

        await db.close()

        assert db.is_ready() is False
        engine.dispose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_initialize_verifies_and_creates_schema(self, db: DatabaseManager, engine: MagicMock) -> None:
        with patch("apiprobe.services.database.create_engine_for", return_value=engine):
            await db.initialize()

        # SELECT 1, then CREATE SCHEMA
        assert engine.conn.execute.await_count == 2
        engine.conn.run_sync.assert_awaited_once()
        assert db.config == DatabaseConfig()

    @pytest.mark.asyncio
    async def test_initialize_is_idempotent(self, db: DatabaseManager, engine: MagicMock) -> None:
        with patch("apiprobe.services.database.create_engine_for", return_value=engine) as factory:
            await db.initialize()
            await db.initialize()

        factory.assert_called_once()

    @pytest.mark.asyncio
    async def test_concurrent_initialize_converges_on_one_engine(self, db: DatabaseManager) -> None:
        """Test that concurrent first calls create a single engine.

        **Why this test is important:**
          - A checked flag alone lets two callers build two pools

        **What it tests:**
          - Two overlapping initialize() calls create one engine
          - is_ready() is True afterwards
        """
        conn = AsyncMock()

        async def slow_execute(*args, **kwargs):
            await asyncio.sleep(0.01)

        conn.execute.side_effect = slow_execute
        engine = _mock_engine(conn)

        with patch("apiprobe.services.database.create_engine_for", return_value=engine) as factory:
            await asyncio.gather(db.initialize(), db.initialize())

        factory.assert_called_once()
        assert db.is_ready() is True

    @pytest.mark.asyncio
    async def test_failed_initialize_leaves_manager_uninitialized(self, db: DatabaseManager) -> None:
        """Test that a connection failure propagates and is cleaned up."""
        conn = AsyncMock()
        conn.execute.side_effect = OSError("connection refused")
        engine = _mock_engine(conn)

        with patch("apiprobe.services.database.create_engine_for", return_value=engine):
            with pytest.raises(OSError, match="connection refused"):
                await db.initialize()

        assert db.is_ready() is False
        engine.dispose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_close_is_safe_when_already_closed(self, db: DatabaseManager) -> None:
        await db.close()
        await db.close()

        assert db.is_ready() is False

    def test_is_ready_recreates_pool_from_signal(self, environ: dict[str, str]) -> None:
        """Test that the DB_INITIALIZED signal re-creates a missing pool.

        **Why this test is important:**
          - Components constructed after setup must still be able to log

        **What it tests:**
          - is_ready() becomes True without initialize()
          - The engine is built for the published port
          - No schema DDL is run
        """
        environ.update({"DB_INITIALIZED": "true", "DB_PORT": "49153"})
        db = DatabaseManager(environ=environ)
        engine = _mock_engine()

        with patch("apiprobe.services.database.create_engine_for", return_value=engine) as factory:
            assert db.is_ready() is True

        assert factory.call_args.args[0].port == 49153
        engine.conn.run_sync.assert_not_called()

    def test_is_ready_swallows_recreation_failure(self, environ: dict[str, str]) -> None:
        environ["DB_INITIALIZED"] = "true"
        db = DatabaseManager(environ=environ)

        with patch("apiprobe.services.database.create_engine_for", side_effect=RuntimeError("bad url")):
            assert db.is_ready() is False

    def test_create_engine_for_routes_schema(self) -> None:
        engine = create_engine_for(DatabaseConfig(schema_name="audit"))

        assert engine.sync_engine.get_execution_options()["schema_translate_map"] == {None: "audit"}
        assert engine.url.drivername == "postgresql+psycopg"


# =============================================================================
# query()
# =============================================================================


class TestQuery:
    """Test suite for query()."""

    @pytest.mark.asyncio
    async def test_query_before_initialize_raises(self, db: DatabaseManager) -> None:
        with pytest.raises(DatabaseNotInitializedError):
            await db.query("SELECT 1")

    @pytest.mark.asyncio
    async def test_fetch_logs_before_initialize_raises(self, db: DatabaseManager) -> None:
        with pytest.raises(DatabaseNotInitializedError):
            await db.fetch_logs()

    @pytest.mark.asyncio
    async def test_query_returns_rows_as_dicts(self, db: DatabaseManager, engine: MagicMock) -> None:
        with patch("apiprobe.services.database.create_engine_for", return_value=engine):
            await db.initialize()

        result = MagicMock()
        result.returns_rows = True
        result.mappings.return_value = [{"n": 3}]
        engine.conn.execute.return_value = result

        assert await db.query("SELECT count(*) AS n FROM api_logs") == [{"n": 3}]


# =============================================================================
# log_api_call()
# =============================================================================


class TestLogApiCall:
    """Test suite for log_api_call()."""

    @pytest.mark.asyncio
    async def test_not_ready_returns_none(self, db: DatabaseManager, log_entry: ApiCallLogEntry) -> None:
        assert await db.log_api_call(log_entry) is None

    @pytest.mark.asyncio
    async def test_returns_generated_id(
        self, db: DatabaseManager, engine: MagicMock, log_entry: ApiCallLogEntry
    ) -> None:
        with patch("apiprobe.services.database.create_engine_for", return_value=engine):
            await db.initialize()
        result = MagicMock()
        result.scalar_one.return_value = 7
        engine.conn.execute.return_value = result

        assert await db.log_api_call(log_entry) == 7

    @pytest.mark.asyncio
    async def test_insert_failure_is_contained(
        self, db: DatabaseManager, engine: MagicMock, log_entry: ApiCallLogEntry
    ) -> None:
        """Test that an insert failure never reaches the caller.

        **Why this test is important:**
          - Logging must never disrupt the API call it describes

        **What it tests:**
          - A raising execute() results in None, not an exception
        """
        with patch("apiprobe.services.database.create_engine_for", return_value=engine):
            await db.initialize()
        engine.conn.execute.side_effect = RuntimeError("relation does not exist")

        assert await db.log_api_call(log_entry) is None

    @pytest.mark.asyncio
    async def test_circular_payload_is_contained(self, db: DatabaseManager, engine: MagicMock) -> None:
        with patch("apiprobe.services.database.create_engine_for", return_value=engine):
            await db.initialize()
        circular: dict = {}
        circular["self"] = circular
        entry = ApiCallLogEntry(endpoint="/users", method="POST", request_body=circular, request_headers=circular)

        await db.log_api_call(entry)


class TestToJsonValue:
    """Test suite for to_json_value()."""

    def test_none_stays_none(self) -> None:
        assert to_json_value(None) is None

    @pytest.mark.parametrize("value", [{"a": 1}, [1, 2], "text", 3])
    def test_serializable_passes_through(self, value: object) -> None:
        assert to_json_value(value) == value

    def test_circular_reference(self) -> None:
        circular: list = []
        circular.append(circular)

        assert to_json_value(circular) == UNSERIALIZABLE_PLACEHOLDER

    def test_unserializable_object(self) -> None:
        assert to_json_value({"when": object()}) == UNSERIALIZABLE_PLACEHOLDER

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_float_is_unserializable(self, value: float) -> None:
        """Test that NaN and infinities become the placeholder.

        **Why this test is important:**
        JSONB has no NaN or Infinity literal, so a body holding one would
        make the insert fail and the call would go unlogged.
        """
        assert to_json_value({"score": value}) == UNSERIALIZABLE_PLACEHOLDER


class TestApiLogTable:
    """Test suite for the api_logs table definition."""

    def test_columns(self) -> None:
        assert set(ApiLog.__table__.columns.keys()) == {
            "id",
            "test_name",
            "endpoint",
            "method",
            "request_headers",
            "request_body",
            "response_status",
            "response_headers",
            "response_body",
            "execution_time_ms",
            "created_at",
        }

    def test_indexes(self) -> None:
        assert {index.name for index in ApiLog.__table__.indexes} == {
            "idx_api_logs_method",
            "idx_api_logs_endpoint",
            "idx_api_logs_created_at",
            "idx_api_logs_test_name",
            "idx_api_logs_response_status",
        }
