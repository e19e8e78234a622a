"""Fixtures for integration tests against a real PostgreSQL.

The database runs in a testcontainers-managed container shared by the whole
session. Every test gets its own schema, so tests never see each other's
rows.
"""

# pylint: disable=redefined-outer-name

import uuid
from collections.abc import AsyncIterator, Iterator

import pytest
import pytest_asyncio
from testcontainers.postgres import PostgresContainer

from apiprobe.services.database import DatabaseManager


@pytest.fixture(scope="session")
def postgres() -> Iterator[PostgresContainer]:
    with PostgresContainer("postgres:16-alpine", driver="psycopg") as container:
        yield container


@pytest.fixture
def db_environ(postgres: PostgresContainer) -> dict[str, str]:
    """Connection environment for `postgres` with a fresh schema."""
    return {
        "DB_HOST": postgres.get_container_host_ip(),
        "DB_PORT": str(postgres.get_exposed_port(5432)),
        "DB_NAME": postgres.dbname,
        "DB_USER": postgres.username,
        "DB_PASSWORD": postgres.password,
        "DB_SCHEMA": f"it_{uuid.uuid4().hex[:12]}",
    }


@pytest_asyncio.fixture
async def db(db_environ: dict[str, str]) -> AsyncIterator[DatabaseManager]:
    manager = DatabaseManager(environ=db_environ)
    await manager.initialize()
    yield manager
    await manager.close()
