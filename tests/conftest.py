"""Shared pytest configuration and fixtures.

This module provides global fixtures and configuration that are available
to all tests in the test suite.

Fixtures defined here are automatically available to all tests without explicit
import statements. Keep fixtures small, composable, and focused on setup/teardown.
Do NOT put business logic in fixtures.
"""

# pylint: disable=redefined-outer-name

import logging
from collections.abc import Iterator

import pytest

from apiprobe.core.models import ApiCallLogEntry


@pytest.fixture(autouse=True)
def _restore_logging() -> Iterator[None]:
    """Undo logging configuration applied by configure_logging() during a test."""
    root = logging.getLogger()
    root_handlers, root_level = list(root.handlers), root.level
    yield
    root.handlers[:] = root_handlers
    root.setLevel(root_level)
    for name in ("apiprobe", "httpx", "docker"):
        configured = logging.getLogger(name)
        configured.handlers.clear()
        configured.propagate = True
        configured.setLevel(logging.NOTSET)


@pytest.fixture
def environ() -> dict[str, str]:
    """Isolated environment mapping for services under test.

    Returns:
        dict: Empty mapping, so every value resolves to its default.
    """
    return {}


@pytest.fixture
def log_entry() -> ApiCallLogEntry:
    """A complete log entry for a successful GET /users call."""
    return ApiCallLogEntry(
        endpoint="/users",
        method="GET",
        test_name="should list users",
        request_headers={"X-Trace": "abc"},
        request_body=None,
        response_status=200,
        response_headers={"content-type": "application/json"},
        response_body={"users": [], "total": 0, "skip": 0, "limit": 5},
        execution_time_ms=42,
    )
