"""Core domain models and exceptions for the API test harness."""

from .exceptions import (
    ApiProbeError,
    ContainerRuntimeError,
    ContainerStartupError,
    DatabaseNotInitializedError,
    SetupError,
)
from .models import ApiCallLogEntry, ContainerHandle, ContainerInfo

__all__ = [
    "ApiCallLogEntry",
    "ApiProbeError",
    "ContainerHandle",
    "ContainerInfo",
    "ContainerRuntimeError",
    "ContainerStartupError",
    "DatabaseNotInitializedError",
    "SetupError",
]
