"""Exception hierarchy for the API test harness.

## Exception Hierarchy

All exceptions inherit from `ApiProbeError`:

- `ContainerRuntimeError`: A container runtime command or API call failed.
  Transient: the lifecycle manager recovers by creating a new container.
- `ContainerStartupError`: A new database container could not be created.
  Fatal: there is no fallback database.
- `DatabaseNotInitializedError`: A query was issued before `initialize()`.
- `SetupError`: Raised by the harness when run setup fails; aborts the run.

## Usage

```python
from apiprobe.core.exceptions import ContainerRuntimeError

try:
    runtime.add_label(container_id, "apiprobe-test", "true")
except ContainerRuntimeError:
    logger.warning("Could not add label")
```
"""

from apiprobe.foundation.exceptions import UpstreamError


class ApiProbeError(Exception):
    """Base exception class for all harness errors."""


class ContainerRuntimeError(ApiProbeError, UpstreamError):
    """Exception raised when the container runtime rejects or fails a command.

    Examples:
        - The runtime daemon is not reachable
        - A container id no longer exists
        - The runtime does not support updating labels in place
    """


class ContainerStartupError(ApiProbeError, UpstreamError):
    """Exception raised when a new database container cannot be started.

    Examples:
        - The image cannot be pulled
        - The container exits during startup
        - The database does not accept connections before the timeout
    """


class DatabaseNotInitializedError(ApiProbeError):
    """Exception raised when the database is used before `initialize()`."""


class SetupError(ApiProbeError):
    """Exception raised when the test run environment cannot be set up.

    The original error is always chained as `__cause__`.
    """
