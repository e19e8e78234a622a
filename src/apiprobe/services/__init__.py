"""Services for the API call logging pipeline.

- `ContainerManager`: start-or-reuse lifecycle of the log database container.
- `DatabaseManager`: connection pool, schema and `api_logs` writes.
- `ApiCallRecorder`: background queue feeding `DatabaseManager`.
"""

from .container import ContainerManager
from .database import ApiLog, DatabaseManager
from .recorder import ApiCallRecorder
from .runtime import ContainerRuntime, DockerCliRuntime, DockerSdkRuntime, create_container_runtime

__all__ = [
    "ApiCallRecorder",
    "ApiLog",
    "ContainerManager",
    "ContainerRuntime",
    "DatabaseManager",
    "DockerCliRuntime",
    "DockerSdkRuntime",
    "create_container_runtime",
]
