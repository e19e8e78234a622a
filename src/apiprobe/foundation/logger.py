"""Structured JSON logging for the harness.

Every record becomes one JSON object per line on stdout. Fields passed with
`extra=` are emitted at the top level, so a log line such as

```python
logger.info("Reusing existing PostgreSQL container", extra={"port": 49153})
```

can be filtered on `port` without parsing the message.

Two `extra` keys are treated specially:

- `api_call`: dict attached by the database manager when a call log insert
  is reported. Its `method`, `endpoint`, `status`, `duration_ms` and
  `test_name` are flattened into the line.
- `error`: a string, or a dict that receives a `trace` when the record carries
  exception info.
"""

import json
import logging
from logging.config import dictConfig
from typing import Any

# Attributes every LogRecord has, plus the ones format() adds or we render ourselves
_RESERVED = frozenset(vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))) | {
    "message",
    "asctime",
    "taskName",
    "api_call",
    "error",
}

_API_CALL_FIELDS = ("method", "endpoint", "status", "duration_ms", "test_name")

HARNESS_LOGGER = "apiprobe"


class CustomJSONFormatter(logging.Formatter):
    """Render log records as single-line JSON objects."""

    def __init__(self, fmt: str) -> None:
        logging.Formatter.__init__(self, fmt)

    def format(self, record: logging.LogRecord) -> str:
        # Populates record.message and record.asctime
        logging.Formatter.format(self, record)
        return json.dumps(self.get_log(record), default=str)

    def get_log(self, record: logging.LogRecord) -> dict[str, Any]:
        """Build the JSON payload for an already formatted record.

        Args:
            record: Record that has been through `format()`.

        Returns:
            Standard fields, flattened API call fields, the error entry and
            every remaining `extra` attribute.
        """
        log: dict[str, Any] = {
            "time": record.asctime,
            "level": record.levelname,
            "logger_name": record.name,
            "message": record.message,
            "process_id": record.process,
            "pathname": record.pathname,
            "line": record.lineno,
        }

        api_call = getattr(record, "api_call", None)
        if isinstance(api_call, dict):
            log.update({k: api_call[k] for k in _API_CALL_FIELDS if api_call.get(k) is not None})

        error = getattr(record, "error", None)
        if isinstance(error, dict):
            error = dict(error)
            if record.exc_info:
                error["trace"] = self.formatException(record.exc_info)
        if error is not None:
            log["error"] = error

        log.update({k: v for k, v in vars(record).items() if k not in _RESERVED})
        return log


def _logger_config(level: str) -> dict[str, Any]:
    return {"handlers": ["json"], "level": level, "propagate": False}


LOGGING_CONFIG: dict[str, Any] = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "json": {"()": lambda: CustomJSONFormatter(fmt="%(asctime)s")},
    },
    "handlers": {
        "json": {
            "class": "logging.StreamHandler",
            "formatter": "json",
            "stream": "ext://sys.stdout",
        },
    },
    "loggers": {
        HARNESS_LOGGER: _logger_config("INFO"),
        # Third-party chatter only when something is wrong
        "httpx": _logger_config("WARNING"),
        "docker": _logger_config("WARNING"),
    },
    "root": {"handlers": ["json"], "level": "INFO"},
}


def configure_logging(debug: bool = False) -> None:
    """Apply `LOGGING_CONFIG`.

    Args:
        debug: Lower the harness logger to DEBUG, which shows what happened
            on best-effort paths (skipped or failed API call logs, retries
            of background work).
    """
    dictConfig(LOGGING_CONFIG)
    if debug:
        logging.getLogger(HARNESS_LOGGER).setLevel(logging.DEBUG)
