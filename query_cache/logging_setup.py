"""
Query Cache — Logging Setup

Structured JSON logging for the query_cache logger hierarchy.
Modules log through ``logging.getLogger(__name__)`` and attach context
with ``extra={...}``; JSONFormatter writes those fields alongside the
message.
"""

import json
import logging
from datetime import UTC, datetime

from .config import LogLevel

# Attributes every LogRecord carries; anything else came from ``extra``
_RESERVED_ATTRS = frozenset(
    (
        "args",
        "msg",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "name",
        "message",
    )
)


class JSONFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for key, value in record.__dict__.items():
            if key not in log_data and not key.startswith("_") and key not in _RESERVED_ATTRS:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(level: LogLevel | str = LogLevel.INFO) -> logging.Logger:
    """
    Attach a JSON stream handler to the ``query_cache`` logger.

    Replaces handlers previously installed on that logger, so calling it
    again only changes the level.
    """
    logger = logging.getLogger("query_cache")
    logger.handlers.clear()

    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter())
    logger.addHandler(handler)
    logger.setLevel(LogLevel(level).value)

    return logger
