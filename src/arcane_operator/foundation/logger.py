"""Structured JSON logging for the operator.

Every log line is one JSON object on stdout. Fields passed with
``extra={...}`` become top-level keys, so log pipelines can filter on
``namespace``, ``kind``, ``stream_id`` or ``pipeline`` without parsing
messages. The access log middleware passes ``request`` and ``response``
dicts, which are merged into the line; an ``error`` field is kept as an
object and receives the traceback when one is attached.
"""

import json
import logging
from typing import Any

# Attributes every LogRecord carries; anything else came from `extra`.
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}

# Rendered explicitly by the formatter.
_MERGED_FIELDS = ("request", "response")


class JsonLogFormatter(logging.Formatter):
    """Render log records as single-line JSON documents."""

    def format(self, record: logging.LogRecord) -> str:
        record.message = record.getMessage()
        record.asctime = self.formatTime(record, self.datefmt)
        return json.dumps(self.to_payload(record), default=str)

    def to_payload(self, record: logging.LogRecord) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "time": record.asctime,
            "level": record.levelname,
            "logger_name": record.name,
            "message": record.message,
            "line": record.lineno,
            "pathname": record.pathname,
            "thread_name": record.threadName,
            "process_id": record.process,
        }
        for field in _MERGED_FIELDS:
            values = getattr(record, field, None)
            if isinstance(values, dict):
                payload.update((key, value) for key, value in values.items() if value is not None)

        trace = self.formatException(record.exc_info) if record.exc_info else None
        error = getattr(record, "error", None)
        if isinstance(error, dict):
            payload["error"] = {**error, "trace": trace} if trace else dict(error)
        elif error is not None:
            payload["error"] = error
        if trace and not isinstance(error, dict):
            payload["trace"] = trace

        payload.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and key not in _MERGED_FIELDS and key != "error"
        )
        return payload


def build_logging_config(level: str = "INFO") -> dict[str, Any]:
    """Build a `dictConfig` mapping that routes every logger to the JSON handler.

    uvicorn's own access log is raised to WARNING; requests are logged by the
    access log middleware on ``arcane_operator.access`` instead.

    Args:
        level: Level of the operator and uvicorn loggers.
    """
    levels = {
        "uvicorn": level,
        "uvicorn.error": level,
        "uvicorn.access": "WARNING",
        "arcane_operator": level,
        "arcane_operator.access": level,
    }
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"json": {"()": JsonLogFormatter}},
        "handlers": {
            "stdout": {"class": "logging.StreamHandler", "formatter": "json", "stream": "ext://sys.stdout"},
        },
        "loggers": {
            name: {"handlers": ["stdout"], "level": logger_level, "propagate": False}
            for name, logger_level in levels.items()
        },
        "root": {"handlers": ["stdout"], "level": level},
    }


LOGGING_CONFIG = build_logging_config()
