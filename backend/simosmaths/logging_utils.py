from __future__ import annotations

import json
import logging
from logging.config import dictConfig
from typing import Any, Dict

from .logging_context import CONTEXT_FIELDS

# Attributes every LogRecord carries; anything else on a record came from
# ``extra=`` or a filter.
_STANDARD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))
) | {"message", "asctime", "taskName"}


class JSONFormatter(logging.Formatter):
    """
    One JSON object per line: level, logger, message and timestamp, then the
    request context fields at the top level and any ``extra=`` values under
    ``context``.
    """

    def format(self, record: logging.LogRecord) -> str:
        data: Dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                data[field] = value
        if record.exc_info:
            data["exc_info"] = self.formatException(record.exc_info)

        extras = {
            key: value
            for key, value in vars(record).items()
            if key not in _STANDARD_ATTRS and key not in CONTEXT_FIELDS and value is not None
        }
        if extras:
            data["context"] = extras
        return json.dumps(data, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO") -> None:
    """Route the root logger through a single JSON stream handler. Idempotent."""
    level = level.upper()
    config: Dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "request_context": {"()": "simosmaths.logging_context.RequestContextFilter"},
        },
        "formatters": {
            "json": {
                "()": "simosmaths.logging_utils.JSONFormatter",
                "datefmt": "%Y-%m-%dT%H:%M:%S%z",
            },
        },
        "handlers": {
            "stdout": {
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stdout",
                "formatter": "json",
                "filters": ["request_context"],
            },
        },
        "loggers": {
            # RequestContextMiddleware writes the access log.
            "uvicorn.access": {"level": "WARNING"},
            "httpx": {"level": "WARNING"},
            "stripe": {"level": "WARNING"},
        },
        "root": {"handlers": ["stdout"], "level": level},
    }
    dictConfig(config)


__all__ = ["JSONFormatter", "setup_logging"]
