"""JSON logging for the task push service."""

from __future__ import annotations

import json
import logging
import logging.config
from datetime import datetime, timezone
from typing import Any

from .config import Settings
from .context import get_cycle_task_id, get_request_id

# Attributes every LogRecord carries; anything else arrived through ``extra``.
_STANDARD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}

_SERVER_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")


class JsonLogFormatter(logging.Formatter):
    """One JSON object per record: fixed envelope first, then ``extra`` fields."""

    def __init__(self, *, defaults: dict[str, Any] | None = None) -> None:
        super().__init__()
        self._defaults = dict(defaults or {})

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload = {
            **self._defaults,
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", "-"),
        }
        extras = {key: value for key, value in vars(record).items() if key not in _STANDARD_ATTRS}
        for key, value in extras.items():
            payload.setdefault(key, value)
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


class RequestContextFilter(logging.Filter):
    """Stamp the bound request id, and the running cycle's task id, on records."""

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        record.request_id = get_request_id()
        task_id = get_cycle_task_id()
        if task_id is not None and not hasattr(record, "task_id"):
            record.task_id = task_id
        return True


def token_preview(token: str) -> str:
    """Return a log-safe prefix of a device token."""

    return f"{token[:12]}..." if len(token) > 12 else token


def configure_logging(settings: Settings) -> None:
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.captureWarnings(True)

    handler_only = {"handlers": ["default"], "level": level, "propagate": False}
    loggers: dict[str, Any] = {name: dict(handler_only) for name in _SERVER_LOGGERS}
    loggers[""] = {"handlers": ["default"], "level": level}
    loggers["httpx"] = {**handler_only, "level": logging.WARNING}

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "json": {
                    "()": JsonLogFormatter,
                    "defaults": {"service": settings.project_name, "environment": settings.environment},
                }
            },
            "filters": {"request_context": {"()": RequestContextFilter}},
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "stream": "ext://sys.stdout",
                    "formatter": "json",
                    "level": level,
                    "filters": ["request_context"],
                }
            },
            "loggers": loggers,
        }
    )


__all__ = ["JsonLogFormatter", "RequestContextFilter", "configure_logging", "token_preview"]
