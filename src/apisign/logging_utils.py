from __future__ import annotations

import json
import logging
import os
from datetime import UTC, datetime
from typing import Any

from apisign.logging_context import LOGGING_CONTEXT_FIELDS, get_logging_context
from apisign.security.redaction import redact_data

# Attributes every LogRecord carries; anything else was attached by the caller.
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "extra"}

# Transport loggers and the env vars that override their level.
_HTTP_LOGGERS = {"httpx": "HTTPX_LOG_LEVEL", "httpcore": "HTTPCORE_LOG_LEVEL"}


def _caller_fields(record: logging.LogRecord) -> dict[str, Any]:
    fields: dict[str, Any] = {}
    nested = getattr(record, "extra", None)
    if isinstance(nested, dict):
        fields.update(nested)
    for key, value in vars(record).items():
        if key not in _RECORD_ATTRS:
            fields.setdefault(key, value)
    return fields


class JsonFormatter(logging.Formatter):
    """One redacted JSON object per record, with request context fields."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in _caller_fields(record).items():
            payload.setdefault(key, value)

        context = get_logging_context()
        payload.update({field: context.get(field) for field in LOGGING_CONTEXT_FIELDS})

        if record.exc_info:
            exc_type, exc_value, _ = record.exc_info
            payload["error_type"] = exc_type.__name__ if exc_type else "Exception"
            payload["error_message"] = "" if exc_value is None else str(exc_value)
            payload["traceback"] = self.formatException(record.exc_info)
        elif record.exc_text:
            payload["traceback"] = record.exc_text

        return json.dumps(redact_data(payload), default=str)


def _parse_level(raw: str | int | None, default: int) -> int:
    if isinstance(raw, int):
        return raw
    if raw is None or not str(raw).strip():
        return default
    level = logging.getLevelName(str(raw).strip().upper())
    return level if isinstance(level, int) else default


def setup_logging(level: str | int | None = None) -> None:
    """Route the root logger through ``JsonFormatter``.

    ``level`` falls back to ``LOG_LEVEL`` and then INFO. The httpx and httpcore
    loggers stay at WARNING unless the root level is DEBUG, and can be pinned
    with ``HTTPX_LOG_LEVEL`` / ``HTTPCORE_LOG_LEVEL``.
    """
    root_level = _parse_level(level if level is not None else os.getenv("LOG_LEVEL"), logging.INFO)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(root_level)

    http_default = logging.DEBUG if root_level <= logging.DEBUG else logging.WARNING
    for logger_name, env_name in _HTTP_LOGGERS.items():
        logging.getLogger(logger_name).setLevel(_parse_level(os.getenv(env_name), http_default))
