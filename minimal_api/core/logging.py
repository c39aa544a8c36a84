"""Process-wide logging setup.

Log calls across the service are event names with structured ``extra``
fields (``rate_limit.rejected``, ``cache.evicted_by_tag``, ``http.request``).
This module turns those records into one JSON object per line, masks
secrets in the fields and in logged request headers, and stamps every
record with the id of the request being served.
"""

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Iterable, Mapping

from minimal_api.core.config import LogSettings

REDACTED = "[REDACTED]"

SENSITIVE_KEYS_DEFAULT: frozenset[str] = frozenset(
    {
        "api_key",
        "x-api-key",
        "authorization",
        "proxy-authorization",
        "token",
        "secret",
        "password",
        "cookie",
        "set-cookie",
    }
)

# Attributes every LogRecord carries; anything else on a record came from ``extra``
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "asctime",
    "taskName",
}

_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)


def set_request_id(request_id: str | None) -> None:
    _request_id.set(request_id)


def get_request_id() -> str | None:
    return _request_id.get()


def clear_request_id() -> None:
    _request_id.set(None)


def _mask(value: Any, sensitive_keys: frozenset[str]) -> Any:
    if isinstance(value, Mapping):
        return {
            key: REDACTED if str(key).lower() in sensitive_keys else _mask(item, sensitive_keys)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return type(value)(_mask(item, sensitive_keys) for item in value)
    return value


def redact_headers(
    headers: Iterable[tuple[str, str]],
    sensitive_keys: Iterable[str] | None = None,
) -> dict[str, str]:
    """Return request headers as a dict with secret values masked.

    Args:
        headers: Header name/value pairs (e.g. ``request.headers.items()``).
        sensitive_keys: Header names to mask; defaults to SENSITIVE_KEYS_DEFAULT.

    Returns:
        Lower-cased header names mapped to values safe for logging.
    """

    keys = frozenset(sensitive_keys or SENSITIVE_KEYS_DEFAULT)
    return {name.lower(): REDACTED if name.lower() in keys else value for name, value in headers}


def event_fields(record: logging.LogRecord) -> dict[str, Any]:
    """Return the ``extra`` fields attached to a record."""

    return {
        key: value
        for key, value in vars(record).items()
        if key not in _RECORD_ATTRS and not key.startswith("_")
    }


class RequestIdFilter(logging.Filter):
    """Stamp records with the request id of the current context."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401
        if getattr(record, "request_id", None) is None:
            request_id = get_request_id()
            if request_id:
                record.request_id = request_id
        return True


class SensitiveDataFilter(logging.Filter):
    """Mask sensitive event fields before any formatter sees them."""

    def __init__(self, sensitive_keys: Iterable[str] | None = None) -> None:
        super().__init__()
        self.sensitive_keys = frozenset(sensitive_keys or SENSITIVE_KEYS_DEFAULT)

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401
        for key, value in event_fields(record).items():
            if key.lower() in self.sensitive_keys:
                setattr(record, key, REDACTED)
            else:
                setattr(record, key, _mask(value, self.sensitive_keys))
        return True


class JsonFormatter(logging.Formatter):
    """Render a record as a single JSON line.

    The line holds the timestamp, level, logger, event message and the
    current request id, followed by the record's event fields.
    """

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        request_id = getattr(record, "request_id", None) or get_request_id()
        if request_id:
            payload["request_id"] = request_id
        payload.update(event_fields(record))
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def _build_handler(log_settings: LogSettings) -> logging.Handler:
    if log_settings.output.lower() != "file":
        return logging.StreamHandler(sys.stdout)

    file_path = Path(log_settings.file_path or "logs/minimal-api.log")
    file_path.parent.mkdir(parents=True, exist_ok=True)
    if log_settings.max_bytes:
        return RotatingFileHandler(
            file_path,
            maxBytes=log_settings.max_bytes,
            backupCount=log_settings.backup_count,
            encoding="utf-8",
        )
    return logging.FileHandler(file_path, encoding="utf-8")


def configure_logging(log_settings: LogSettings) -> None:
    """Install the service's single root handler.

    Args:
        log_settings: Level, format (``json`` or ``plain``) and destination.
    """

    handler = _build_handler(log_settings)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter())
    if log_settings.format.lower() == "plain":
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    else:
        handler.setFormatter(JsonFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, log_settings.level.upper(), logging.INFO))

    # uvicorn's records go through the same handler instead of its own
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers.clear()
        uvicorn_logger.propagate = True
