"""Structured logging for throttle, debounce and lock events.

Every library logger emits a dotted event name as the message and a few
structured fields through ``extra``. Coordination keys never appear in clear:
they are logged as ``key_hash``. Stored state and user payloads are never
passed to a logger, and the JSON formatter only promotes the fields listed in
``LOGGED_FIELDS``.

The library does not install handlers. Applications call
``configure_logging`` at startup to get one JSON (or plain) line per event.
"""

from __future__ import annotations

import hashlib
import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from logging import LogRecord

from callgate.core.config import LogSettings, settings

_call_id_var: ContextVar[str | None] = ContextVar("call_id", default=None)

# Structured fields emitted by callgate loggers, in output order.
LOGGED_FIELDS: tuple[str, ...] = (
    "key_hash",
    "key_type",
    "executions",
    "interval_ms",
    "lease_ms",
    "limit",
    "window_ms",
    "error_type",
    "error_code",
    "error_message",
    "has_details",
    "status_code",
    "request_method",
    "request_path",
)


def set_call_id(call_id: str | None) -> None:
    """Bind a call id (the debounce token) to the current task's context."""

    _call_id_var.set(call_id)


def get_call_id() -> str | None:
    return _call_id_var.get()


def hash_key(key: str) -> str:
    """Hash a coordination key for logging without exposing its contents."""
    return hashlib.sha256(key.encode()).hexdigest()[:16]


class CallIdFilter(logging.Filter):
    """Copy the context call id onto records that carry none."""

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        if getattr(record, "call_id", None) is None:
            record.call_id = get_call_id()
        return True


class JsonFormatter(logging.Formatter):
    """Render a record as one JSON object.

    Only ``LOGGED_FIELDS`` are copied from the record, so arbitrary ``extra``
    values (for example a stored state blob) are dropped rather than logged.
    """

    def __init__(self, fields: tuple[str, ...] = LOGGED_FIELDS) -> None:
        super().__init__()
        self.fields = fields

    def format(self, record: LogRecord) -> str:  # noqa: D401
        data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "event": record.getMessage(),
        }

        call_id = getattr(record, "call_id", None) or get_call_id()
        if call_id:
            data["call_id"] = call_id

        for field in self.fields:
            value = getattr(record, field, None)
            if value is not None:
                data[field] = value

        if record.exc_info:
            data["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(data, default=str)


def configure_logging(log_settings: LogSettings | None = None) -> None:
    """Send the ``callgate`` logger tree to stdout.

    Args:
        log_settings: Optional log settings; defaults to global settings if omitted.
    """

    cfg = log_settings or settings.log

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(CallIdFilter())
    if cfg.format.lower() == "plain":
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s %(call_id)s")
        )
    else:
        handler.setFormatter(JsonFormatter())

    library_logger = logging.getLogger("callgate")
    library_logger.handlers.clear()
    library_logger.addHandler(handler)
    library_logger.setLevel(getattr(logging, cfg.level.upper(), logging.INFO))
    library_logger.propagate = False
