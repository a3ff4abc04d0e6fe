"""Structured JSON rendering of client log records."""

import enum
import json
import logging
from datetime import UTC, datetime

from bopmaps_client.constants import SERVICE_NAME

# Attributes callers attach through ``extra=`` that are copied into the entry
# when present: the identity domain of an auth event, and the classification
# and attempt number of a retried request.
CONTEXT_FIELDS = ("domain", "error_kind", "attempt", "max_retries", "status_code")


def _plain(value: object) -> object:
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, bool | int | float | str):
        return value
    return str(value)


class JSONLogFormatter(logging.Formatter):
    """One JSON object per line, e.g.::

        {"ts": "2026-01-01T12:00:00.000Z", "level": "warning", "service": "bopmaps-client",
         "logger": "bopmaps_client.http.retry", "msg": "...", "error_kind": "timeout", "attempt": 1}

    Warnings and errors also carry ``where`` (module:line).
    """

    def __init__(self, service: str = SERVICE_NAME, context_fields: tuple[str, ...] = CONTEXT_FIELDS) -> None:
        super().__init__()
        self._service = service
        self._context_fields = context_fields

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=UTC)
        entry: dict[str, object] = {
            "ts": created.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname.lower(),
            "service": self._service,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for name in self._context_fields:
            value = getattr(record, name, None)
            if value is not None:
                entry[name] = _plain(value)

        if record.levelno >= logging.WARNING:
            entry["where"] = f"{record.module}:{record.lineno}"
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            entry["stack"] = self.formatStack(record.stack_info)

        return json.dumps(entry, ensure_ascii=False)
