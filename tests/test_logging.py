"""Tests for structured logging."""

import json
import logging
import sys

import pytest

from bopmaps_client.constants import IdentityDomain
from bopmaps_client.http.envelope import ErrorKind, ResponseEnvelope
from bopmaps_client.http.retry import RetryPolicy
from bopmaps_client.logging import JSONLogFormatter, configure_logging, configure_logging_from_settings
from bopmaps_client.settings import ClientSettings


def _record(message: str, **extra: object) -> logging.LogRecord:
    record = logging.LogRecord("bopmaps_client.auth.tokens", logging.INFO, __file__, 1, message, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_fields() -> None:
    """Records render as one JSON object with service and domain."""
    output = JSONLogFormatter().format(_record("Refreshed access token", domain="spotify"))

    entry = json.loads(output)
    assert entry["level"] == "info"
    assert entry["service"] == "bopmaps-client"
    assert entry["logger"] == "bopmaps_client.auth.tokens"
    assert entry["msg"] == "Refreshed access token"
    assert entry["domain"] == "spotify"
    assert entry["ts"].endswith("Z")
    assert "where" not in entry


def test_json_formatter_without_context() -> None:
    """Context keys are omitted when not supplied."""
    entry = json.loads(JSONLogFormatter(service="custom").format(_record("hello")))
    assert not {"domain", "error_kind", "attempt", "max_retries", "status_code"} & entry.keys()
    assert entry["service"] == "custom"


def test_json_formatter_renders_enums_as_values() -> None:
    """Enum context values are written as their plain values."""
    record = _record("retrying", domain=IdentityDomain.SPOTIFY, error_kind=ErrorKind.TIMEOUT, attempt=2)
    record.levelno, record.levelname = logging.WARNING, "WARNING"

    entry = json.loads(JSONLogFormatter().format(record))

    assert entry["domain"] == "spotify"
    assert entry["error_kind"] == "timeout"
    assert entry["attempt"] == 2
    assert entry["where"] == "test_logging:1"


def test_json_formatter_custom_context_fields() -> None:
    """Only the configured context fields are copied."""
    formatter = JSONLogFormatter(context_fields=("request_path",))
    entry = json.loads(formatter.format(_record("sent", request_path="/pins/", domain="app")))
    assert entry["request_path"] == "/pins/"
    assert "domain" not in entry


async def test_retry_records_carry_context(caplog: pytest.LogCaptureFixture) -> None:
    """Retry warnings expose the error kind and attempt as structured fields."""

    async def no_sleep(_: float) -> None:
        return None

    async def operation() -> ResponseEnvelope:
        return ResponseEnvelope.failure(ErrorKind.NETWORK, "No internet connection")

    policy = RetryPolicy(max_retries=1, initial_delay=0.5, sleep=no_sleep)
    with caplog.at_level(logging.WARNING, logger="bopmaps_client.http.retry"):
        await policy.execute(operation)

    entries = [json.loads(JSONLogFormatter().format(record)) for record in caplog.records]
    assert [(e["error_kind"], e.get("attempt"), e["max_retries"]) for e in entries] == [
        ("network", 1, 1),
        ("network", None, 1),
    ]


def test_json_formatter_exception() -> None:
    """Exception tracebacks are included."""
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        record = logging.LogRecord("x", logging.ERROR, __file__, 1, "failed", (), None)
        record.exc_info = sys.exc_info()

    entry = json.loads(JSONLogFormatter().format(record))
    assert "RuntimeError: boom" in entry["exception"]


@pytest.fixture
def restore_root_logger():  # type: ignore[no-untyped-def]
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


def test_configure_logging_json(restore_root_logger: logging.Logger) -> None:
    """configure_logging installs a single JSON handler."""
    configure_logging("DEBUG")

    assert restore_root_logger.level == logging.DEBUG
    assert len(restore_root_logger.handlers) == 1
    assert isinstance(restore_root_logger.handlers[0].formatter, JSONLogFormatter)


def test_configure_logging_plain(restore_root_logger: logging.Logger) -> None:
    """Plain output uses a standard formatter."""
    configure_logging(logging.WARNING, json_output=False)

    formatter = restore_root_logger.handlers[0].formatter
    assert formatter is not None
    assert not isinstance(formatter, JSONLogFormatter)


def test_configure_logging_from_settings(restore_root_logger: logging.Logger) -> None:
    """LOG_LEVEL and LOG_JSON drive the root logger setup."""
    configure_logging_from_settings(ClientSettings(LOG_LEVEL="warning", LOG_JSON=False))

    assert restore_root_logger.level == logging.WARNING
    assert not isinstance(restore_root_logger.handlers[0].formatter, JSONLogFormatter)
