"""Logging configuration for applications embedding the client."""

import logging
import sys

from bopmaps_client.logging.formatter import JSONLogFormatter
from bopmaps_client.settings import ClientSettings, get_settings

PLAIN_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str | int = logging.INFO, *, json_output: bool = True) -> None:
    """Install a single stdout handler on the root logger.

    Replaces any handlers already attached to the root logger.
    """
    root = logging.getLogger()
    root.setLevel(level)
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONLogFormatter() if json_output else logging.Formatter(PLAIN_FORMAT))
    root.addHandler(handler)


def configure_logging_from_settings(settings: ClientSettings | None = None) -> None:
    """Apply ``LOG_LEVEL`` and ``LOG_JSON`` from client settings."""
    settings = settings or get_settings()
    configure_logging(settings.LOG_LEVEL.upper(), json_output=settings.LOG_JSON)
