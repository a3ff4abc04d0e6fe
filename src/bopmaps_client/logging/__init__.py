"""Structured logging: JSON formatter and root-logger setup."""

from bopmaps_client.logging.formatter import JSONLogFormatter
from bopmaps_client.logging.setup import configure_logging, configure_logging_from_settings

__all__ = ["JSONLogFormatter", "configure_logging", "configure_logging_from_settings"]
