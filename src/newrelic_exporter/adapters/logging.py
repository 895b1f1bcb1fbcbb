"""Logging setup for the exporter process.

Modules log through ``logging.getLogger(__name__)``; this adapter attaches
a single stream handler to the package logger when the CLI starts.
"""

import logging
import sys

PACKAGE_LOGGER = "newrelic_exporter"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

VALID_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}

# Names accepted on the command line, lower case, with the "warn" alias
LEVEL_CHOICES = ("debug", "info", "warn", "warning", "error", "critical")


def parse_level(level: str) -> int:
    """Convert a level name (case-insensitive, ``warn`` accepted) to a number.

    Raises:
        ValueError: The name is not a known log level.
    """
    name = level.upper()
    if name == "WARN":
        name = "WARNING"
    if name not in VALID_LEVELS:
        raise ValueError(f"Unknown log level: {level!r}")
    return logging.getLevelName(name)


def configure_logging(level: str = "info", stream=None) -> logging.Handler:
    """Attach a formatted stream handler to the package logger.

    Calling it again replaces the previously installed handler.

    Args:
        level: Log level name.
        stream: Output stream (default: stderr).

    Returns:
        The installed handler.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        if getattr(handler, "_newrelic_exporter", False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._newrelic_exporter = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    logger.setLevel(parse_level(level))
    logger.propagate = False
    return handler
