"""Logging setup for the influxstream entry points.

The core only creates loggers through ``get_logger``; the CLI and the request
adapters call ``configure_logging`` once at start-up.
"""

import logging
import sys
from typing import TextIO

from influxstream.core.logs import ROOT_LOGGER_NAME, get_logger, log_exception

__all__ = [
    "ExtraFieldsFormatter",
    "configure_logging",
    "get_logger",
    "log_exception",
]

DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# Standard LogRecord attributes that should not be treated as extra fields
_STANDARD_LOGRECORD_ATTRS = frozenset(
    {
        "args",
        "asctime",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "message",
        "module",
        "msecs",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "taskName",
        "thread",
        "threadName",
    }
)


class ExtraFieldsFormatter(logging.Formatter):
    """Formatter that appends ``extra=`` attributes as ``key=value`` pairs.

    Example:
        ```python
        logger.error("write failed", extra={"table": "cpu", "chunk": 3})
        # 2024-01-01 00:00:00,000 ERROR influxstream: write failed table=cpu chunk=3
        ```
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format the record, then append its scalar extra attributes.

        Args:
            record: The log record to format.
        """
        message = super().format(record)
        extras = [
            f"{key}={value}"
            for key, value in record.__dict__.items()
            if key not in _STANDARD_LOGRECORD_ATTRS
            and not key.startswith("_")
            and isinstance(value, (str, int, float, bool))
        ]
        if not extras:
            return message
        # Keep the traceback, if any, below the first line.
        first, _, rest = message.partition("\n")
        line = f"{first} {' '.join(extras)}"
        return f"{line}\n{rest}" if rest else line


def configure_logging(
    level: str | int = "INFO", stream: TextIO | None = None
) -> logging.Logger:
    """Install one stream handler on the ``influxstream`` logger.

    Calling it again replaces the handler installed by the previous call
    instead of adding a second one.

    Args:
        level: Level name or number.
        stream: Output stream. Defaults to stderr.

    Returns:
        The configured ``influxstream`` logger.
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(logger.handlers):
        if getattr(handler, "_influxstream_handler", False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(ExtraFieldsFormatter(DEFAULT_FORMAT))
    handler._influxstream_handler = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    logger.setLevel(level.upper() if isinstance(level, str) else level)
    return logger
