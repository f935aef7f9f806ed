"""Logger helpers shared by the core and the adapters."""

import logging

ROOT_LOGGER_NAME = "influxstream"


def get_logger(name: str) -> logging.Logger:
    """Return a logger under the ``influxstream`` hierarchy.

    Args:
        name: Usually ``__name__`` of the calling module.

    Returns:
        The standard library logger for ``name``.
    """
    if name != ROOT_LOGGER_NAME and not name.startswith(ROOT_LOGGER_NAME + "."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


def log_exception(message: str, **attributes: str | int | float | bool) -> None:
    """Log the exception being handled at ERROR level with its traceback.

    Args:
        message: The log message.
        **attributes: Extra structured fields attached to the record.
    """
    get_logger(__name__).error(message, exc_info=True, extra=attributes)
