"""
Logging setup for the ActiveRabbit client.

The package logs through the standard ``logging`` module under the
``activerabbit`` logger. A ``NullHandler`` is attached so nothing is emitted
unless the host application configures logging or calls
:func:`configure_logging`.
"""

from __future__ import annotations

import logging

LOGGER_NAME = "activerabbit"
_DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

logging.getLogger(LOGGER_NAME).addHandler(logging.NullHandler())


def get_logger(name: str | None = None) -> logging.Logger:
    """Return the package logger, or a child of it when ``name`` is given."""
    if name:
        return logging.getLogger(f"{LOGGER_NAME}.{name}")
    return logging.getLogger(LOGGER_NAME)


def configure_logging(
    level: int | str = logging.INFO,
    handler: logging.Handler | None = None,
    fmt: str = _DEFAULT_FORMAT,
) -> logging.Logger:
    """
    Attach a handler to the package logger.

    Args:
        level: Log level for the ``activerabbit`` logger
        handler: Handler to attach (defaults to a ``StreamHandler`` on stderr)
        fmt: Format string for the handler

    Returns:
        The configured package logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    logger.setLevel(level)

    if handler is None:
        handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(fmt))

    for existing in list(logger.handlers):
        if getattr(existing, "_activerabbit_handler", False):
            logger.removeHandler(existing)
    handler._activerabbit_handler = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    return logger
