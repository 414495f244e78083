"""Structured logging for moka.

Loggers are structlog wrappers around stdlib loggers under the ``moka``
namespace, so nothing is printed unless the host application (or
``MOKA_VERBOSE``) enables the ``moka`` logger.
"""

import logging
import sys

import structlog

ROOT = "moka"

# installed by configure_logging
_handler: logging.Handler | None = None

_PROCESSORS = [
    structlog.stdlib.filter_by_level,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
    structlog.processors.KeyValueRenderer(key_order=["event", "logger", "level"]),
]


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a bound logger for a module (typically ``__name__``)."""
    return structlog.wrap_logger(
        logging.getLogger(name),
        processors=_PROCESSORS,
        wrapper_class=structlog.stdlib.BoundLogger,
    )


def configure_logging(level: str = "DEBUG", stream=None) -> logging.Handler:
    """Send ``moka`` log events at *level* and above to *stream* (stderr).

    Replaces any handler installed by a previous call. Returns the handler.
    """
    global _handler

    logger = logging.getLogger(ROOT)
    if _handler is not None:
        logger.removeHandler(_handler)

    _handler = logging.StreamHandler(stream or sys.stderr)
    _handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(_handler)
    logger.setLevel(getattr(logging, level.upper()))
    return _handler
