"""
Logging configuration.

Thin wrapper over the standard logging module. Call sites pass structured
context through ``extra={...}``; the formatter renders those fields as
``key=value`` pairs after the message.
"""

import logging
import sys

# Attributes present on every LogRecord; anything else came from ``extra``.
_RESERVED_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
) | {"message", "asctime", "taskName"}


class ExtraFieldsFormatter(logging.Formatter):
    """Formatter that appends ``extra`` fields to the rendered message."""

    def format(self, record: logging.LogRecord) -> str:
        rendered = super().format(record)
        extras = {
            key: value for key, value in record.__dict__.items() if key not in _RESERVED_ATTRS
        }
        if not extras:
            return rendered
        fields = " ".join(f"{key}={value}" for key, value in sorted(extras.items()))
        return f"{rendered} | {fields}"


def init_logging(level: str | int = "INFO") -> None:
    """
    Configure the root logger for a host process.

    Args:
        level: Log level name or number.
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        ExtraFieldsFormatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")
    )
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level.upper() if isinstance(level, str) else level)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a module logger."""
    return logging.getLogger(name)
