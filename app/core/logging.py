"""Structured logging for the Advice Personalization Engine.

Lines are key=value pairs. Context passed with `extra={...}` (flow, agent_id,
counts) and `log_with_context(**fields)` is appended after the message.
"""

import logging
import sys
from typing import Any

# Attributes every LogRecord carries; anything else arrived via `extra=`
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    "message",
    "asctime",
    "extra_data",
}


class StructuredFormatter(logging.Formatter):
    """key=value structured log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "module": record.module,
            "function": record.funcName,
            "message": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key not in _RECORD_ATTRS and value is not None:
                log_data[key] = value

        if hasattr(record, "extra_data"):
            log_data.update({k: v for k, v in record.extra_data.items() if v is not None})

        if record.exc_info:
            log_data["exc"] = self.formatException(record.exc_info).replace("\n", " | ")

        return " ".join(f"{k}={v}" for k, v in log_data.items())


def get_logger(name: str) -> logging.Logger:
    """
    Get a configured logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger writing structured lines to stdout, DEBUG in dev and INFO otherwise
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(StructuredFormatter())
        logger.addHandler(handler)

        try:
            from app.core.config import get_settings

            level = logging.DEBUG if get_settings().ENGINE_ENV == "dev" else logging.INFO
        except Exception:
            # Settings unavailable (e.g. env not loaded yet)
            level = logging.INFO
        logger.setLevel(level)

    return logger


def log_with_context(logger: logging.Logger, level: int, msg: str, **kwargs: Any) -> None:
    """
    Log with request-scoped context fields.

    Args:
        logger: Logger instance
        level: Log level (logging.INFO, etc.)
        msg: Log message
        **kwargs: Context fields (request_id, flow, counts, ...)
    """
    extra: dict[str, Any] = {"request_id": kwargs.pop("request_id", None), "extra_data": kwargs}
    logger.log(level, msg, extra=extra)
