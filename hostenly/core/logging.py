"""Structured key=value logging for Hostenly.

Pipeline logs are correlated by a fixed set of context fields. They are
attached to the record as attributes and always rendered in the same order,
right after the message; any other `extra_data` follows them.
"""

import logging
import sys
from typing import Any

# Rendered in this order when present on a record
CONTEXT_FIELDS = ("event_id", "property_id", "conversation_id", "state")


def _render(value: Any) -> str:
    text = str(value)
    if not text or any(ch.isspace() for ch in text):
        return '"' + text.replace('"', '\\"') + '"'
    return text


class StructuredFormatter(logging.Formatter):
    """Key=value formatter with pipeline context promoted to fixed columns."""

    def format(self, record: logging.LogRecord) -> str:
        pairs: list[tuple[str, Any]] = [
            ("timestamp", self.formatTime(record, self.datefmt)),
            ("level", record.levelname),
            ("logger", record.name),
            ("message", record.getMessage()),
        ]

        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                pairs.append((field, value))

        extra_data = getattr(record, "extra_data", None) or {}
        pairs.extend(extra_data.items())

        line = " ".join(f"{key}={_render(value)}" for key, value in pairs)
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def _level_for_env() -> int:
    try:
        from hostenly.core.config import get_settings

        return logging.DEBUG if get_settings().HOSTENLY_ENV == "dev" else logging.INFO
    except Exception:
        # Settings unavailable (e.g. at import time without env): stay at INFO
        return logging.INFO


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger writing structured lines to stdout.

    Args:
        name: Logger name (typically __name__)
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(StructuredFormatter())
        logger.addHandler(handler)
        logger.setLevel(_level_for_env())
    return logger


def log_with_context(logger: logging.Logger, level: int, msg: str, **fields: Any) -> None:
    """
    Log with pipeline context.

    `event_id`, `property_id`, `conversation_id` and `state` become record
    attributes; anything else goes to `extra_data`.
    """
    extra: dict[str, Any] = {name: fields.pop(name) for name in CONTEXT_FIELDS if name in fields}
    extra["extra_data"] = fields
    logger.log(level, msg, extra=extra)
