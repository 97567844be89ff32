"""JSON logging for the view counter service."""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict

ROOT_LOGGER_NAME = "viewcounter"

# Attributes every LogRecord carries; anything else arrived through ``extra=``.
_STANDARD_ATTRIBUTES = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", (), None).__dict__
) | {"message", "asctime", "taskName"}


class StructuredLogFormatter(logging.Formatter):
    """Render a record and its ``extra`` fields as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(
            (key, value)
            for key, value in record.__dict__.items()
            if key not in _STANDARD_ATTRIBUTES and not key.startswith("_")
        )
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)


def setup_structured_logging(level: int = logging.INFO) -> None:
    """Attach the JSON handler to the package logger once."""

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    if any(isinstance(h.formatter, StructuredLogFormatter) for h in logger.handlers):
        return

    handler = logging.StreamHandler()
    handler.setFormatter(StructuredLogFormatter())
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False


def get_logger(name: str) -> logging.Logger:
    setup_structured_logging()
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


__all__ = ["get_logger", "setup_structured_logging", "StructuredLogFormatter"]
