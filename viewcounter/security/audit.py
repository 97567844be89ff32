"""Audit logging utilities."""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Any

AUDIT_LOGGER_NAME = "viewcounter.audit"


def configure_audit_logger(log_path: str) -> logging.Logger:
    """Route audit entries to a file rotated at midnight."""

    logger = logging.getLogger(AUDIT_LOGGER_NAME)
    if logger.handlers:
        return logger

    path = Path(log_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    handler = TimedRotatingFileHandler(
        path, when="midnight", backupCount=30, encoding="utf-8"
    )
    handler.setFormatter(logging.Formatter("%(message)s"))

    logger.setLevel(logging.INFO)
    logger.addHandler(handler)
    logger.propagate = False

    return logger


def record_audit_event(event: str, **details: Any) -> None:
    """Record an administrative action such as an item deletion."""

    payload = {
        "event": event,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        **details,
    }
    logging.getLogger(AUDIT_LOGGER_NAME).info(json.dumps(payload, sort_keys=True, default=str))
