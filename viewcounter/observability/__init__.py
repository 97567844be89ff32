"""Observability utilities for metrics and logging."""
from viewcounter.observability.logging import get_logger, setup_structured_logging
from viewcounter.observability.metrics import (
    CACHED_ITEMS,
    VIEW_REQUESTS_COUNTER,
    record_load,
    record_view_outcome,
    record_write_failure,
    record_write_retry,
)

__all__ = [
    "CACHED_ITEMS",
    "VIEW_REQUESTS_COUNTER",
    "get_logger",
    "record_load",
    "record_view_outcome",
    "record_write_failure",
    "record_write_retry",
    "setup_structured_logging",
]
