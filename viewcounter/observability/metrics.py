"""Prometheus metrics for view counting and cache consistency."""
from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

VIEW_REQUESTS_COUNTER = Counter(
    "viewcounter_view_requests_total",
    "View requests handled by the cache, by outcome.",
    labelnames=("outcome",),
)
DURABLE_WRITE_RETRIES_COUNTER = Counter(
    "viewcounter_durable_write_retries_total",
    "Durable store calls that failed and were retried or abandoned.",
    labelnames=("operation",),
)
DURABLE_WRITE_FAILURES_COUNTER = Counter(
    "viewcounter_durable_write_failures_total",
    "Durable store calls that exhausted every retry.",
    labelnames=("operation",),
)
CACHE_LOAD_DURATION = Histogram(
    "viewcounter_cache_load_duration_seconds",
    "Time spent rebuilding the cache from the durable store.",
)
CACHE_LOAD_REPAIRS_COUNTER = Counter(
    "viewcounter_cache_load_repairs_total",
    "Inconsistencies repaired while loading, by kind.",
    labelnames=("kind",),
)
CACHED_ITEMS = Gauge(
    "viewcounter_cached_items",
    "Number of item records held in memory.",
)


def record_view_outcome(outcome: str) -> None:
    """Count a view request as ``counted``, ``duplicate``, ``race_lost`` or ``failed``."""

    VIEW_REQUESTS_COUNTER.labels(outcome=outcome).inc()


def record_write_retry(operation: str) -> None:
    DURABLE_WRITE_RETRIES_COUNTER.labels(operation=operation).inc()


def record_write_failure(operation: str) -> None:
    DURABLE_WRITE_FAILURES_COUNTER.labels(operation=operation).inc()


def record_load(duration: float, items: int, orphaned: int, repaired: int) -> None:
    CACHE_LOAD_DURATION.observe(duration)
    CACHED_ITEMS.set(items)
    if orphaned:
        CACHE_LOAD_REPAIRS_COUNTER.labels(kind="orphaned_receipts").inc(orphaned)
    if repaired:
        CACHE_LOAD_REPAIRS_COUNTER.labels(kind="item_record").inc(repaired)


__all__ = [
    "CACHE_LOAD_DURATION",
    "CACHE_LOAD_REPAIRS_COUNTER",
    "CACHED_ITEMS",
    "DURABLE_WRITE_FAILURES_COUNTER",
    "DURABLE_WRITE_RETRIES_COUNTER",
    "VIEW_REQUESTS_COUNTER",
    "record_load",
    "record_view_outcome",
    "record_write_failure",
    "record_write_retry",
]
