"""Error types raised by the view counting core and its stores."""
from __future__ import annotations


class ViewCounterError(Exception):
    """Base error for view counter failures."""


class InvalidViewRequestError(ViewCounterError, ValueError):
    """Raised when an item or client identifier is empty."""


class CacheNotReadyError(ViewCounterError):
    """Raised when the cache is used before ``load()`` completed or after ``close()``."""


class CacheStateError(ViewCounterError):
    """Raised when a lifecycle hook is invoked out of order."""


class CacheLoadError(ViewCounterError):
    """Raised when the durable state cannot be loaded into the cache."""


class DurableStoreError(ViewCounterError):
    """Raised by store implementations when a read or write fails."""


class DurableWriteError(ViewCounterError):
    """Raised when a write could not be persisted after all retries."""

    def __init__(self, item_id: str, operation: str, attempts: int) -> None:
        super().__init__(
            f"{operation} for item {item_id!r} failed after {attempts} attempt(s)"
        )
        self.item_id = item_id
        self.operation = operation
        self.attempts = attempts


class ItemNotFoundError(ViewCounterError):
    """Raised when an item is not present in the cache."""

    def __init__(self, item_id: str) -> None:
        super().__init__(f"item {item_id!r} not found")
        self.item_id = item_id


class ItemAlreadyExistsError(ViewCounterError):
    """Raised when explicitly creating an item that is already tracked."""

    def __init__(self, item_id: str) -> None:
        super().__init__(f"item {item_id!r} already exists")
        self.item_id = item_id
