"""Write-through cache of item records with per-client view deduplication."""
from __future__ import annotations

import threading
import time
from dataclasses import replace
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, TypeVar

from viewcounter.core.dedup import DedupIndex
from viewcounter.core.locks import KeyedLock
from viewcounter.core.records import PAYLOAD_FIELDS, ItemRecord, LoadReport, ViewResult
from viewcounter.exceptions import (
    CacheLoadError,
    CacheNotReadyError,
    CacheStateError,
    DurableStoreError,
    DurableWriteError,
    InvalidViewRequestError,
    ItemAlreadyExistsError,
    ItemNotFoundError,
)
from viewcounter.observability.logging import get_logger
from viewcounter.observability.metrics import (
    CACHED_ITEMS,
    record_load,
    record_view_outcome,
    record_write_failure,
    record_write_retry,
)

if TYPE_CHECKING:
    from viewcounter.store.base import ViewStore

logger = get_logger("core.cache")

T = TypeVar("T")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CacheManager:
    """Own the in-memory item table and dedup index and keep them in step with a store.

    Every mutation for an item runs under that item's lock and is persisted
    before the lock is released. A write that cannot be persisted within the
    retry budget is rolled back in memory and surfaced as
    :class:`DurableWriteError`, so a caller never sees ``counted=True`` for a
    view the store does not hold.
    """

    def __init__(
        self,
        store: ViewStore,
        *,
        max_write_attempts: int = 3,
        backoff_seconds: float = 0.05,
        max_backoff_seconds: float = 1.0,
        clock: Callable[[], datetime] = _utcnow,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_write_attempts <= 0:
            raise ValueError("max_write_attempts must be greater than zero")

        self._store = store
        self._max_write_attempts = max_write_attempts
        self._backoff_seconds = backoff_seconds
        self._max_backoff_seconds = max_backoff_seconds
        self._clock = clock
        self._sleep = sleep

        self._items: Dict[str, ItemRecord] = {}
        self._items_lock = threading.Lock()
        self._index = DedupIndex()
        # Receipts this process wrote but could neither back with a record
        # nor remove again.
        self._stranded = DedupIndex()
        self._locks = KeyedLock()
        self._ready = threading.Event()
        self._load_lock = threading.Lock()
        self._loaded = False

    @property
    def ready(self) -> bool:
        return self._ready.is_set()

    # Lifecycle

    def load(self) -> LoadReport:
        """Rebuild the table and index from the store; must finish before serving."""

        with self._load_lock:
            if self._loaded:
                raise CacheStateError("cache has already been loaded")

            started = time.perf_counter()
            try:
                records = self._store.list_items()
                receipts = self._store.list_receipts()
            except DurableStoreError as exc:
                logger.error("cache load failed", extra={"error": str(exc)})
                raise CacheLoadError("unable to read durable state") from exc

            items = {record.item_id: record for record in records}
            index = DedupIndex()
            orphaned: set[str] = set()
            for item_id, client_id in receipts:
                if item_id in items:
                    index.add(item_id, client_id)
                else:
                    orphaned.add(item_id)

            report = LoadReport(items=len(items), receipts=len(receipts))
            try:
                for item_id in sorted(orphaned):
                    dropped = self._store.delete_receipts_for(item_id)
                    logger.warning(
                        "dropped receipts without item record",
                        extra={"item_id": item_id, "receipts": dropped},
                    )
                    report.orphaned_items.append(item_id)

                now = self._clock()
                for item_id in sorted(items):
                    record = items[item_id]
                    repaired = self._reconcile(record, index.count(item_id), now)
                    if repaired is not record:
                        self._store.upsert_item(repaired)
                        items[item_id] = repaired
                        report.repaired_items.append(item_id)
            except DurableStoreError as exc:
                logger.error("cache repair failed", extra={"error": str(exc)})
                raise CacheLoadError("unable to repair durable state") from exc

            with self._items_lock:
                self._items = items
            self._index = index
            self._loaded = True
            self._ready.set()

            report.duration_seconds = time.perf_counter() - started
            record_load(
                report.duration_seconds,
                report.items,
                len(report.orphaned_items),
                len(report.repaired_items),
            )
            logger.info(
                "cache loaded",
                extra={
                    "items": report.items,
                    "receipts": report.receipts,
                    "orphaned": len(report.orphaned_items),
                    "repaired": len(report.repaired_items),
                    "duration_ms": round(report.duration_seconds * 1000, 2),
                },
            )
            return report

    def _reconcile(self, record: ItemRecord, receipts: int, now: datetime) -> ItemRecord:
        changes: dict[str, object] = {}
        if record.view_count != receipts:
            logger.warning(
                "view count disagrees with receipts",
                extra={
                    "item_id": record.item_id,
                    "stored": record.view_count,
                    "receipts": receipts,
                },
            )
            changes["view_count"] = receipts
        if record.created_at > now:
            logger.warning(
                "creation time in the future",
                extra={"item_id": record.item_id, "created_at": record.created_at},
            )
            changes["created_at"] = now
        return replace(record, **changes) if changes else record

    def close(self) -> None:
        """Drop all cached state; the manager must not be used afterwards."""

        self._ready.clear()
        with self._items_lock:
            self._items = {}
        self._index.clear()
        self._stranded.clear()
        CACHED_ITEMS.set(0)
        logger.info("cache closed")

    # Views

    def record_view(self, item_id: str, client_id: str) -> ViewResult:
        """Count a view for the item unless the client was already counted."""

        if not item_id or not client_id:
            raise InvalidViewRequestError("item_id and client_id must be non-empty")
        self._require_ready()

        with self._locks.hold(item_id):
            current = self._get(item_id)
            created = current is None
            if current is None:
                current = ItemRecord.new(item_id, self._clock())

            if self._index.has(item_id, client_id):
                record_view_outcome("duplicate")
                return ViewResult(view_count=current.view_count, counted=False)

            updated = replace(current, view_count=current.view_count + 1)
            self._index.add(item_id, client_id)
            self._put(updated)

            try:
                inserted = self._retrying(
                    "insert_receipt",
                    item_id,
                    lambda: self._store.insert_receipt_if_absent(item_id, client_id),
                )
                if not inserted and self._stranded.has(item_id, client_id):
                    # Left behind by an earlier failed attempt of ours.
                    logger.info(
                        "reclaiming stranded receipt",
                        extra={"item_id": item_id},
                    )
                    inserted = True
                if inserted:
                    self._persist_counted(updated, client_id)
                    self._stranded.discard(item_id, client_id)
            except DurableWriteError:
                self._index.discard(item_id, client_id)
                if created:
                    self._pop(item_id)
                else:
                    self._put(current)
                record_view_outcome("failed")
                raise

            if not inserted:
                # Another process holds the receipt; keep the client marked and
                # take the store's count instead of ours.
                resynced = self._resync(current)
                self._put(resynced)
                record_view_outcome("race_lost")
                logger.info(
                    "view already counted by another writer",
                    extra={"item_id": item_id},
                )
                return ViewResult(view_count=resynced.view_count, counted=False)

            record_view_outcome("counted")
            return ViewResult(view_count=updated.view_count, counted=True)

    def _persist_counted(self, updated: ItemRecord, client_id: str) -> None:
        try:
            self._retrying(
                "upsert_item", updated.item_id, lambda: self._store.upsert_item(updated)
            )
        except DurableWriteError:
            try:
                self._retrying(
                    "delete_receipt",
                    updated.item_id,
                    lambda: self._store.delete_receipt(updated.item_id, client_id),
                )
            except DurableWriteError:
                # The receipt stays behind; a retry from this client claims it
                # and load() recounts from receipts after a restart.
                self._stranded.add(updated.item_id, client_id)
                logger.error(
                    "receipt compensation failed",
                    extra={"item_id": updated.item_id},
                    exc_info=True,
                )
            else:
                self._stranded.discard(updated.item_id, client_id)
            raise

    def _resync(self, fallback: ItemRecord) -> ItemRecord:
        try:
            stored = self._store.get_item(fallback.item_id)
        except DurableStoreError:
            logger.warning(
                "unable to refresh item after lost race",
                extra={"item_id": fallback.item_id},
                exc_info=True,
            )
            return fallback
        if stored is None or stored.view_count < fallback.view_count:
            return fallback
        return stored

    def get_state(self, item_id: str) -> Optional[ItemRecord]:
        """Return the cached record, or None if the item was never observed."""

        self._require_ready()
        return self._get(item_id)

    def list_states(self) -> List[ItemRecord]:
        self._require_ready()
        with self._items_lock:
            records = list(self._items.values())
        return sorted(records, key=lambda record: (record.created_at, record.item_id))

    # Metadata

    def create_item(self, item_id: str, **payload) -> ItemRecord:
        """Register an item explicitly with its descriptive fields."""

        if not item_id:
            raise InvalidViewRequestError("item_id must be non-empty")
        self._check_payload(payload)
        self._require_ready()

        with self._locks.hold(item_id):
            if self._get(item_id) is not None:
                raise ItemAlreadyExistsError(item_id)
            record = ItemRecord.new(item_id, self._clock(), **payload)
            self._retrying("upsert_item", item_id, lambda: self._store.upsert_item(record))
            self._put(record)
            return record

    def update_item(self, item_id: str, **changes) -> ItemRecord:
        """Apply descriptive field changes; counts and timestamps are not editable."""

        self._check_payload(changes)
        self._require_ready()

        with self._locks.hold(item_id):
            current = self._get(item_id)
            if current is None:
                raise ItemNotFoundError(item_id)
            updated = replace(current, **changes)
            self._retrying("upsert_item", item_id, lambda: self._store.upsert_item(updated))
            self._put(updated)
            return updated

    def delete_item(self, item_id: str) -> bool:
        """Remove the item with its receipts; returns False if it was unknown."""

        self._require_ready()

        with self._locks.hold(item_id):
            known = self._get(item_id) is not None
            self._retrying(
                "delete_receipts_for",
                item_id,
                lambda: self._store.delete_receipts_for(item_id),
            )
            # With the receipts gone every client must be countable again,
            # even if removing the record itself fails below.
            self._index.remove(item_id)
            self._stranded.remove(item_id)
            self._pop(item_id)
            self._retrying("delete_item", item_id, lambda: self._store.delete_item(item_id))
            return known

    @staticmethod
    def _check_payload(payload: dict) -> None:
        unknown = set(payload) - PAYLOAD_FIELDS
        if unknown:
            raise ValueError(f"unsupported item fields: {', '.join(sorted(unknown))}")

    # Internals

    def _require_ready(self) -> None:
        if not self._ready.is_set():
            raise CacheNotReadyError("cache has not been loaded")

    def _get(self, item_id: str) -> Optional[ItemRecord]:
        with self._items_lock:
            return self._items.get(item_id)

    def _put(self, record: ItemRecord) -> None:
        with self._items_lock:
            self._items[record.item_id] = record
            CACHED_ITEMS.set(len(self._items))

    def _pop(self, item_id: str) -> None:
        with self._items_lock:
            self._items.pop(item_id, None)
            CACHED_ITEMS.set(len(self._items))

    def _backoff_delay(self, attempt: int) -> float:
        delay = self._backoff_seconds * (2 ** (attempt - 1))
        return min(delay, self._max_backoff_seconds)

    def _retrying(self, operation: str, item_id: str, call: Callable[[], T]) -> T:
        for attempt in range(1, self._max_write_attempts + 1):
            try:
                return call()
            except DurableStoreError as exc:
                record_write_retry(operation)
                logger.warning(
                    "durable write failed",
                    extra={
                        "operation": operation,
                        "item_id": item_id,
                        "attempt": attempt,
                        "max_attempts": self._max_write_attempts,
                        "error": str(exc),
                    },
                )
                if attempt == self._max_write_attempts:
                    record_write_failure(operation)
                    raise DurableWriteError(item_id, operation, attempt) from exc
                self._sleep(self._backoff_delay(attempt))
        raise AssertionError("unreachable")  # pragma: no cover


__all__ = ["CacheManager"]
