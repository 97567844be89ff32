"""Store doubles used to provoke failures and races."""
from __future__ import annotations

import threading
import time
from collections import Counter
from typing import Dict, Optional

from viewcounter.core.records import ItemRecord
from viewcounter.exceptions import DurableStoreError
from viewcounter.store.memory import InMemoryViewStore


class FlakyViewStore(InMemoryViewStore):
    """In-memory store whose operations can be told to fail."""

    def __init__(self) -> None:
        super().__init__()
        self.calls: Counter[str] = Counter()
        self._failures: Dict[str, Optional[int]] = {}
        self._failure_lock = threading.Lock()

    def fail(self, operation: str, times: int | None = None) -> None:
        """Fail ``operation`` the next ``times`` calls, or until ``heal()`` when None."""

        with self._failure_lock:
            self._failures[operation] = times

    def heal(self) -> None:
        with self._failure_lock:
            self._failures.clear()

    def _check(self, operation: str) -> None:
        with self._failure_lock:
            self.calls[operation] += 1
            if operation not in self._failures:
                return
            remaining = self._failures[operation]
            if remaining is not None:
                if remaining <= 1:
                    del self._failures[operation]
                else:
                    self._failures[operation] = remaining - 1
        raise DurableStoreError(f"simulated {operation} failure")

    def upsert_item(self, record: ItemRecord) -> None:
        self._check("upsert_item")
        super().upsert_item(record)

    def insert_receipt_if_absent(self, item_id: str, client_id: str) -> bool:
        self._check("insert_receipt_if_absent")
        return super().insert_receipt_if_absent(item_id, client_id)

    def list_items(self):
        self._check("list_items")
        return super().list_items()

    def list_receipts(self):
        self._check("list_receipts")
        return super().list_receipts()

    def get_item(self, item_id: str):
        self._check("get_item")
        return super().get_item(item_id)

    def delete_item(self, item_id: str) -> None:
        self._check("delete_item")
        super().delete_item(item_id)

    def delete_receipts_for(self, item_id: str) -> int:
        self._check("delete_receipts_for")
        return super().delete_receipts_for(item_id)

    def delete_receipt(self, item_id: str, client_id: str) -> None:
        self._check("delete_receipt")
        super().delete_receipt(item_id, client_id)


class SlowViewStore(InMemoryViewStore):
    """Delay receipt inserts to widen the window for concurrent callers."""

    def __init__(self, delay: float = 0.005) -> None:
        super().__init__()
        self.delay = delay
        self.inserts = 0
        self._inserts_lock = threading.Lock()

    def insert_receipt_if_absent(self, item_id: str, client_id: str) -> bool:
        with self._inserts_lock:
            self.inserts += 1
        time.sleep(self.delay)
        return super().insert_receipt_if_absent(item_id, client_id)


class GatedViewStore(InMemoryViewStore):
    """Hold receipt inserts for one item until the gate is opened."""

    def __init__(self, gated_item: str) -> None:
        super().__init__()
        self.gated_item = gated_item
        self.entered = threading.Event()
        self.gate = threading.Event()

    def insert_receipt_if_absent(self, item_id: str, client_id: str) -> bool:
        if item_id == self.gated_item:
            self.entered.set()
            if not self.gate.wait(timeout=5):
                raise DurableStoreError("gate never opened")
        return super().insert_receipt_if_absent(item_id, client_id)
