"""Process-local view store for tests and single-node development."""
from __future__ import annotations

import threading
from dataclasses import replace
from typing import Dict, List, Optional, Set

from viewcounter.core.records import ItemRecord
from viewcounter.store.base import Receipt


class InMemoryViewStore:
    """Process-local store honouring the same uniqueness rules as the SQL store."""

    def __init__(self) -> None:
        self._items: Dict[str, ItemRecord] = {}
        self._receipts: Set[Receipt] = set()
        self._lock = threading.Lock()

    def upsert_item(self, record: ItemRecord) -> None:
        with self._lock:
            existing = self._items.get(record.item_id)
            if existing is not None:
                record = replace(record, created_at=existing.created_at)
            self._items[record.item_id] = record

    def insert_receipt_if_absent(self, item_id: str, client_id: str) -> bool:
        with self._lock:
            key = (item_id, client_id)
            if key in self._receipts:
                return False
            self._receipts.add(key)
            return True

    def list_items(self) -> List[ItemRecord]:
        with self._lock:
            return list(self._items.values())

    def list_receipts(self) -> List[Receipt]:
        with self._lock:
            return sorted(self._receipts)

    def get_item(self, item_id: str) -> Optional[ItemRecord]:
        with self._lock:
            return self._items.get(item_id)

    def delete_item(self, item_id: str) -> None:
        with self._lock:
            self._items.pop(item_id, None)

    def delete_receipts_for(self, item_id: str) -> int:
        with self._lock:
            doomed = {receipt for receipt in self._receipts if receipt[0] == item_id}
            self._receipts -= doomed
            return len(doomed)

    def delete_receipt(self, item_id: str, client_id: str) -> None:
        with self._lock:
            self._receipts.discard((item_id, client_id))


__all__ = ["InMemoryViewStore"]
