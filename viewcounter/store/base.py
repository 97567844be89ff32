"""Durable store contract consumed by the cache manager."""
from __future__ import annotations

from typing import List, Optional, Protocol, Tuple

from viewcounter.core.records import ItemRecord

Receipt = Tuple[str, str]


class ViewStore(Protocol):
    """Source of truth for item records and view receipts.

    Implementations raise :class:`viewcounter.exceptions.DurableStoreError`
    for any read or write failure.
    """

    def upsert_item(self, record: ItemRecord) -> None:
        """Create or update the record; an existing ``created_at`` is kept."""
        ...

    def insert_receipt_if_absent(self, item_id: str, client_id: str) -> bool:
        """Insert the receipt, returning False when it already exists."""
        ...

    def list_items(self) -> List[ItemRecord]:
        ...

    def list_receipts(self) -> List[Receipt]:
        ...

    def get_item(self, item_id: str) -> Optional[ItemRecord]:
        ...

    def delete_item(self, item_id: str) -> None:
        ...

    def delete_receipts_for(self, item_id: str) -> int:
        ...

    def delete_receipt(self, item_id: str, client_id: str) -> None:
        ...


__all__ = ["Receipt", "ViewStore"]
