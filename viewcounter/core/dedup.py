"""In-memory index of clients already counted per item."""
from __future__ import annotations

import threading
from typing import Dict, Set


class DedupIndex:
    """Thread-safe mapping of item id to the set of counted client ids.

    The index holds no persistence logic; its authoritative backing is the
    receipt collection of the durable store, from which it is rebuilt on load.
    """

    def __init__(self) -> None:
        self._clients: Dict[str, Set[str]] = {}
        self._lock = threading.Lock()

    def has(self, item_id: str, client_id: str) -> bool:
        """Return True if the client was already counted for the item."""

        with self._lock:
            return client_id in self._clients.get(item_id, ())

    def add(self, item_id: str, client_id: str) -> bool:
        """Record the client for the item, returning False if already present."""

        with self._lock:
            bucket = self._clients.setdefault(item_id, set())
            if client_id in bucket:
                return False
            bucket.add(client_id)
            return True

    def discard(self, item_id: str, client_id: str) -> None:
        """Forget a single client, used to roll back a failed write."""

        with self._lock:
            bucket = self._clients.get(item_id)
            if bucket is None:
                return
            bucket.discard(client_id)
            if not bucket:
                del self._clients[item_id]

    def remove(self, item_id: str) -> int:
        """Drop every client recorded for the item and return how many there were."""

        with self._lock:
            return len(self._clients.pop(item_id, ()))

    def count(self, item_id: str) -> int:
        with self._lock:
            return len(self._clients.get(item_id, ()))

    def clear(self) -> None:
        with self._lock:
            self._clients.clear()

    def __contains__(self, item_id: object) -> bool:
        with self._lock:
            return item_id in self._clients

    def __len__(self) -> int:
        with self._lock:
            return sum(len(bucket) for bucket in self._clients.values())


__all__ = ["DedupIndex"]
