"""View deduplication and cache consistency engine."""

from .cache import CacheManager
from .dedup import DedupIndex
from .locks import KeyedLock
from .records import ItemRecord, LoadReport, ViewResult

__all__ = [
    "CacheManager",
    "DedupIndex",
    "ItemRecord",
    "KeyedLock",
    "LoadReport",
    "ViewResult",
]
