"""Value types shared by the cache and the durable stores."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

# Fields owned by the metadata layer; the view counting core treats them as payload.
PAYLOAD_FIELDS: frozenset[str] = frozenset(
    {"title", "description", "channel_name", "loading"}
)


def default_title(item_id: str) -> str:
    return f"Video {item_id}"


@dataclass(frozen=True)
class ItemRecord:
    """Snapshot of a tracked item."""

    item_id: str
    view_count: int
    created_at: datetime
    title: str
    description: str | None = None
    channel_name: str | None = None
    loading: bool = False

    @classmethod
    def new(cls, item_id: str, created_at: datetime, **payload) -> "ItemRecord":
        payload.setdefault("title", default_title(item_id))
        return cls(item_id=item_id, view_count=0, created_at=created_at, **payload)


@dataclass(frozen=True)
class ViewResult:
    """Outcome of a ``record_view`` call."""

    view_count: int
    counted: bool


@dataclass
class LoadReport:
    """Summary of a cache load from the durable store."""

    items: int = 0
    receipts: int = 0
    orphaned_items: list[str] = field(default_factory=list)
    repaired_items: list[str] = field(default_factory=list)
    duration_seconds: float = 0.0
