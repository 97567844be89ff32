"""Durable store implementations for view records and receipts."""

from .base import Receipt, ViewStore
from .memory import InMemoryViewStore
from .sql import SqlAlchemyViewStore

__all__ = [
    "InMemoryViewStore",
    "Receipt",
    "SqlAlchemyViewStore",
    "ViewStore",
]
