"""Persistence: key-value backends, price history journal, call counter."""

from tradesignal.storage.history import HistoryStore
from tradesignal.storage.kv import MemoryStore, PersistentStore, SqliteStore
from tradesignal.storage.usage import ApiCallCounter

__all__ = [
    "ApiCallCounter",
    "HistoryStore",
    "MemoryStore",
    "PersistentStore",
    "SqliteStore",
]
