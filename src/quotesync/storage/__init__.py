"""Persistence layer -- key/value backends and the QuoteStore adapter.

Architecture: QuoteStore owns the snapshot format; backends only move
strings. The file backend is the default durable store, Redis is optional.
"""

from src.quotesync.storage.kv import (
    FileKeyValueStore,
    KeyValueStore,
    MemoryKeyValueStore,
    RedisKeyValueStore,
)
from src.quotesync.storage.persistence import QuoteStore, normalize_records

__all__ = [
    "FileKeyValueStore",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "QuoteStore",
    "RedisKeyValueStore",
    "normalize_records",
]
