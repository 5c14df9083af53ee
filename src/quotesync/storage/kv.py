"""Key/value storage backends.

Every backend implements the KeyValueStore ABC. Values are JSON text;
encoding and decoding happen in QuoteStore. Backends raise StorageError
on any read or write failure.

- FileKeyValueStore: one file per key under a directory (durable scope)
- MemoryKeyValueStore: process-lifetime dict (session scope)
- RedisKeyValueStore: prefixed Redis keys, optional TTL for session scope
"""

from __future__ import annotations

import os
import re
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path

import redis.asyncio as aioredis
import structlog
from redis.exceptions import RedisError

from src.quotesync.core.exceptions import StorageError

logger = structlog.get_logger(__name__)

_SAFE_KEY = re.compile(r"^[A-Za-z0-9_.-]+$")


class KeyValueStore(ABC):
    """Abstract async key/value interface used by QuoteStore."""

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the stored value, or None when the key is absent."""
        ...

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, overwriting any previous value."""
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove ``key`` if present."""
        ...


# ── In-memory ──────────────────────────────────────────────────────────────


class MemoryKeyValueStore(KeyValueStore):
    """Dict-backed store. Contents die with the process."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)


# ── File ───────────────────────────────────────────────────────────────────


class FileKeyValueStore(KeyValueStore):
    """Durable store keeping each key in ``<directory>/<key>.json``.

    Writes go to a temp file in the same directory followed by os.replace,
    so a snapshot is either fully old or fully new.

    Args:
        directory: Storage directory; created on first write.
    """

    def __init__(self, directory: str | Path) -> None:
        self._dir = Path(directory)

    def _path(self, key: str) -> Path:
        if not _SAFE_KEY.match(key):
            raise StorageError(f"Invalid storage key: {key!r}")
        return self._dir / f"{key}.json"

    async def get(self, key: str) -> str | None:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StorageError(f"Failed to read {path}: {exc}") from exc

    async def set(self, key: str, value: str) -> None:
        path = self._path(key)
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self._dir, prefix=f".{key}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(value)
                os.replace(tmp_path, path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as exc:
            raise StorageError(f"Failed to write {path}: {exc}") from exc

    async def delete(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            raise StorageError(f"Failed to delete {path}: {exc}") from exc


# ── Redis ──────────────────────────────────────────────────────────────────

_redis_pool: aioredis.Redis | None = None


def get_redis_pool(url: str) -> aioredis.Redis:
    """Get or create the Redis connection pool singleton."""
    global _redis_pool
    if _redis_pool is None:
        _redis_pool = aioredis.from_url(url, decode_responses=True)
    return _redis_pool


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _redis_pool
    if _redis_pool:
        await _redis_pool.close()
        _redis_pool = None


class RedisKeyValueStore(KeyValueStore):
    """Redis-backed store that prefixes every key with ``{prefix}:{scope}:``.

    Args:
        redis_client: redis.asyncio client.
        prefix: Application namespace.
        scope: Scope segment, e.g. "durable" or "session".
        ttl_seconds: Expiry applied on every write; None keeps keys forever.
    """

    def __init__(
        self,
        redis_client: aioredis.Redis,
        prefix: str = "quotesync",
        scope: str = "durable",
        ttl_seconds: int | None = None,
    ) -> None:
        self._redis = redis_client
        self._prefix = f"{prefix}:{scope}:"
        self._ttl = ttl_seconds

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def get(self, key: str) -> str | None:
        try:
            return await self._redis.get(self._key(key))
        except RedisError as exc:
            raise StorageError(f"Redis read failed for {key}: {exc}") from exc

    async def set(self, key: str, value: str) -> None:
        try:
            await self._redis.set(self._key(key), value, ex=self._ttl)
        except RedisError as exc:
            raise StorageError(f"Redis write failed for {key}: {exc}") from exc

    async def delete(self, key: str) -> None:
        try:
            await self._redis.delete(self._key(key))
        except RedisError as exc:
            raise StorageError(f"Redis delete failed for {key}: {exc}") from exc
