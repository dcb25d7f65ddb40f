"""Bounded in-memory layer with TTL and oldest-first eviction."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

from cachestack.exceptions import KeyNotFoundError
from cachestack.layers.base import Layer, LayerOptions

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CacheEntry:
    """
    A cached wire value with metadata.

    Attributes:
        value: Stored wire value
        created_at: When the entry was written
        ttl_seconds: Time-to-live in seconds (None = no expiry)
    """

    value: str
    created_at: datetime = field(default_factory=_utcnow)
    ttl_seconds: int | None = None

    @property
    def expires_at(self) -> datetime | None:
        """Get expiration time, or None if no TTL."""
        if self.ttl_seconds is None:
            return None
        return self.created_at + timedelta(seconds=self.ttl_seconds)

    @property
    def is_expired(self) -> bool:
        """Check if entry has expired."""
        if self.expires_at is None:
            return False
        return _utcnow() > self.expires_at


class MemoryLayerOptions(LayerOptions):
    """
    Options for MemoryLayer.

    Attributes:
        ttl: Seconds before an entry expires (0 = never)
        max_size: Maximum number of entries (None = unlimited)
        cleanup_interval_seconds: How often the background task purges
            expired entries
    """

    ttl: int = 0
    max_size: int | None = None
    cleanup_interval_seconds: int = 300


class MemoryLayer(Layer):
    """
    Local in-process cache with expiry and a size bound.

    Best for:
    - Layer 0 or 1 of a stack in front of a network cache
    - Hot keys read many times per process

    Limitations:
    - Not shared across processes
    - Lost on restart
    - Eviction drops the oldest entry, not the least recently used
    """

    Options = MemoryLayerOptions

    def __init__(self, options: MemoryLayerOptions | None = None, namespace: str = "") -> None:
        super().__init__(options, namespace)
        self._store: dict[str, CacheEntry] = {}
        self._lock = asyncio.Lock()
        self._cleanup_task: asyncio.Task | None = None

    @property
    def name(self) -> str:
        return "memory"

    def _ttl(self) -> int | None:
        return self.options.ttl if self.options.ttl > 0 else None

    def _live_entry(self, namespaced: str) -> CacheEntry | None:
        """Return the entry for a key, dropping it if expired (caller holds lock)."""
        entry = self._store.get(namespaced)
        if entry is None:
            return None
        if entry.is_expired:
            del self._store[namespaced]
            return None
        return entry

    def _put(self, namespaced: str, value: str) -> None:
        """Write one entry, evicting first if full (caller holds lock)."""
        max_size = self.options.max_size
        if max_size and namespaced not in self._store and len(self._store) >= max_size:
            self._evict_oldest()
        self._store[namespaced] = CacheEntry(value=value, ttl_seconds=self._ttl())

    def _evict_oldest(self) -> None:
        """Evict the oldest entry (caller holds lock)."""
        if not self._store:
            return
        oldest_key = min(self._store, key=lambda k: self._store[k].created_at)
        del self._store[oldest_key]

    async def get(self, key: str) -> str:
        async with self._lock:
            entry = self._live_entry(self._namespaced_key(key))
        if entry is None:
            raise KeyNotFoundError(key)
        return entry.value

    async def get_multi(self, keys: list[str]) -> dict[str, str]:
        result = {}
        async with self._lock:
            for key in keys:
                entry = self._live_entry(self._namespaced_key(key))
                if entry is not None:
                    result[key] = entry.value
        return result

    async def set(self, key: str, value: str) -> bool:
        async with self._lock:
            self._put(self._namespaced_key(key), value)
        return True

    async def set_multi(self, data: dict[str, str]) -> bool:
        async with self._lock:
            for key, value in data.items():
                self._put(self._namespaced_key(key), value)
        return True

    async def contains(self, key: str) -> bool:
        async with self._lock:
            return self._live_entry(self._namespaced_key(key)) is not None

    async def delete(self, key: str) -> bool:
        async with self._lock:
            self._store.pop(self._namespaced_key(key), None)
        return True

    async def delete_multi(self, keys: list[str]) -> bool:
        async with self._lock:
            for key in keys:
                self._store.pop(self._namespaced_key(key), None)
        return True

    async def flush(self) -> bool:
        prefix = self._namespaced_key("")
        async with self._lock:
            for key in [k for k in self._store if k.startswith(prefix)]:
                del self._store[key]
        return True

    async def cleanup_expired(self) -> int:
        """Remove all expired entries."""
        async with self._lock:
            expired_keys = [k for k, v in self._store.items() if v.is_expired]
            for key in expired_keys:
                del self._store[key]

        if expired_keys:
            logger.debug(f"Cleaned up {len(expired_keys)} expired cache entries")
        return len(expired_keys)

    async def start_cleanup_task(self) -> None:
        """Start background task to periodically clean expired entries."""
        if self._cleanup_task is not None:
            return

        async def cleanup_loop():
            while True:
                try:
                    await asyncio.sleep(self.options.cleanup_interval_seconds)
                    await self.cleanup_expired()
                except asyncio.CancelledError:
                    break
                except Exception as e:
                    logger.error(f"Cache cleanup error: {e}")

        self._cleanup_task = asyncio.create_task(cleanup_loop())

    async def close(self) -> None:
        """Stop the cleanup task and drop all entries."""
        if self._cleanup_task:
            self._cleanup_task.cancel()
            try:
                await self._cleanup_task
            except asyncio.CancelledError:
                pass
            self._cleanup_task = None
        self._store.clear()

    async def health_check(self) -> dict[str, Any]:
        """Return health status with cache statistics."""
        health = await super().health_check()
        async with self._lock:
            health["total_entries"] = len(self._store)
            health["expired_entries"] = sum(1 for v in self._store.values() if v.is_expired)
        health["max_size"] = self.options.max_size
        return health

    def size(self) -> int:
        """Get current number of entries (sync method for convenience)."""
        return len(self._store)
