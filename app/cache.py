"""
Result cache for computed endpoint payloads.

Entries are keyed by namespace plus the JSON-serialized request parameters
and expire after a per-namespace TTL. Concurrent identical requests share a
single computation. Size is bounded with LRU eviction.
"""
import asyncio
import json
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

from loguru import logger

DEFAULT_MAX_SIZE = 512

CacheKey = Tuple[str, str]


@dataclass
class CacheEntry:
    """Single cache entry with TTL tracking."""
    value: Any
    created_at: float
    expires_at: float
    hits: int = 0

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    expirations: int = 0
    evictions: int = 0
    invalidations: int = 0

    @property
    def hit_rate(self) -> float:
        requests = self.hits + self.misses
        return self.hits / requests if requests > 0 else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "expirations": self.expirations,
            "evictions": self.evictions,
            "invalidations": self.invalidations,
            "hit_rate": round(self.hit_rate, 4),
        }


def make_key(params: Optional[Dict[str, Any]]) -> str:
    """Stable key for a parameter mapping."""
    return json.dumps(params or {}, sort_keys=True, default=str)


class ResultCache:
    """In-memory TTL cache keyed by (namespace, serialized parameters)."""

    def __init__(self, ttls: Dict[str, int], default_ttl: int = 1800,
                 max_size: int = DEFAULT_MAX_SIZE, clock: Callable[[], float] = time.monotonic):
        self.ttls = dict(ttls)
        self.default_ttl = default_ttl
        self.max_size = max_size
        self._clock = clock
        self._entries: "OrderedDict[CacheKey, CacheEntry]" = OrderedDict()
        self._locks: Dict[CacheKey, asyncio.Lock] = {}
        # Coroutines currently holding or waiting on each key's lock
        self._pending: Dict[CacheKey, int] = {}
        self.stats = CacheStats()

    def ttl_for(self, namespace: str) -> int:
        return self.ttls.get(namespace, self.default_ttl)

    def get(self, namespace: str, params: Optional[Dict[str, Any]] = None) -> Optional[Any]:
        key = (namespace, make_key(params))
        entry = self._entries.get(key)
        if entry is None:
            self.stats.misses += 1
            return None

        if entry.is_expired(self._clock()):
            del self._entries[key]
            self.stats.expirations += 1
            self.stats.misses += 1
            return None

        self._entries.move_to_end(key)
        entry.hits += 1
        self.stats.hits += 1
        return entry.value

    def set(self, namespace: str, params: Optional[Dict[str, Any]], value: Any) -> None:
        now = self._clock()
        key = (namespace, make_key(params))
        self._purge_expired(now)

        if key in self._entries:
            del self._entries[key]
        while self._entries and len(self._entries) >= self.max_size:
            self._evict_oldest()

        self._entries[key] = CacheEntry(
            value=value,
            created_at=now,
            expires_at=now + self.ttl_for(namespace)
        )

    def _purge_expired(self, now: float) -> None:
        expired = [k for k, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]
        self.stats.expirations += len(expired)

    def _evict_oldest(self) -> None:
        """Evict the least recently used entry."""
        self._entries.popitem(last=False)
        self.stats.evictions += 1

    async def get_or_compute(
        self,
        namespace: str,
        params: Optional[Dict[str, Any]],
        compute: Callable[[], Awaitable[Any]]
    ) -> Any:
        """Return the cached value or compute, store and return it."""
        key = (namespace, make_key(params))
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._pending[key] = self._pending.get(key, 0) + 1
        try:
            async with lock:
                cached = self.get(namespace, params)
                if cached is not None:
                    return cached
                value = await compute()
                self.set(namespace, params, value)
                return value
        finally:
            self._pending[key] -= 1
            if self._pending[key] == 0:
                del self._pending[key]
                self._locks.pop(key, None)

    def invalidate(self, namespace: Optional[str] = None) -> int:
        """Drop every entry, or every entry of one namespace. Returns the count removed."""
        keys = [k for k in self._entries if namespace is None or k[0] == namespace]
        for key in keys:
            del self._entries[key]
        for key in [k for k in self._locks if k not in self._pending]:
            del self._locks[key]
        self.stats.invalidations += len(keys)
        logger.info(f"Invalidated {len(keys)} cached results ({namespace or 'all'})")
        return len(keys)

    def __len__(self) -> int:
        return len(self._entries)

    def status(self) -> Dict[str, Any]:
        namespaces: Dict[str, int] = {}
        for namespace, _ in self._entries:
            namespaces[namespace] = namespaces.get(namespace, 0) + 1
        return {
            "size": len(self._entries),
            "max_size": self.max_size,
            "namespaces": namespaces,
            "ttls": dict(self.ttls),
            **self.stats.to_dict(),
        }
