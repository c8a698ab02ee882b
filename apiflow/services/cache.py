"""
CacheStore - In-memory TTL cache for GET responses.

Features:
- TTL per entry, expired entries are misses and are evicted on read
- Values are deep-copied in and out, so entries are never mutated in place
- Optional size bound with oldest-first eviction
- Periodic sweep of expired entries via APScheduler
"""

import copy
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from loguru import logger

from apiflow.services.types import DEFAULT_CACHE_TTL

SWEEP_JOB_ID = "cache_sweep"


@dataclass
class CacheEntry:
    """A single cache entry with metadata."""

    data: Any
    timestamp: datetime
    ttl: timedelta

    def is_expired(self, now: datetime) -> bool:
        """Check if entry is past its TTL."""
        return now - self.timestamp > self.ttl


class CacheStore:
    """
    TTL cache keyed by logical endpoint.

    Usage:
        cache = CacheStore()

        data = cache.get("/api/items")
        if data is None:
            data = await fetch_items()
            cache.set("/api/items", data, ttl=timedelta(minutes=1))
    """

    def __init__(
        self,
        default_ttl: timedelta = DEFAULT_CACHE_TTL,
        max_size: int | None = None,
        clock: Callable[[], datetime] = datetime.now,
        debug: bool = False,
    ):
        self._entries: dict[str, CacheEntry] = {}
        self._default_ttl = default_ttl
        self._max_size = max_size
        self._clock = clock
        self._debug = debug
        self._stats = CacheStats()
        self._scheduler: AsyncIOScheduler | None = None

    @property
    def default_ttl(self) -> timedelta:
        return self._default_ttl

    @property
    def max_size(self) -> int | None:
        return self._max_size

    def get(self, key: str) -> Any | None:
        """Return cached data, or None on a miss (absent or expired)."""
        entry = self._entries.get(key)
        if entry is None:
            self._stats.misses += 1
            self._log(f"MISS: {key[:50]}")
            return None

        if entry.is_expired(self._clock()):
            del self._entries[key]
            self._stats.misses += 1
            self._stats.expirations += 1
            self._log(f"EXPIRED: {key[:50]}")
            return None

        self._stats.hits += 1
        self._log(f"HIT: {key[:50]}")
        return copy.deepcopy(entry.data)

    def set(self, key: str, data: Any, ttl: timedelta | None = None) -> None:
        """Store a copy of ``data`` under ``key``."""
        ttl = self._default_ttl if ttl is None else ttl

        if (
            self._max_size is not None
            and len(self._entries) >= self._max_size
            and key not in self._entries
        ):
            self._evict_oldest()

        self._entries[key] = CacheEntry(
            data=copy.deepcopy(data),
            timestamp=self._clock(),
            ttl=ttl,
        )
        self._log(f"SET: {key[:50]} (TTL: {ttl.total_seconds()}s)")

    def has(self, key: str) -> bool:
        """Check for a live entry without touching stats."""
        entry = self._entries.get(key)
        return entry is not None and not entry.is_expired(self._clock())

    def clear(self, key: str | None = None) -> int:
        """Remove one key, or every entry when no key is given."""
        if key is not None:
            if self._entries.pop(key, None) is None:
                return 0
            logger.debug(f"Cache cleared for: {key}")
            return 1

        count = len(self._entries)
        self._entries.clear()
        logger.debug(f"All cache cleared ({count} entries)")
        return count

    def invalidate(self, pattern: str) -> int:
        """
        Invalidate all keys containing ``pattern``.

        Returns:
            Number of entries invalidated
        """
        keys_to_delete = [k for k in self._entries if pattern in k]
        for key in keys_to_delete:
            del self._entries[key]

        if keys_to_delete:
            self._log(f"INVALIDATE: {len(keys_to_delete)} entries matching '{pattern}'")

        return len(keys_to_delete)

    def cleanup_expired(self) -> int:
        """Remove all expired entries. Returns count of removed entries."""
        now = self._clock()
        expired_keys = [k for k, v in self._entries.items() if v.is_expired(now)]
        for key in expired_keys:
            del self._entries[key]

        self._stats.expirations += len(expired_keys)
        if expired_keys:
            logger.debug(f"Cleared {len(expired_keys)} expired cache entries")

        return len(expired_keys)

    def start_sweeper(self, interval: float = 60.0) -> None:
        """Sweep expired entries every ``interval`` seconds. Needs a running loop."""
        if self._scheduler is not None:
            return

        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            self.cleanup_expired,
            "interval",
            seconds=interval,
            id=SWEEP_JOB_ID,
            replace_existing=True,
        )
        self._scheduler.start()
        logger.debug(f"Cache sweeper started (every {interval}s)")

    def stop_sweeper(self) -> None:
        """Stop the periodic sweep."""
        if self._scheduler is None:
            return

        self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.debug("Cache sweeper stopped")

    @property
    def sweeper_running(self) -> bool:
        return self._scheduler is not None

    def _evict_oldest(self) -> None:
        """Evict the oldest entry."""
        if not self._entries:
            return

        oldest_key = min(
            self._entries.keys(),
            key=lambda k: self._entries[k].timestamp,
        )
        del self._entries[oldest_key]
        self._stats.evictions += 1
        self._log(f"EVICT: {oldest_key[:50]}")

    def __len__(self) -> int:
        return len(self._entries)

    def get_stats(self) -> "CacheStats":
        """Get cache statistics."""
        self._stats.size = len(self._entries)
        self._stats.max_size = self._max_size
        return self._stats

    def _log(self, message: str) -> None:
        """Log debug message if debug mode is enabled."""
        if self._debug:
            logger.debug(f"[CacheStore] {message}")


@dataclass
class CacheStats:
    """Cache statistics."""

    hits: int = 0
    misses: int = 0
    evictions: int = 0
    expirations: int = 0
    size: int = 0
    max_size: int | None = None

    @property
    def hit_rate(self) -> float:
        """Calculate cache hit rate."""
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return self.hits / total

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "expirations": self.expirations,
            "size": self.size,
            "max_size": self.max_size,
            "hit_rate": f"{self.hit_rate:.2%}",
        }
