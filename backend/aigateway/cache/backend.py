"""
Cache Backend - Key-value store with per-key TTL and prefix operations.

The gateway treats the cache as a disposable accelerator. Backends raise
CacheUnavailable when they cannot serve a request; callers decide how to
degrade.
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from ..core.exceptions import CacheUnavailable

logger = logging.getLogger(__name__)


class CacheBackend(ABC):
    """Contract for cache backends. Values are serialized strings."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Return the value for key, or None if absent or expired."""

    @abstractmethod
    async def set(self, key: str, value: str, ttl_seconds: float) -> None:
        """Store value under key for ttl_seconds."""

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete key. Returns True if it existed."""

    @abstractmethod
    async def scan_prefix(self, prefix: str) -> List[str]:
        """Return all live keys starting with prefix."""

    async def delete_prefix(self, prefix: str) -> int:
        """
        Delete every key starting with prefix.

        Returns:
            int: Number of keys removed
        """
        deleted = 0
        for key in await self.scan_prefix(prefix):
            if await self.delete(key):
                deleted += 1
        return deleted


@dataclass
class CacheEntry:
    """A value held by MemoryCacheBackend."""
    value: str
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class MemoryCacheBackend(CacheBackend):
    """
    In-process cache with per-key expiry.

    Args:
        clock: Monotonic time source in seconds, injectable for tests
        max_items: Oldest-expiring entries are evicted beyond this (0 = unlimited)
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic, max_items: int = 10_000):
        self._clock = clock
        self._max_items = max_items
        self._store: Dict[str, CacheEntry] = {}
        self._available = True

    def set_available(self, available: bool) -> None:
        """Simulate the backend going away (or coming back)."""
        self._available = available
        if not available:
            logger.warning("Memory cache marked unavailable")

    def _check_available(self) -> None:
        if not self._available:
            raise CacheUnavailable("cache backend unavailable")

    def _purge_expired(self, now: float) -> None:
        expired = [k for k, entry in self._store.items() if entry.is_expired(now)]
        for key in expired:
            del self._store[key]

    def __len__(self) -> int:
        now = self._clock()
        return sum(1 for entry in self._store.values() if not entry.is_expired(now))

    async def get(self, key: str) -> Optional[str]:
        self._check_available()
        entry = self._store.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            del self._store[key]
            return None
        return entry.value

    async def set(self, key: str, value: str, ttl_seconds: float) -> None:
        self._check_available()
        now = self._clock()
        if self._max_items and key not in self._store and len(self._store) >= self._max_items:
            self._purge_expired(now)
            if len(self._store) >= self._max_items:
                oldest = min(self._store, key=lambda k: self._store[k].expires_at)
                del self._store[oldest]
        self._store[key] = CacheEntry(value=value, expires_at=now + ttl_seconds)

    async def delete(self, key: str) -> bool:
        self._check_available()
        return self._store.pop(key, None) is not None

    async def scan_prefix(self, prefix: str) -> List[str]:
        self._check_available()
        now = self._clock()
        return [
            key for key, entry in self._store.items()
            if key.startswith(prefix) and not entry.is_expired(now)
        ]

    async def delete_prefix(self, prefix: str) -> int:
        self._check_available()
        keys = [key for key in self._store if key.startswith(prefix)]
        for key in keys:
            del self._store[key]
        return len(keys)
