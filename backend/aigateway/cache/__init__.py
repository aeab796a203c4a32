"""Cache module - best-effort caching of responses and session snapshots."""

from .backend import CacheBackend, MemoryCacheBackend
from .response_cache import ResponseCache, best_effort, fingerprint

__all__ = ['CacheBackend', 'MemoryCacheBackend', 'ResponseCache', 'best_effort', 'fingerprint']
