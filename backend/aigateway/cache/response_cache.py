"""
Response Cache - Cache-aside layer for upstream responses and session snapshots.

Keys:
    query:{session_key}:{fingerprint}   cached InferenceResponse (default TTL 5m)
    session:{session_key}               cached Session snapshot (default TTL 10m)

Every operation is best effort. A cache failure is logged and degrades to a
miss (reads) or a False result (writes); it never fails the request path.
"""

import hashlib
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from .backend import CacheBackend
from ..models import InferenceResponse, Session

logger = logging.getLogger(__name__)

T = TypeVar('T')

DEFAULT_RESPONSE_TTL_SECONDS = 5 * 60
DEFAULT_SESSION_TTL_SECONDS = 10 * 60

# Code points U+0000..U+0020; Unicode spaces such as U+3000 are kept
_TRIM_CHARS = "".join(map(chr, range(0x21)))


async def best_effort(
    operation: Callable[[], Awaitable[T]],
    fallback: T,
    action: str,
    key: str,
) -> T:
    """
    Run a cache operation, converting any failure into a fallback value.

    Args:
        operation: Zero-argument coroutine factory performing the cache call
        fallback: Value returned when the operation raises
        action: Short operation label for the log line (e.g. "GET")
        key: Cache key or pattern involved, for the log line

    Returns:
        The operation result, or fallback if it raised
    """
    try:
        return await operation()
    except Exception as e:
        logger.warning(
            f"Cache {action} failed (skip): {key} - {e}",
            extra={"extra_fields": {"cache_action": action, "cache_key": key}}
        )
        return fallback


def fingerprint(raw_message: Optional[str]) -> str:
    """SHA-256 hex digest of the message text with control characters and spaces trimmed."""
    normalized = (raw_message or "").strip(_TRIM_CHARS)
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()


def query_key(session_key: str, raw_message: Optional[str]) -> str:
    return f"query:{session_key}:{fingerprint(raw_message)}"


def query_prefix(session_key: str) -> str:
    return f"query:{session_key}:"


def session_cache_key(session_key: str) -> str:
    return f"session:{session_key}"


class ResponseCache:
    """
    Cache-aside access to query responses and session snapshots.
    """

    def __init__(
        self,
        backend: CacheBackend,
        response_ttl_seconds: float = DEFAULT_RESPONSE_TTL_SECONDS,
        session_ttl_seconds: float = DEFAULT_SESSION_TTL_SECONDS,
    ):
        """
        Args:
            backend: Cache backend to use
            response_ttl_seconds: Default TTL for query responses
            session_ttl_seconds: Default TTL for session snapshots
        """
        self.backend = backend
        self.response_ttl_seconds = response_ttl_seconds
        self.session_ttl_seconds = session_ttl_seconds

    async def get(self, session_key: str, raw_message: str) -> Optional[InferenceResponse]:
        """
        Look up the cached response for a message in a session.

        Returns:
            Optional[InferenceResponse]: Cached response, None on miss or cache failure
        """
        key = query_key(session_key, raw_message)

        async def _get() -> Optional[InferenceResponse]:
            value = await self.backend.get(key)
            if value is None:
                return None
            return InferenceResponse.model_validate_json(value)

        cached = await best_effort(_get, None, "GET", key)
        if cached is not None:
            logger.debug(f"Cache HIT: {key}")
        return cached

    async def put(
        self,
        session_key: str,
        raw_message: str,
        response: InferenceResponse,
        ttl_seconds: Optional[float] = None,
    ) -> bool:
        """
        Store a response for a message in a session.

        Returns:
            bool: True if the value was written
        """
        key = query_key(session_key, raw_message)
        ttl = self.response_ttl_seconds if ttl_seconds is None else ttl_seconds

        async def _put() -> bool:
            await self.backend.set(key, response.model_dump_json(), ttl)
            return True

        return await best_effort(_put, False, "SET", key)

    async def get_session(self, session_key: str) -> Optional[Session]:
        """Look up a cached session snapshot. None on miss or cache failure."""
        key = session_cache_key(session_key)

        async def _get() -> Optional[Session]:
            value = await self.backend.get(key)
            if value is None:
                return None
            return Session.model_validate_json(value)

        cached = await best_effort(_get, None, "GET", key)
        if cached is not None:
            logger.debug(f"Session Cache HIT: {key}")
        return cached

    async def put_session(self, session: Session, ttl_seconds: Optional[float] = None) -> bool:
        """Store a session snapshot. Returns True if the value was written."""
        key = session_cache_key(session.session_key)
        ttl = self.session_ttl_seconds if ttl_seconds is None else ttl_seconds

        async def _put() -> bool:
            await self.backend.set(key, session.model_dump_json(), ttl)
            return True

        return await best_effort(_put, False, "SET", key)

    async def invalidate_queries(self, session_key: str) -> bool:
        """
        Drop every cached response of a session, keeping the session snapshot.

        Returns:
            bool: True if the backend accepted the delete
        """
        prefix = query_prefix(session_key)

        async def _invalidate() -> bool:
            removed = await self.backend.delete_prefix(prefix)
            if removed:
                logger.debug(f"Invalidated {removed} cached responses for {session_key}")
            return True

        return await best_effort(_invalidate, False, "INVALIDATE", prefix + "*")

    async def invalidate_all(self, session_key: str) -> bool:
        """
        Drop the session snapshot and every cached response of a session.

        Returns:
            bool: True if the backend accepted both deletes
        """
        key = session_cache_key(session_key)

        async def _invalidate() -> bool:
            await self.backend.delete_prefix(query_prefix(session_key))
            await self.backend.delete(key)
            return True

        return await best_effort(_invalidate, False, "INVALIDATE", key)
