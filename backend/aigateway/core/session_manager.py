"""
Session Manager - Session lifecycle over the durable store and the cache.

Reads go cache first, then the store. Mutations always read the stored
record, write it back, then refresh the cached snapshot and drop the
session's cached responses. Mutations of one session key are serialized.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Iterable, Optional

from .context_window import ContextWindow
from .exceptions import SessionNotFound
from .keyed_lock import KeyedLock
from ..cache import ResponseCache
from ..models import Message, Session, utcnow
from ..storage import SessionRepository

logger = logging.getLogger(__name__)

DEFAULT_EXPIRY_HOURS = 24


class SessionManager:
    """
    Creates, resolves, extends and expires chat sessions.
    """

    def __init__(
        self,
        repository: SessionRepository,
        cache: ResponseCache,
        context_window: ContextWindow,
        clock: Callable[[], datetime] = utcnow,
        default_max_context_window: int = 10,
        locks: Optional[KeyedLock] = None,
    ):
        """
        Initialize session manager.

        Args:
            repository: Durable session store
            cache: Response and session-snapshot cache
            context_window: Bounds stored history on append
            clock: Source of aware UTC datetimes, injectable for tests
            default_max_context_window: Context window (pairs) of new sessions
            locks: Per-key lock registry (a private one if not given)
        """
        self.repository = repository
        self.cache = cache
        self.context_window = context_window
        self.clock = clock
        self.default_max_context_window = default_max_context_window
        self.locks = locks or KeyedLock()

    async def create(self, owner_id: str) -> Session:
        """
        Create and persist a new session with a fresh key.

        Args:
            owner_id: Caller-supplied owner identifier

        Returns:
            Session: The new session
        """
        session_key = Session.generate_key()
        while await self.repository.exists(session_key):
            session_key = Session.generate_key()

        now = self.clock()
        session = Session(
            session_key=session_key,
            owner_id=owner_id,
            created_at=now,
            last_accessed_at=now,
            max_context_window=self.default_max_context_window,
        )
        await self.repository.save(session)
        await self.cache.put_session(session)

        logger.info(
            f"New session created - sessionKey: {session_key}, ownerId: {owner_id}",
            extra={"extra_fields": {"session_key": session_key, "owner_id": owner_id}}
        )
        return session

    async def resolve(self, session_key: Optional[str], owner_id: str) -> Session:
        """
        Return the session for a key, creating one if needed.

        A blank key creates a session. An unknown key also creates one
        (with a new key) instead of failing. A found session has its
        last_accessed_at moved forward.

        Args:
            session_key: Session key supplied by the client, if any
            owner_id: Owner used when a session has to be created

        Returns:
            Session: The resolved or newly created session
        """
        if not session_key or not session_key.strip():
            return await self.create(owner_id)

        session_key = session_key.strip()
        found = await self.cache.get_session(session_key)
        if found is None:
            found = await self.repository.find_by_session_key(session_key)

        if found is not None:
            async with self.locks.lock(session_key):
                touched = await self.repository.touch(session_key, self.clock())
                if touched is not None:
                    await self.cache.put_session(touched)
                    return touched
            # Cached snapshot outlived the stored record
            await self.cache.invalidate_all(session_key)

        logger.warning(
            f"Session not found, creating a new one - requested: {session_key}",
            extra={"extra_fields": {"session_key": session_key, "owner_id": owner_id}}
        )
        return await self.create(owner_id)

    async def get(self, session_key: str) -> Optional[Session]:
        """
        Look up a session without creating or touching it.

        Returns:
            Optional[Session]: The session, or None if unknown
        """
        cached = await self.cache.get_session(session_key)
        if cached is not None:
            return cached

        session = await self.repository.find_by_session_key(session_key)
        if session is not None:
            await self.cache.put_session(session)
        return session

    async def exists(self, session_key: str) -> bool:
        """Check the durable store for a session."""
        return await self.repository.exists(session_key)

    async def append(self, session_key: str, message: Message) -> Session:
        """
        Append one message to a session.

        Raises:
            SessionNotFound: If the durable store has no such session
        """
        return await self._append_messages(session_key, [message])

    async def append_pair(
        self,
        session_key: str,
        user_message: Message,
        assistant_message: Message,
    ) -> Session:
        """
        Append a user message and its reply in one read-modify-write.

        Raises:
            SessionNotFound: If the durable store has no such session
        """
        return await self._append_messages(session_key, [user_message, assistant_message])

    async def _append_messages(self, session_key: str, messages: Iterable[Message]) -> Session:
        async with self.locks.lock(session_key):
            session = await self.repository.find_by_session_key(session_key)
            if session is None:
                raise SessionNotFound(session_key)

            session.messages.extend(messages)
            if self.context_window.should_truncate(session):
                before = len(session.messages)
                session.messages = self.context_window.bound_history(
                    session.messages, session.max_stored_messages
                )
                logger.info(
                    f"Session history truncated - sessionKey: {session_key}, "
                    f"{before} -> {len(session.messages)} messages"
                )

            now = self.clock()
            if now > session.last_accessed_at:
                session.last_accessed_at = now

            await self.repository.save(session)
            await self.cache.put_session(session)
            await self.cache.invalidate_queries(session_key)

        logger.debug(
            f"Messages appended - sessionKey: {session_key}, total: {len(session.messages)}"
        )
        return session

    async def expire_sweep(self, cutoff_hours: int = DEFAULT_EXPIRY_HOURS) -> int:
        """
        Delete sessions idle for longer than cutoff_hours.

        Each candidate is re-checked under its lock, so a session touched
        after the scan survives. A failure on one session is logged and
        the sweep moves on.

        Returns:
            int: Number of sessions deleted
        """
        cutoff = self.clock() - timedelta(hours=cutoff_hours)
        candidates = await self.repository.find_last_accessed_before(cutoff)

        deleted = 0
        for candidate in candidates:
            session_key = candidate.session_key
            try:
                async with self.locks.lock(session_key):
                    current = await self.repository.find_by_session_key(session_key)
                    if current is None or current.last_accessed_at >= cutoff:
                        continue
                    if await self.repository.delete(session_key):
                        deleted += 1
                    await self.cache.invalidate_all(session_key)
            except Exception as e:
                logger.error(
                    f"Failed to expire session {session_key}: {str(e)}",
                    exc_info=True,
                    extra={"extra_fields": {"session_key": session_key}}
                )

        if candidates:
            logger.info(f"Expired sessions cleaned up: {deleted} of {len(candidates)}")
        return deleted
