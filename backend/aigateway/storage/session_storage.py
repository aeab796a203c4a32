"""
Session Storage - Durable store for chat sessions using StorageInterface.
Each session is one JSON document at sessions/{session_key}.json.
"""

import logging
import re
from datetime import datetime
from typing import List, Optional

from pydantic import ValidationError

from .interface import StorageInterface
from ..core.exceptions import StorageError
from ..models import Session

logger = logging.getLogger(__name__)

# Session keys are client supplied; only plain identifiers map to documents
_SESSION_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,128}$")


class SessionRepository:
    """
    Keyed document store over Session records.
    Lookups by session key, a range scan on last_accessed_at, and writes.
    """

    def __init__(self, storage: StorageInterface):
        """
        Initialize session storage.

        Args:
            storage: StorageInterface implementation (typically LocalStorage)
        """
        self.storage = storage
        self.sessions_dir = "sessions"

    def _session_path(self, session_key: str) -> Optional[str]:
        if not _SESSION_KEY_PATTERN.match(session_key or ""):
            return None
        return f"{self.sessions_dir}/{session_key}.json"

    @staticmethod
    def _decode(content: bytes, source: str) -> Optional[Session]:
        try:
            return Session.model_validate_json(content)
        except ValidationError as e:
            logger.error(f"Corrupt session document {source}: {e}")
            return None

    async def find_by_session_key(self, session_key: str) -> Optional[Session]:
        """
        Get a session by its public key.

        Args:
            session_key: Session key

        Returns:
            Optional[Session]: The stored session or None if not found
        """
        path = self._session_path(session_key)
        if path is None:
            return None

        content = await self.storage.load(path)
        if content is None:
            return None
        return self._decode(content, path)

    async def exists(self, session_key: str) -> bool:
        """Check whether a session document exists."""
        path = self._session_path(session_key)
        return path is not None and await self.storage.exists(path)

    async def save(self, session: Session) -> Session:
        """
        Insert or replace a session document.

        Args:
            session: Session to persist

        Returns:
            Session: The persisted session

        Raises:
            StorageError: If the document could not be written
        """
        path = self._session_path(session.session_key)
        if path is None:
            raise StorageError(f"Invalid session key: {session.session_key!r}")

        if not await self.storage.save(path, session.model_dump_json()):
            raise StorageError(f"Failed to save session {session.session_key}")
        return session

    async def touch(self, session_key: str, accessed_at: datetime) -> Optional[Session]:
        """
        Move last_accessed_at forward without touching the messages.

        The stored value never moves backwards, even if accessed_at is older.

        Args:
            session_key: Session key
            accessed_at: Access time to record

        Returns:
            Optional[Session]: The updated session or None if not found
        """
        session = await self.find_by_session_key(session_key)
        if session is None:
            return None

        if accessed_at > session.last_accessed_at:
            session.last_accessed_at = accessed_at
            await self.save(session)
        return session

    async def delete(self, session_key: str) -> bool:
        """
        Delete a session document.

        Returns:
            bool: True if a document was removed, False if there was none

        Raises:
            StorageError: If the document still exists after the delete
        """
        path = self._session_path(session_key)
        if path is None:
            return False

        if await self.storage.delete(path):
            return True
        if await self.storage.exists(path):
            raise StorageError(f"Failed to delete session {session_key}")
        return False

    async def find_last_accessed_before(self, cutoff: datetime) -> List[Session]:
        """
        Range scan for sessions idle since before the cutoff.

        Args:
            cutoff: Sessions with last_accessed_at strictly before this are returned

        Returns:
            List[Session]: Matching sessions, oldest access first
        """
        files = await self.storage.list(self.sessions_dir, pattern="*.json")
        expired = []

        for file_path in files:
            content = await self.storage.load(file_path)
            if content is None:
                continue
            session = self._decode(content, file_path)
            if session is not None and session.last_accessed_at < cutoff:
                expired.append(session)

        return sorted(expired, key=lambda s: s.last_accessed_at)
