"""
Session Models - Defines structures for chat sessions and their messages.
"""

import uuid
from datetime import datetime, timezone
from typing import Literal, Optional, List
from pydantic import BaseModel, Field


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class MessageMetadata(BaseModel):
    """Upstream processing details attached to assistant messages."""
    processing_time_seconds: Optional[float] = None
    mode_used: Optional[str] = None
    complexity_score: Optional[float] = None


class Message(BaseModel):
    """A single conversation turn stored inside a session."""
    role: Literal["user", "assistant"]
    content: str
    timestamp: datetime = Field(default_factory=utcnow)
    metadata: Optional[MessageMetadata] = None

    @classmethod
    def user(cls, content: str) -> "Message":
        """Create a user message stamped with the current time."""
        return cls(role="user", content=content)

    @classmethod
    def assistant(cls, content: str, metadata: Optional[MessageMetadata] = None) -> "Message":
        """Create an assistant message stamped with the current time."""
        return cls(role="assistant", content=content, metadata=metadata)


class Session(BaseModel):
    """Durable conversation record, addressed publicly by its session key."""
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    session_key: str
    owner_id: str
    messages: List[Message] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    last_accessed_at: datetime = Field(default_factory=utcnow)
    max_context_window: int = 10  # user/assistant pairs kept

    @staticmethod
    def generate_key() -> str:
        """Generate a new public session key."""
        return "session_" + uuid.uuid4().hex

    @property
    def max_stored_messages(self) -> int:
        """Upper bound on stored messages (one user and one assistant message per pair)."""
        return self.max_context_window * 2
