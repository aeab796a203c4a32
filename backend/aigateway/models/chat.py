"""
Chat Models - Request and response bodies of the public chat API.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, field_validator

from .inference import ResponseMetadata
from .session import utcnow


class ChatRequest(BaseModel):
    """Incoming chat message."""
    message: str
    session_id: Optional[str] = Field(default=None, alias="sessionId")
    user_id: str = Field(default="anonymous", alias="userId")

    class Config:
        populate_by_name = True

    @field_validator("message")
    @classmethod
    def message_must_have_text(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("Field 'message' is required")
        return value


class ChatResponse(BaseModel):
    """Answer returned to the caller. Upstream failures arrive with success=False."""
    success: bool
    message: str
    session_id: Optional[str] = Field(default=None, alias="sessionId")
    timestamp: datetime = Field(default_factory=utcnow)
    processing_time_seconds: float = Field(default=0.0, alias="processingTimeSeconds")
    mode_used: Optional[str] = Field(default=None, alias="modeUsed")
    cached: bool = False
    metadata: Optional[ResponseMetadata] = None

    class Config:
        populate_by_name = True


class ErrorResponse(BaseModel):
    """Error body for hard failures."""
    success: bool = False
    error: str
    message: str
    path: str
    status: int
