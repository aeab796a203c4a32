"""Models module."""

from .session import Message, MessageMetadata, Session, utcnow
from .inference import (
    InferenceRequest, InferenceResponse, ResponseMetadata, ToolResult, UpstreamHealth
)
from .chat import ChatRequest, ChatResponse, ErrorResponse

__all__ = [
    'Message', 'MessageMetadata', 'Session', 'utcnow',
    'InferenceRequest', 'InferenceResponse', 'ResponseMetadata', 'ToolResult', 'UpstreamHealth',
    'ChatRequest', 'ChatResponse', 'ErrorResponse'
]
