"""
Chat API endpoints - Conversational turns and session lookup.
"""

import logging
from fastapi import APIRouter, Depends, HTTPException, status

from .deps import get_chat_service, get_session_manager
from ..core.chat_service import ChatService
from ..core.session_manager import SessionManager
from ..models import ChatRequest, ChatResponse, Session

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["chat"])


@router.post("/chat", response_model=ChatResponse, response_model_by_alias=True)
async def chat(
    request: ChatRequest,
    chat_service: ChatService = Depends(get_chat_service),
):
    """
    Send a chat message and get the AI answer.

    Args:
        request: Message with optional sessionId and userId

    Returns:
        ChatResponse: The answer (success=False when the AI service failed)
    """
    return await chat_service.handle(request)


@router.get("/sessions/{session_key}", response_model=Session)
async def get_session(
    session_key: str,
    session_manager: SessionManager = Depends(get_session_manager),
):
    """
    Get a session with its stored history.

    Args:
        session_key: Public session key

    Returns:
        Session: The stored session
    """
    session = await session_manager.get(session_key)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Session not found: {session_key}"
        )
    return session
