"""
Chat Service - The request pipeline from a chat message to an answer.

resolve session -> cached answer? -> bounded context -> upstream ->
append the exchange -> cache the answer
"""

import logging
from typing import Optional

from .context_window import ContextWindow
from .session_manager import SessionManager
from ..cache import ResponseCache
from ..inference import InferenceClient
from ..models import (
    ChatRequest, ChatResponse, InferenceRequest, InferenceResponse,
    Message, MessageMetadata, Session
)

logger = logging.getLogger(__name__)


class ChatService:
    """
    Coordinates the session manager, the response cache, the context
    window and the inference client for one chat turn.
    """

    def __init__(
        self,
        session_manager: SessionManager,
        cache: ResponseCache,
        context_window: ContextWindow,
        inference_client: InferenceClient,
        mode: str = "parallel",
    ):
        self.session_manager = session_manager
        self.cache = cache
        self.context_window = context_window
        self.inference_client = inference_client
        self.mode = mode

    def build_context(self, session: Session) -> Optional[dict]:
        """Recent messages of the session, token-bounded, in upstream format."""
        recent = self.context_window.recent(session, session.max_context_window)
        limited = self.context_window.truncate_by_token_budget(recent)
        return self.context_window.format_for_upstream(limited)

    async def handle(self, request: ChatRequest) -> ChatResponse:
        """
        Process one chat message.

        Only successful upstream answers are recorded in the session and
        cached; failure values are returned as they are.

        Args:
            request: Validated chat request

        Returns:
            ChatResponse: The answer, cached=True when served from the cache

        Raises:
            SessionNotFound: If the session disappeared before the exchange was stored
        """
        session = await self.session_manager.resolve(request.session_id, request.user_id)
        session_key = session.session_key

        logger.info(
            f"Chat request - sessionKey: {session_key}, userId: {request.user_id}, "
            f"message: {request.message[:100]}"
        )

        cached = await self.cache.get(session_key, request.message)
        if cached is not None:
            logger.info(f"Serving cached answer - sessionKey: {session_key}")
            return self._to_chat_response(session_key, cached, cached=True)

        inference_request = InferenceRequest(
            message=request.message,
            session_id=session_key,
            mode=self.mode,
            context=self.build_context(session),
        )
        response = await self.inference_client.query(inference_request)

        if response.success:
            assistant_message = Message.assistant(
                response.message,
                MessageMetadata(
                    processing_time_seconds=response.processing_time,
                    mode_used=response.mode_used,
                    complexity_score=(
                        response.metadata.complexity_score if response.metadata else None
                    ),
                ),
            )
            await self.session_manager.append_pair(
                session_key, Message.user(request.message), assistant_message
            )
            await self.cache.put(session_key, request.message, response)
        else:
            logger.warning(
                f"Upstream answer not recorded - sessionKey: {session_key}, "
                f"modeUsed: {response.mode_used}"
            )

        return self._to_chat_response(session_key, response)

    @staticmethod
    def _to_chat_response(
        session_key: str,
        response: InferenceResponse,
        cached: bool = False,
    ) -> ChatResponse:
        return ChatResponse(
            success=response.success,
            message=response.message,
            session_id=session_key,
            processing_time_seconds=response.processing_time,
            mode_used=response.mode_used,
            cached=cached,
            metadata=response.metadata,
        )
