"""
Tests for the chat pipeline with real session/cache components and a
mocked upstream.
"""

import json

import httpx
import pytest

from aigateway.core.chat_service import ChatService
from aigateway.inference import InferenceClient
from aigateway.models import ChatRequest


async def no_sleep(delay: float) -> None:
    return None


class FakeUpstream:
    """Answers every query, recording the payloads it received."""

    def __init__(self, status_code: int = 200):
        self.status_code = status_code
        self.payloads = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        self.payloads.append(payload)
        if self.status_code != 200:
            return httpx.Response(self.status_code)
        return httpx.Response(200, json={
            "success": True,
            "message": f"answer to {payload['message']}",
            "session_id": payload["session_id"],
            "processing_time": 0.8,
            "mode_used": "parallel",
            "metadata": {"complexity_score": 0.3},
        })


@pytest.fixture
def upstream():
    return FakeUpstream()


@pytest.fixture
def chat_service(session_manager, response_cache, context_window, upstream):
    client = InferenceClient(
        base_url="http://upstream.test",
        transport=httpx.MockTransport(upstream),
        retry_max_attempts=1,
        sleep=no_sleep,
    )
    return ChatService(session_manager, response_cache, context_window, client)


class TestChatService:
    """Tests for ChatService.handle()."""

    @pytest.mark.asyncio
    async def test_first_message_creates_session(self, chat_service, repository, upstream):
        response = await chat_service.handle(ChatRequest(message="hello", userId="user-1"))

        assert response.success
        assert response.message == "answer to hello"
        assert not response.cached
        assert response.mode_used == "parallel"
        assert "context" not in upstream.payloads[0]

        stored = await repository.find_by_session_key(response.session_id)
        assert stored.owner_id == "user-1"
        assert [(m.role, m.content) for m in stored.messages] == [
            ("user", "hello"), ("assistant", "answer to hello")
        ]
        assert stored.messages[1].metadata.complexity_score == 0.3

    @pytest.mark.asyncio
    async def test_follow_up_sends_history_as_context(self, chat_service, upstream):
        first = await chat_service.handle(ChatRequest(message="hello"))
        await chat_service.handle(ChatRequest(message="and then?", sessionId=first.session_id))

        context = upstream.payloads[1]["context"]
        assert [m["content"] for m in context["messages"]] == ["hello", "answer to hello"]
        assert upstream.payloads[1]["session_id"] == first.session_id

    @pytest.mark.asyncio
    async def test_identical_resubmission_is_served_from_cache(
        self, chat_service, repository, upstream
    ):
        first = await chat_service.handle(ChatRequest(message="hello"))

        again = await chat_service.handle(ChatRequest(message=" hello ", sessionId=first.session_id))

        assert again.cached
        assert again.message == first.message
        assert len(upstream.payloads) == 1
        stored = await repository.find_by_session_key(first.session_id)
        assert len(stored.messages) == 2

    @pytest.mark.asyncio
    async def test_new_turn_invalidates_cached_answers(self, chat_service, upstream):
        first = await chat_service.handle(ChatRequest(message="hello"))
        await chat_service.handle(ChatRequest(message="other", sessionId=first.session_id))

        repeat = await chat_service.handle(ChatRequest(message="hello", sessionId=first.session_id))

        assert not repeat.cached
        assert len(upstream.payloads) == 3

    @pytest.mark.asyncio
    async def test_upstream_failure_is_not_recorded(self, chat_service, repository, upstream):
        upstream.status_code = 503

        response = await chat_service.handle(ChatRequest(message="hello"))

        assert not response.success
        assert response.mode_used == "fallback"
        stored = await repository.find_by_session_key(response.session_id)
        assert stored.messages == []

    @pytest.mark.asyncio
    async def test_unknown_session_key_recovers(self, chat_service):
        response = await chat_service.handle(
            ChatRequest(message="hello", sessionId="session_gone")
        )

        assert response.success
        assert response.session_id != "session_gone"

    @pytest.mark.asyncio
    async def test_works_with_cache_unavailable(self, chat_service, cache_backend, repository):
        cache_backend.set_available(False)

        first = await chat_service.handle(ChatRequest(message="hello"))
        second = await chat_service.handle(ChatRequest(message="hello", sessionId=first.session_id))

        assert first.success and second.success
        assert not second.cached
        stored = await repository.find_by_session_key(first.session_id)
        assert len(stored.messages) == 4
