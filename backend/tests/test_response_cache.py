"""
Unit tests for the cache layer: memory backend TTLs, the best-effort
wrapper and the response/session cache.
"""

import pytest

from aigateway.cache import MemoryCacheBackend, ResponseCache, best_effort, fingerprint
from aigateway.core.exceptions import CacheUnavailable
from aigateway.models import InferenceResponse, Session


def make_response(message: str = "Hello!") -> InferenceResponse:
    return InferenceResponse(
        success=True,
        message=message,
        session_id="session_a",
        processing_time=1.2,
        mode_used="parallel",
    )


class TestFingerprint:
    """Tests for message fingerprints."""

    def test_trimmed_equal_texts_match(self):
        assert fingerprint("  hello world \n") == fingerprint("hello world")

    def test_different_texts_differ(self):
        assert fingerprint("hello") != fingerprint("Hello")
        assert fingerprint("a b") != fingerprint("a  b")

    def test_trims_control_characters(self):
        assert fingerprint("\x00\x07hi\t\x1f") == fingerprint("hi")

    def test_unicode_spaces_are_not_trimmed(self):
        assert fingerprint("hi\u3000") != fingerprint("hi")
        assert fingerprint("\u00a0hi") != fingerprint("hi")

    def test_sha256_hex(self):
        value = fingerprint("hello")
        assert len(value) == 64
        assert value == "2cf24dba5fb0a30e26e83b2ac5b9e29e1b161e5c1fa7425e73043362938b9824"


class TestMemoryCacheBackend:
    """Tests for MemoryCacheBackend."""

    @pytest.mark.asyncio
    async def test_set_get_within_ttl(self, clock):
        backend = MemoryCacheBackend(clock=clock)
        await backend.set("k", "v", 10)

        clock.advance(9.9)
        assert await backend.get("k") == "v"

    @pytest.mark.asyncio
    async def test_expires_at_ttl(self, clock):
        backend = MemoryCacheBackend(clock=clock)
        await backend.set("k", "v", 10)

        clock.advance(10)
        assert await backend.get("k") is None
        assert len(backend) == 0

    @pytest.mark.asyncio
    async def test_delete_prefix(self, clock):
        backend = MemoryCacheBackend(clock=clock)
        await backend.set("query:s1:a", "1", 60)
        await backend.set("query:s1:b", "2", 60)
        await backend.set("query:s2:a", "3", 60)

        removed = await backend.delete_prefix("query:s1:")

        assert removed == 2
        assert await backend.scan_prefix("query:") == ["query:s2:a"]

    @pytest.mark.asyncio
    async def test_evicts_when_full(self, clock):
        backend = MemoryCacheBackend(clock=clock, max_items=2)
        await backend.set("short", "1", 5)
        await backend.set("long", "2", 50)
        await backend.set("new", "3", 50)

        assert await backend.get("short") is None
        assert await backend.get("long") == "2"
        assert await backend.get("new") == "3"

    @pytest.mark.asyncio
    async def test_unavailable_raises(self, clock):
        backend = MemoryCacheBackend(clock=clock)
        backend.set_available(False)

        with pytest.raises(CacheUnavailable):
            await backend.get("k")


class TestBestEffort:
    """Tests for the best-effort wrapper."""

    @pytest.mark.asyncio
    async def test_returns_result(self):
        async def op():
            return 42

        assert await best_effort(op, 0, "GET", "k") == 42

    @pytest.mark.asyncio
    async def test_failure_returns_fallback(self):
        async def op():
            raise CacheUnavailable("down")

        assert await best_effort(op, "fallback", "GET", "k") == "fallback"


class TestResponseCache:
    """Tests for ResponseCache."""

    @pytest.mark.asyncio
    async def test_put_then_get(self, response_cache):
        assert await response_cache.put("session_a", "What is RAG?", make_response())

        cached = await response_cache.get("session_a", "  What is RAG?  ")

        assert cached == make_response()

    @pytest.mark.asyncio
    async def test_miss(self, response_cache):
        assert await response_cache.get("session_a", "unknown") is None

    @pytest.mark.asyncio
    async def test_response_ttl(self, cache_backend, clock):
        cache = ResponseCache(cache_backend, response_ttl_seconds=300)
        await cache.put("session_a", "q", make_response())

        clock.advance(299)
        assert await cache.get("session_a", "q") is not None

        clock.advance(1)
        assert await cache.get("session_a", "q") is None

    @pytest.mark.asyncio
    async def test_session_snapshot_ttl(self, cache_backend, clock):
        cache = ResponseCache(cache_backend, session_ttl_seconds=600)
        session = Session(session_key="session_a", owner_id="u")
        assert await cache.put_session(session)

        clock.advance(599)
        assert await cache.get_session("session_a") == session

        clock.advance(1)
        assert await cache.get_session("session_a") is None

    @pytest.mark.asyncio
    async def test_invalidate_queries_keeps_session(self, response_cache):
        await response_cache.put_session(Session(session_key="session_a", owner_id="u"))
        await response_cache.put("session_a", "q1", make_response())
        await response_cache.put("session_a", "q2", make_response())
        await response_cache.put("session_b", "q1", make_response())

        assert await response_cache.invalidate_queries("session_a")

        assert await response_cache.get("session_a", "q1") is None
        assert await response_cache.get("session_a", "q2") is None
        assert await response_cache.get("session_b", "q1") is not None
        assert await response_cache.get_session("session_a") is not None

    @pytest.mark.asyncio
    async def test_invalidate_all(self, response_cache):
        await response_cache.put_session(Session(session_key="session_a", owner_id="u"))
        await response_cache.put("session_a", "q1", make_response())

        assert await response_cache.invalidate_all("session_a")

        assert await response_cache.get_session("session_a") is None
        assert await response_cache.get("session_a", "q1") is None

    @pytest.mark.asyncio
    async def test_unavailable_backend_degrades(self, cache_backend, response_cache):
        cache_backend.set_available(False)

        assert await response_cache.get("session_a", "q") is None
        assert await response_cache.put("session_a", "q", make_response()) is False
        assert await response_cache.get_session("session_a") is None
        assert await response_cache.put_session(Session(session_key="session_a", owner_id="u")) is False
        assert await response_cache.invalidate_all("session_a") is False

    @pytest.mark.asyncio
    async def test_corrupt_entry_is_a_miss(self, cache_backend, response_cache):
        await cache_backend.set("session:session_a", "{not json", 60)
        assert await response_cache.get_session("session_a") is None
