"""
Unit tests for the context window: token estimation, recent slices,
upstream formatting and truncation.
"""

from datetime import datetime, timezone

from aigateway.core.context_window import (
    ContextWindow, MESSAGE_OVERHEAD_TOKENS, estimate_message_tokens,
    estimate_text_tokens, estimate_tokens
)
from aigateway.models import Message, Session


def make_messages(count: int, content: str = "hello") -> list:
    return [
        Message(role="user" if i % 2 == 0 else "assistant", content=f"{content} {i}")
        for i in range(count)
    ]


class TestTokenEstimation:
    """Tests for the token cost heuristic."""

    def test_ascii_costs_one_per_character(self):
        assert estimate_text_tokens("hello") == 5

    def test_korean_costs_two_per_character(self):
        assert estimate_text_tokens("안녕") == 4

    def test_kana_and_cjk_cost_two(self):
        assert estimate_text_tokens("ひカ") == 4
        assert estimate_text_tokens("中文") == 4

    def test_mixed_text(self):
        assert estimate_text_tokens("hi 안녕") == 3 + 4

    def test_empty_text(self):
        assert estimate_text_tokens("") == 0
        assert estimate_text_tokens(None) == 0

    def test_message_overhead(self):
        msg = Message.user("abc")
        assert estimate_message_tokens(msg) == 3 + MESSAGE_OVERHEAD_TOKENS

    def test_list_sum(self):
        msgs = [Message.user("ab"), Message.assistant("cd")]
        assert estimate_tokens(msgs) == 2 * (2 + MESSAGE_OVERHEAD_TOKENS)


class TestRecent:
    """Tests for recent()."""

    def test_returns_last_n_in_order(self):
        session = Session(session_key="session_a", owner_id="u", messages=make_messages(6))
        window = ContextWindow()

        recent = window.recent(session, 4)

        assert [m.content for m in recent] == ["hello 2", "hello 3", "hello 4", "hello 5"]

    def test_does_not_mutate_session(self):
        session = Session(session_key="session_a", owner_id="u", messages=make_messages(6))
        ContextWindow().recent(session, 2)
        assert len(session.messages) == 6

    def test_fewer_messages_than_requested(self):
        session = Session(session_key="session_a", owner_id="u", messages=make_messages(3))
        assert len(ContextWindow().recent(session, 10)) == 3

    def test_zero_negative_and_empty(self):
        window = ContextWindow()
        session = Session(session_key="session_a", owner_id="u", messages=make_messages(3))
        assert window.recent(session, 0) == []
        assert window.recent(session, -3) == []
        assert window.recent(None, 5) == []
        assert window.recent(Session(session_key="session_b", owner_id="u"), 5) == []


class TestFormatForUpstream:
    """Tests for the upstream context payload."""

    def test_empty_returns_none(self):
        assert ContextWindow().format_for_upstream([]) is None

    def test_payload_shape(self):
        ts = datetime(2025, 1, 1, 0, 0, tzinfo=timezone.utc)
        msgs = [
            Message(role="user", content="Hi", timestamp=ts),
            Message(role="assistant", content="Hello!", timestamp=ts),
        ]

        payload = ContextWindow().format_for_upstream(msgs)

        assert payload == {
            "messages": [
                {"role": "user", "content": "Hi", "timestamp": int(ts.timestamp())},
                {"role": "assistant", "content": "Hello!", "timestamp": int(ts.timestamp())},
            ]
        }


class TestTruncateByTokenBudget:
    """Tests for truncate_by_token_budget()."""

    def test_everything_fits(self):
        msgs = make_messages(4)
        assert ContextWindow().truncate_by_token_budget(msgs, 4000) == msgs

    def test_keeps_newest_suffix_within_budget(self):
        msgs = [Message.user("a" * 96) for _ in range(10)]  # 100 tokens each

        kept = ContextWindow().truncate_by_token_budget(msgs, 350)

        assert len(kept) == 3
        assert kept == msgs[-3:]
        assert estimate_tokens(kept) <= 350

    def test_stops_at_first_message_that_does_not_fit(self):
        msgs = [Message.user("small"), Message.user("x" * 500), Message.user("tail")]

        kept = ContextWindow().truncate_by_token_budget(msgs, 100)

        assert [m.content for m in kept] == ["tail"]

    def test_idempotent(self):
        window = ContextWindow()
        msgs = [Message.user("가" * 50) for _ in range(30)]

        once = window.truncate_by_token_budget(msgs, 1000)
        twice = window.truncate_by_token_budget(once, 1000)

        assert once == twice

    def test_oversized_single_message_is_dropped(self):
        msgs = [Message.user("x" * 5000)]
        assert ContextWindow().truncate_by_token_budget(msgs, 4000) == []

    def test_default_budget(self):
        window = ContextWindow(token_budget=20)
        msgs = [Message.user("a" * 6) for _ in range(5)]  # 10 tokens each
        assert len(window.truncate_by_token_budget(msgs)) == 2


class TestShouldTruncate:
    """Tests for the truncation trigger."""

    def test_count_over_window(self):
        session = Session(
            session_key="session_a", owner_id="u", max_context_window=2, messages=make_messages(5)
        )
        assert ContextWindow().should_truncate(session)

    def test_tokens_over_budget(self):
        session = Session(
            session_key="session_a", owner_id="u", messages=[Message.user("x" * 4100)]
        )
        assert ContextWindow().should_truncate(session)

    def test_within_limits(self):
        session = Session(session_key="session_a", owner_id="u", messages=make_messages(4))
        assert not ContextWindow().should_truncate(session)
        assert not ContextWindow().should_truncate(None)


class TestBoundHistory:
    """Tests for bound_history()."""

    def test_count_then_token_bound(self):
        window = ContextWindow(token_budget=250)
        msgs = [Message.user("a" * 96) for _ in range(30)]  # 100 tokens each

        bounded = window.bound_history(msgs, 20)

        assert bounded == msgs[-2:]

    def test_count_bound_only(self):
        msgs = make_messages(50)
        bounded = ContextWindow().bound_history(msgs, 20)
        assert bounded == msgs[-20:]
