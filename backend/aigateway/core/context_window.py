"""
Context Window - Selects and token-bounds the conversation sent upstream.

Token costs are estimated, not counted by a tokenizer: one token per
character, two for Korean, Japanese kana and CJK ideographs, plus a fixed
per-message overhead.
"""

import logging
from datetime import timezone
from typing import Any, Dict, List, Optional, Sequence

from ..models import Message, Session

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_BUDGET = 4000
MESSAGE_OVERHEAD_TOKENS = 4

# Inclusive code point ranges that cost two tokens per character
_WIDE_RANGES = (
    (0x1100, 0x11FF),  # Hangul Jamo
    (0x3130, 0x318F),  # Hangul Compatibility Jamo
    (0xAC00, 0xD7AF),  # Hangul Syllables
    (0x3040, 0x309F),  # Hiragana
    (0x30A0, 0x30FF),  # Katakana
    (0x4E00, 0x9FFF),  # CJK Unified Ideographs
)


def _is_wide(ch: str) -> bool:
    code = ord(ch)
    return any(low <= code <= high for low, high in _WIDE_RANGES)


def estimate_text_tokens(text: Optional[str]) -> int:
    """Estimated token cost of a piece of text, without message overhead."""
    if not text:
        return 0
    return sum(2 if _is_wide(ch) else 1 for ch in text)


def estimate_message_tokens(message: Message) -> int:
    """Estimated token cost of one message, overhead included."""
    return estimate_text_tokens(message.content) + MESSAGE_OVERHEAD_TOKENS


def estimate_tokens(messages: Sequence[Message]) -> int:
    """Estimated token cost of a list of messages."""
    return sum(estimate_message_tokens(m) for m in messages)


class ContextWindow:
    """
    Builds the bounded conversation slice for upstream calls and bounds
    stored history.
    """

    def __init__(self, token_budget: int = DEFAULT_TOKEN_BUDGET):
        """
        Args:
            token_budget: Token limit for upstream context and stored history
        """
        self.token_budget = token_budget

    def recent(self, session: Optional[Session], max_messages: int) -> List[Message]:
        """
        Return the last max_messages messages of a session, oldest first.

        The session itself is not modified.
        """
        if session is None or not session.messages:
            return []
        count = max(0, max_messages)
        if count == 0:
            return []
        return list(session.messages[-count:])

    def format_for_upstream(self, messages: Sequence[Message]) -> Optional[Dict[str, Any]]:
        """
        Convert messages to the upstream context payload.

        Returns:
            {"messages": [{"role", "content", "timestamp"}]} with epoch-second
            timestamps, or None when there is nothing to send (the field is
            then left out of the request).
        """
        if not messages:
            return None

        formatted = []
        for msg in messages:
            if msg is None:
                continue
            timestamp = msg.timestamp
            if timestamp.tzinfo is None:
                timestamp = timestamp.replace(tzinfo=timezone.utc)
            formatted.append({
                "role": msg.role,
                "content": msg.content or "",
                "timestamp": int(timestamp.timestamp()),
            })

        return {"messages": formatted} if formatted else None

    def truncate_by_token_budget(
        self,
        messages: Sequence[Message],
        budget: Optional[int] = None,
    ) -> List[Message]:
        """
        Keep the newest messages that fit in the budget.

        Scans newest to oldest and stops at the first message that does not
        fit; messages are never split. The result is in chronological order.

        Args:
            messages: Messages, oldest first
            budget: Token budget (defaults to the window's budget)

        Returns:
            List[Message]: A suffix of messages whose estimated cost is within budget
        """
        if not messages:
            return []
        remaining = max(0, self.token_budget if budget is None else budget)

        kept: List[Message] = []
        for msg in reversed(messages):
            cost = estimate_message_tokens(msg)
            if cost > remaining:
                break
            kept.append(msg)
            remaining -= cost

        kept.reverse()
        return kept

    def should_truncate(self, session: Optional[Session]) -> bool:
        """True if stored history exceeds the token budget or the message bound."""
        if session is None or not session.messages:
            return False
        if len(session.messages) > session.max_stored_messages:
            return True
        return estimate_tokens(session.messages) > self.token_budget

    def bound_history(
        self,
        messages: Sequence[Message],
        max_messages: int,
        budget: Optional[int] = None,
    ) -> List[Message]:
        """
        Bound stored history: the most recent max_messages, then the token budget.

        A single message larger than the whole budget is dropped rather than
        split, so the result can be shorter than expected (even empty).
        """
        count = max(0, max_messages)
        recent = list(messages[-count:]) if count else []
        bounded = self.truncate_by_token_budget(recent, budget)
        dropped = len(messages) - len(bounded)
        if dropped:
            logger.debug(f"History bounded - dropped: {dropped}, kept: {len(bounded)}")
        return bounded
