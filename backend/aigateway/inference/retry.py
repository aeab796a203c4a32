"""
Retry helper - Exponential backoff with jitter for async operations.
"""

import asyncio
import logging
import random
from typing import Any, Callable, Coroutine, Optional, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')


def backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    """Delay before retry number attempt + 1 (attempt counts from 0)."""
    delay = min(base_delay * (2 ** attempt), max_delay)
    return delay * (0.5 + random.random())


async def execute_with_retry(
    operation: Callable[[], Coroutine[Any, Any, T]],
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 8.0,
    is_retryable: Callable[[Exception], bool] = lambda e: True,
    retryable_exceptions: Tuple[type, ...] = (Exception,),
    sleep: Callable[[float], Coroutine[Any, Any, None]] = asyncio.sleep,
) -> T:
    """
    Execute an async operation with exponential backoff retry.

    Args:
        operation: Async callable to execute
        max_attempts: Total attempts, the first one included
        base_delay: Initial delay between attempts
        max_delay: Maximum delay between attempts
        is_retryable: Decides, per exception, whether another attempt is worth it
        retryable_exceptions: Exceptions that are considered at all
        sleep: Awaitable sleep, injectable for tests

    Returns:
        Result of the operation

    Raises:
        The last exception if all attempts fail, or the first non-retryable one
    """
    attempts = max(1, max_attempts)
    last_exception: Optional[Exception] = None

    for attempt in range(attempts):
        try:
            return await operation()
        except retryable_exceptions as e:
            last_exception = e
            if not is_retryable(e) or attempt + 1 >= attempts:
                raise
            delay = backoff_delay(attempt, base_delay, max_delay)
            logger.warning(
                f"Operation failed (attempt {attempt + 1}/{attempts}): {e}. "
                f"Retrying in {delay:.2f}s..."
            )
            await sleep(delay)

    raise last_exception  # type: ignore
