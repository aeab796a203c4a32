"""
Circuit Breaker - Failure-rate breaker guarding upstream calls.

State Machine:
    CLOSED -> OPEN: failure rate over the sliding window reaches the threshold
                    (once at least minimum_calls outcomes are recorded)
    OPEN -> HALF_OPEN: after open_wait_seconds
    HALF_OPEN -> CLOSED: every permitted trial call succeeded
    HALF_OPEN -> OPEN: any trial call failed

Usage:
    breaker = CircuitBreaker()

    permit = breaker.allow_request()
    if permit:
        try:
            result = await do_call()
            breaker.record_success(permit)
        except Exception:
            breaker.record_failure(permit)
            raise
    else:
        raise CircuitOpen()

Every state change starts a new generation. Outcomes reported with a permit
from an earlier generation are ignored, so a slow call admitted while
CLOSED cannot decide the HALF_OPEN trial.

Methods are synchronous and never await, so one event loop needs no lock.
"""

import logging
import time
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Deque, Optional

logger = logging.getLogger(__name__)


class CircuitState(str, Enum):
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass(frozen=True)
class Permit:
    """Admission ticket returned by allow_request()."""
    generation: int


class CircuitBreaker:
    """
    Count-based sliding-window circuit breaker with an injectable clock.
    """

    def __init__(
        self,
        name: str = "inference",
        failure_rate_threshold: float = 50.0,
        sliding_window_size: int = 10,
        minimum_calls: int = 5,
        open_wait_seconds: float = 30.0,
        half_open_permitted_calls: int = 1,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            name: Label used in log lines
            failure_rate_threshold: Failure percentage (0-100) that opens the circuit
            sliding_window_size: Number of most recent outcomes considered
            minimum_calls: Outcomes required before the rate is evaluated
            open_wait_seconds: Time spent OPEN before trial calls are allowed
            half_open_permitted_calls: Trial calls allowed in HALF_OPEN
            clock: Monotonic time source in seconds
        """
        self.name = name
        self.failure_rate_threshold = failure_rate_threshold
        self.sliding_window_size = max(1, sliding_window_size)
        self.minimum_calls = max(1, minimum_calls)
        self.open_wait_seconds = open_wait_seconds
        self.half_open_permitted_calls = max(1, half_open_permitted_calls)
        self._clock = clock

        self._state = CircuitState.CLOSED
        self._generation = 0
        self._outcomes: Deque[bool] = deque(maxlen=self.sliding_window_size)  # True = failure
        self._opened_at: Optional[float] = None
        self._half_open_started = 0
        self._half_open_succeeded = 0

    @property
    def state(self) -> CircuitState:
        """Current state, moving OPEN to HALF_OPEN once the wait has elapsed."""
        if self._state == CircuitState.OPEN and self._wait_elapsed():
            self._transition(CircuitState.HALF_OPEN)
        return self._state

    @property
    def failure_rate(self) -> float:
        """Failure percentage over the sliding window, -1.0 below minimum_calls."""
        if len(self._outcomes) < self.minimum_calls:
            return -1.0
        return 100.0 * sum(self._outcomes) / len(self._outcomes)

    def _wait_elapsed(self) -> bool:
        return (
            self._opened_at is not None
            and self._clock() - self._opened_at >= self.open_wait_seconds
        )

    def _transition(self, new_state: CircuitState) -> None:
        old_state = self._state
        self._state = new_state
        self._generation += 1

        if new_state == CircuitState.OPEN:
            self._opened_at = self._clock()
        elif new_state == CircuitState.HALF_OPEN:
            self._half_open_started = 0
            self._half_open_succeeded = 0
        elif new_state == CircuitState.CLOSED:
            self._outcomes.clear()
            self._opened_at = None

        log = logger.warning if new_state == CircuitState.OPEN else logger.info
        log(
            f"Circuit breaker '{self.name}': {old_state.value} -> {new_state.value}",
            extra={"extra_fields": {"circuit": self.name, "state": new_state.value}}
        )

    def _is_stale(self, permit: Optional[Permit]) -> bool:
        if permit is None or permit.generation == self._generation:
            return False
        logger.debug(
            f"Circuit breaker '{self.name}': ignoring outcome from generation "
            f"{permit.generation} (now {self._generation})"
        )
        return True

    def allow_request(self) -> Optional[Permit]:
        """
        Check if a call may go through. In HALF_OPEN this claims a trial slot.

        Returns:
            Optional[Permit]: A permit to pass back to record_success/record_failure,
            or None if the call must be refused
        """
        state = self.state
        if state == CircuitState.CLOSED:
            return Permit(self._generation)
        if state == CircuitState.HALF_OPEN:
            if self._half_open_started < self.half_open_permitted_calls:
                self._half_open_started += 1
                return Permit(self._generation)
        return None

    def record_success(self, permit: Optional[Permit] = None) -> None:
        """Record a successful call. Outcomes of earlier generations are ignored."""
        if self._is_stale(permit):
            return
        if self._state == CircuitState.HALF_OPEN:
            self._half_open_succeeded += 1
            if self._half_open_succeeded >= self.half_open_permitted_calls:
                self._transition(CircuitState.CLOSED)
            return
        if self._state == CircuitState.CLOSED:
            self._outcomes.append(False)

    def record_failure(self, permit: Optional[Permit] = None) -> None:
        """Record a failed call. Outcomes of earlier generations are ignored."""
        if self._is_stale(permit):
            return
        if self._state == CircuitState.HALF_OPEN:
            self._transition(CircuitState.OPEN)
            return
        if self._state == CircuitState.CLOSED:
            self._outcomes.append(True)
            if self.failure_rate >= self.failure_rate_threshold:
                self._transition(CircuitState.OPEN)

    def reset(self) -> None:
        """Force the breaker back to CLOSED with an empty window."""
        self._transition(CircuitState.CLOSED)
