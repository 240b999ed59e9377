# backend/portfolio_tracker/services/circuit_breaker.py
"""
Circuit breaker guarding calls to the market data provider.

After `failure_threshold` consecutive failures the breaker opens and every
call is rejected immediately with CircuitBreakerOpen, so a dead upstream
costs nothing instead of a full timeout per ticker. Once `recovery_timeout`
seconds have passed, a single trial call is let through (half-open): success
closes the breaker, failure opens it again.

States:
    CLOSED    - Normal operation
    OPEN      - Rejecting calls
    HALF_OPEN - One trial call in flight

Usage:
    breaker = CircuitBreaker(name="stock_api", failure_threshold=5)

    try:
        async with breaker:
            quotes = await provider.get_batch_prices(tickers)
    except CircuitBreakerOpen:
        ...
"""

import logging
import threading
import time
from enum import Enum
from typing import Any, Callable

logger = logging.getLogger(__name__)


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerOpen(Exception):
    """
    Raised when a call is rejected because the breaker is open.

    Attributes:
        breaker_name: Name of the breaker
        time_remaining: Seconds until a trial call will be allowed
    """

    def __init__(self, breaker_name: str, time_remaining: float) -> None:
        self.breaker_name = breaker_name
        self.time_remaining = time_remaining
        super().__init__(
            f"Circuit breaker '{breaker_name}' is open. "
            f"Retry in {time_remaining:.1f} seconds."
        )


class CircuitBreaker:
    """
    Consecutive-failure circuit breaker usable with `async with` or `with`.

    Args:
        name: Identifier used in logs and errors
        failure_threshold: Consecutive failures before opening
        recovery_timeout: Seconds to stay open before allowing a trial call
        excluded_exceptions: Exceptions that signal a healthy upstream
            answering "no" (e.g. unknown ticker) and do not count as failures
        clock: Monotonic time source, injectable for tests
    """

    def __init__(
            self,
            name: str,
            failure_threshold: int = 5,
            recovery_timeout: float = 60.0,
            excluded_exceptions: tuple[type[BaseException], ...] = (),
            clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be at least 1")
        if recovery_timeout < 0:
            raise ValueError("recovery_timeout cannot be negative")

        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.excluded_exceptions = excluded_exceptions
        self._clock = clock

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._opened_at = 0.0
        self._trial_in_flight = False
        self._lock = threading.Lock()

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def state(self) -> CircuitState:
        with self._lock:
            self._refresh_state()
            return self._state

    @property
    def failure_count(self) -> int:
        return self._failure_count

    def _refresh_state(self) -> None:
        if (
            self._state == CircuitState.OPEN
            and self._clock() - self._opened_at >= self.recovery_timeout
        ):
            self._transition_to(CircuitState.HALF_OPEN)

    def _transition_to(self, new_state: CircuitState) -> None:
        old_state = self._state
        self._state = new_state
        if new_state == CircuitState.OPEN:
            self._opened_at = self._clock()
        elif new_state == CircuitState.CLOSED:
            self._failure_count = 0
        self._trial_in_flight = False

        logger.info(
            f"CircuitBreaker '{self.name}' state change: "
            f"{old_state.value} -> {new_state.value}"
        )

    def _time_until_trial(self) -> float:
        return max(0.0, self.recovery_timeout - (self._clock() - self._opened_at))

    # =========================================================================
    # CALL ACCOUNTING
    # =========================================================================

    def before_call(self) -> None:
        """
        Admit or reject a call.

        Raises:
            CircuitBreakerOpen: If open, or half-open with a trial in flight
        """
        with self._lock:
            self._refresh_state()
            if self._state == CircuitState.CLOSED:
                return
            if self._state == CircuitState.HALF_OPEN and not self._trial_in_flight:
                self._trial_in_flight = True
                return
            raise CircuitBreakerOpen(self.name, self._time_until_trial())

    def record_success(self) -> None:
        with self._lock:
            if self._state == CircuitState.HALF_OPEN:
                self._transition_to(CircuitState.CLOSED)
            else:
                self._failure_count = 0

    def record_failure(self) -> None:
        with self._lock:
            if self._state == CircuitState.HALF_OPEN:
                self._transition_to(CircuitState.OPEN)
                return
            self._failure_count += 1
            if self._state == CircuitState.CLOSED and self._failure_count >= self.failure_threshold:
                logger.warning(
                    f"CircuitBreaker '{self.name}' opening after "
                    f"{self._failure_count} consecutive failures"
                )
                self._transition_to(CircuitState.OPEN)

    def _record_outcome(self, exc: BaseException | None) -> None:
        if exc is None or isinstance(exc, self.excluded_exceptions):
            self.record_success()
        else:
            self.record_failure()

    # =========================================================================
    # CONTEXT MANAGERS
    # =========================================================================

    def __enter__(self) -> "CircuitBreaker":
        self.before_call()
        return self

    def __exit__(self, exc_type: type | None, exc_val: BaseException | None, exc_tb: Any) -> bool:
        self._record_outcome(exc_val)
        return False

    async def __aenter__(self) -> "CircuitBreaker":
        self.before_call()
        return self

    async def __aexit__(self, exc_type: type | None, exc_val: BaseException | None, exc_tb: Any) -> bool:
        self._record_outcome(exc_val)
        return False

    def reset(self) -> None:
        """Force the breaker closed."""
        with self._lock:
            self._transition_to(CircuitState.CLOSED)
