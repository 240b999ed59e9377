# tests/services/test_circuit_breaker.py
"""
Tests for the consecutive-failure circuit breaker.
"""

import pytest

from portfolio_tracker.services.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerOpen,
    CircuitState,
)
from tests.conftest import FakeClock


def _trip(breaker: CircuitBreaker, times: int) -> None:
    for i in range(times):
        with pytest.raises(ValueError):
            with breaker:
                raise ValueError(f"Failure {i}")


class TestCircuitBreakerInit:
    """Tests for circuit breaker initialization."""

    def test_default_values(self):
        breaker = CircuitBreaker(name="test")

        assert breaker.name == "test"
        assert breaker.failure_threshold == 5
        assert breaker.recovery_timeout == 60.0
        assert breaker.state == CircuitState.CLOSED
        assert breaker.failure_count == 0

    def test_invalid_failure_threshold(self):
        with pytest.raises(ValueError, match="failure_threshold must be at least 1"):
            CircuitBreaker(name="test", failure_threshold=0)

    def test_invalid_recovery_timeout(self):
        with pytest.raises(ValueError, match="recovery_timeout cannot be negative"):
            CircuitBreaker(name="test", recovery_timeout=-1)


class TestCircuitBreakerClosedState:
    """Tests for circuit breaker in closed state."""

    def test_allows_calls_when_closed(self):
        breaker = CircuitBreaker(name="test", failure_threshold=3)
        call_count = 0

        for _ in range(10):
            with breaker:
                call_count += 1

        assert call_count == 10
        assert breaker.state == CircuitState.CLOSED

    def test_opens_after_consecutive_failures(self):
        breaker = CircuitBreaker(name="test", failure_threshold=3)

        _trip(breaker, 3)

        assert breaker.state == CircuitState.OPEN

    def test_success_resets_failure_count(self):
        """Failures must be consecutive to open the circuit."""
        breaker = CircuitBreaker(name="test", failure_threshold=3)

        _trip(breaker, 2)
        with breaker:
            pass
        _trip(breaker, 2)

        assert breaker.state == CircuitState.CLOSED
        assert breaker.failure_count == 2

    def test_excluded_exceptions_dont_trip_circuit(self):
        breaker = CircuitBreaker(
            name="test",
            failure_threshold=2,
            excluded_exceptions=(KeyError,),
        )

        for _ in range(5):
            with pytest.raises(KeyError):
                with breaker:
                    raise KeyError("excluded")

        assert breaker.state == CircuitState.CLOSED
        assert breaker.failure_count == 0


class TestCircuitBreakerOpenState:
    """Tests for circuit breaker in open and half-open states."""

    def test_rejects_calls_when_open(self):
        clock = FakeClock()
        breaker = CircuitBreaker(name="test", failure_threshold=2, recovery_timeout=60.0, clock=clock)
        _trip(breaker, 2)

        clock.advance(10)
        with pytest.raises(CircuitBreakerOpen) as exc_info:
            with breaker:
                pass

        assert exc_info.value.breaker_name == "test"
        assert exc_info.value.time_remaining == pytest.approx(50.0)

    def test_transitions_to_half_open_after_timeout(self):
        clock = FakeClock()
        breaker = CircuitBreaker(name="test", failure_threshold=1, recovery_timeout=30.0, clock=clock)
        _trip(breaker, 1)

        clock.advance(30)

        assert breaker.state == CircuitState.HALF_OPEN

    def test_half_open_allows_single_trial(self):
        clock = FakeClock()
        breaker = CircuitBreaker(name="test", failure_threshold=1, recovery_timeout=30.0, clock=clock)
        _trip(breaker, 1)
        clock.advance(30)

        breaker.before_call()
        with pytest.raises(CircuitBreakerOpen):
            breaker.before_call()

    def test_successful_trial_closes(self):
        clock = FakeClock()
        breaker = CircuitBreaker(name="test", failure_threshold=1, recovery_timeout=30.0, clock=clock)
        _trip(breaker, 1)
        clock.advance(30)

        with breaker:
            pass

        assert breaker.state == CircuitState.CLOSED
        assert breaker.failure_count == 0

    def test_failed_trial_reopens(self):
        clock = FakeClock()
        breaker = CircuitBreaker(name="test", failure_threshold=1, recovery_timeout=30.0, clock=clock)
        _trip(breaker, 1)
        clock.advance(30)

        _trip(breaker, 1)

        assert breaker.state == CircuitState.OPEN

    def test_reset_closes(self):
        breaker = CircuitBreaker(name="test", failure_threshold=1)
        _trip(breaker, 1)

        breaker.reset()

        assert breaker.state == CircuitState.CLOSED


class TestCircuitBreakerAsync:
    """The gateway uses the breaker with `async with`."""

    async def test_async_context_manager_records_failures(self):
        breaker = CircuitBreaker(name="test", failure_threshold=2)

        for _ in range(2):
            with pytest.raises(RuntimeError):
                async with breaker:
                    raise RuntimeError("upstream down")

        assert breaker.state == CircuitState.OPEN
        with pytest.raises(CircuitBreakerOpen):
            async with breaker:
                pass
