# backend/portfolio_tracker/services/result.py
"""
Tagged success/failure results for upstream lookups.

Provider calls fail in several distinct ways (timeout, unreachable host,
garbage payload, unknown symbol, open circuit). Instead of collapsing all of
them into a default value at the point of failure, the gateway returns a
FetchResult that carries either the value or a FailureReason. Callers decide
where the documented fallback applies, and tests can assert on why a value
fell back.

Example:
    result = await gateway.fetch_exchange_rate("USD", "DKK")
    if result.is_ok:
        rate = result.value
    else:
        logger.warning(f"FX lookup failed: {result.reason.value}")
        rate = FALLBACK_RATES_TO_DKK["USD"]
"""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")


class FailureReason(str, Enum):
    TIMEOUT = "timeout"
    UNAVAILABLE = "unavailable"
    BAD_RESPONSE = "bad_response"
    NOT_FOUND = "not_found"
    CIRCUIT_OPEN = "circuit_open"
    INVALID_VALUE = "invalid_value"


@dataclass(frozen=True)
class FetchResult(Generic[T]):
    value: T | None = None
    reason: FailureReason | None = None
    detail: str | None = None

    @classmethod
    def ok(cls, value: T) -> "FetchResult[T]":
        return cls(value=value)

    @classmethod
    def failed(cls, reason: FailureReason, detail: str | None = None) -> "FetchResult[T]":
        return cls(reason=reason, detail=detail)

    @property
    def is_ok(self) -> bool:
        return self.reason is None

    def value_or(self, default: T) -> T:
        """Return the value on success, otherwise the given default."""
        return self.value if self.is_ok else default
