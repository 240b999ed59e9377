# backend/portfolio_tracker/services/exceptions.py
"""
Service layer exceptions.

These exceptions represent domain errors and contain NO HTTP knowledge.
Handlers registered in main.py map them to responses.

Upstream market-data failures are NOT raised to callers of the valuation
and dividend services: the gateway turns them into FetchResult failures
(see services/result.py). The MarketDataError family is what providers
raise and what the gateway catches.

Exception Hierarchy:
    ServiceError (base)
    ├── ValidationError
    │   └── InvalidStatusError
    ├── NotFoundError
    │   ├── HoldingNotFoundError
    │   └── DividendNotFoundError
    ├── InsufficientSharesError
    ├── InsufficientCashError
    └── MarketDataError
        ├── ProviderUnavailableError
        ├── TickerNotFoundError
        └── InvalidProviderResponseError

    CircuitBreakerOpen (from circuit_breaker module)
"""

from decimal import Decimal


class ServiceError(Exception):
    """
    Base exception for all service layer errors.

    Attributes:
        message: Human-readable error description
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message


# =============================================================================
# VALIDATION ERRORS
# =============================================================================


class ValidationError(ServiceError):
    """
    Raised when a bookkeeping request is invalid.

    Attributes:
        field: The offending field (optional)
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


class InvalidStatusError(ValidationError):
    def __init__(self, status: str, allowed: tuple[str, ...]) -> None:
        self.status = status
        super().__init__(
            f"Invalid status: '{status}'. Valid options: {', '.join(allowed)}",
            field="status",
        )


# =============================================================================
# NOT FOUND ERRORS
# =============================================================================


class NotFoundError(ServiceError):
    """
    Base exception for missing records.

    Attributes:
        resource_type: Kind of record ("Holding", "Dividend")
        resource_id: Its identifier
    """

    def __init__(
            self,
            message: str,
            resource_type: str | None = None,
            resource_id: int | str | None = None,
    ) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(message)


class HoldingNotFoundError(NotFoundError):
    def __init__(self, holding_id: int) -> None:
        self.holding_id = holding_id
        super().__init__(
            f"Holding {holding_id} not found",
            resource_type="Holding",
            resource_id=holding_id,
        )


class DividendNotFoundError(NotFoundError):
    def __init__(self, dividend_id: int) -> None:
        self.dividend_id = dividend_id
        super().__init__(
            f"Dividend {dividend_id} not found",
            resource_type="Dividend",
            resource_id=dividend_id,
        )


# =============================================================================
# BOOKKEEPING ERRORS
# =============================================================================


class InsufficientSharesError(ServiceError):
    """Raised when a sale asks for more shares than the holding has."""

    def __init__(self, ticker: str, requested: Decimal, available: Decimal) -> None:
        self.ticker = ticker
        self.requested = requested
        self.available = available
        super().__init__(
            f"Cannot sell {requested} shares of {ticker}: only {available} held"
        )


class InsufficientCashError(ServiceError):
    """Raised when a withdrawal exceeds the cash balance."""

    def __init__(self, requested: Decimal, available: Decimal) -> None:
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient cash: requested {requested}, available {available}"
        )


# =============================================================================
# MARKET DATA PROVIDER ERRORS
# =============================================================================


class MarketDataError(ServiceError):
    """
    Base exception for market data provider failures.

    Attributes:
        provider: Name of the provider that failed
    """

    def __init__(self, message: str, provider: str | None = None) -> None:
        self.provider = provider
        super().__init__(message)


class ProviderUnavailableError(MarketDataError):
    """
    Raised when the provider cannot be reached or answers with a server error.

    Examples:
    - Connection refused / DNS failure
    - HTTP 5xx
    """

    def __init__(self, provider: str, reason: str) -> None:
        message = f"Provider '{provider}' is unavailable: {reason}"
        super().__init__(message, provider=provider)
        self.reason = reason


class TickerNotFoundError(MarketDataError):
    """Raised when the provider does not know a symbol (or currency pair)."""

    def __init__(self, ticker: str, provider: str) -> None:
        message = f"Ticker '{ticker}' not found by {provider}"
        super().__init__(message, provider=provider)
        self.ticker = ticker


class InvalidProviderResponseError(MarketDataError):
    """Raised when the provider answers but the payload is unusable."""

    def __init__(self, provider: str, reason: str) -> None:
        message = f"Invalid response from '{provider}': {reason}"
        super().__init__(message, provider=provider)
        self.reason = reason
