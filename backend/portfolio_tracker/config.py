# backend/portfolio_tracker/config.py
"""
Application configuration using Pydantic Settings.

Loads configuration from environment variables (or a .env file in the
project root) with validation:
- ENVIRONMENT: Runtime mode (development, test, production)
- DATABASE_URL: SQLAlchemy connection string
- BASE_CURRENCY / DEFAULT_CURRENCY: Currency used for every valuation, and
  the currency assumed when a holding's currency cannot be determined
- MARKET_DATA_PROVIDER: Which upstream price/dividend/FX source to use

Environment-specific behavior:
- test: In-memory SQLite, rate limiting disabled
- development: Local SQLite file by default
- production: API_TOKEN is required

Usage:
    from portfolio_tracker.config import settings

    if settings.is_production:
        ...
"""
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


_BACKEND_DIR = Path(__file__).resolve().parent.parent
_PROJECT_ROOT = _BACKEND_DIR.parent
_ENV_FILE = _PROJECT_ROOT / ".env"

SUPPORTED_CURRENCIES = ("USD", "EUR", "GBP", "SEK", "NOK", "CHF", "DKK")


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Environment variables:
        - ENVIRONMENT: Runtime environment (development, test, production)
        - DATABASE_URL: Connection string (default: local SQLite file)
        - LOG_LEVEL / LOG_FORMAT: Logging verbosity and text/json output
        - BASE_CURRENCY: Currency all values are reported in (default: DKK)
        - DEFAULT_CURRENCY: Assumed currency when none is known (default: USD)
        - MARKET_DATA_PROVIDER: stock_api or yahoo (default: stock_api)
        - STOCK_API_URL: Base URL of the Stock API service
        - API_TOKEN: Bearer token for /api routes (unset disables the gate)
    """

    environment: Literal["development", "test", "production"] = Field(
        default="development",
        description="Runtime environment (development, test, production)"
    )

    app_name: str = "Portfolio Tracker"
    debug: bool = False

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    log_format: Literal["text", "json"] = Field(
        default="text",
        description="Log output format"
    )

    database_url: str | None = Field(
        default=None,
        description="SQLAlchemy connection string"
    )

    # =========================================================================
    # CURRENCY
    # =========================================================================
    base_currency: str = Field(
        default="DKK",
        description="Currency every valuation and summary is expressed in"
    )
    default_currency: str = Field(
        default="USD",
        description="Currency assumed when a holding's currency is unknown"
    )

    # =========================================================================
    # MARKET DATA
    # =========================================================================
    market_data_provider: Literal["stock_api", "yahoo"] = Field(
        default="stock_api",
        description="Upstream provider for quotes, dividends and FX rates"
    )
    stock_api_url: str = Field(
        default="http://localhost:5001",
        description="Base URL of the Stock API service"
    )
    provider_timeout_seconds: float = Field(
        default=5.0,
        ge=1,
        le=30,
        description="Timeout for quote and dividend lookups"
    )
    fx_timeout_seconds: float = Field(
        default=3.0,
        ge=1,
        le=30,
        description="Timeout for a single exchange-rate lookup"
    )
    fx_cache_ttl_seconds: int = Field(
        default=3600,
        ge=1,
        description="How long a cached exchange rate stays valid"
    )
    circuit_breaker_failure_threshold: int = Field(
        default=5,
        ge=1,
        description="Consecutive upstream failures before the circuit opens"
    )
    circuit_breaker_recovery_seconds: float = Field(
        default=60.0,
        ge=1,
        description="Seconds the circuit stays open before a trial call"
    )

    # =========================================================================
    # API
    # =========================================================================
    api_token: str | None = Field(
        default=None,
        description="Bearer token required on /api routes (required in production)"
    )
    cors_origins: list[str] = Field(
        default=["http://localhost:3000", "http://127.0.0.1:3000"],
        description="Allowed CORS origins"
    )
    rate_limit_enabled: bool = Field(
        default=True,
        description="Enable per-client rate limiting"
    )
    rate_limit_default: str = Field(
        default="200/minute",
        description="Default slowapi rate limit applied to every route"
    )

    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE) if _ENV_FILE.exists() else None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("base_currency", "default_currency")
    @classmethod
    def validate_currency(cls, value: str) -> str:
        code = value.strip().upper()
        if code not in SUPPORTED_CURRENCIES:
            raise ValueError(
                f"Unsupported currency '{value}'. "
                f"Expected one of: {', '.join(SUPPORTED_CURRENCIES)}"
            )
        return code

    @model_validator(mode="after")
    def validate_environment(self) -> "Settings":
        """
        Apply environment-specific defaults and checks.

        Rules:
        - test: in-memory SQLite unless set, rate limiting off
        - development: local SQLite file unless set
        - production: API_TOKEN required
        """
        if self.environment == "test":
            if self.database_url is None:
                object.__setattr__(self, "database_url", "sqlite:///:memory:")
            object.__setattr__(self, "rate_limit_enabled", False)
            return self

        if self.database_url is None:
            object.__setattr__(self, "database_url", "sqlite:///./portfolio.db")

        if self.environment == "production" and not self.api_token:
            raise ValueError(
                "API_TOKEN is required in production environment. "
                "Set API_TOKEN to a secure random string."
            )

        return self

    @property
    def is_sqlite(self) -> bool:
        """Check if using SQLite database."""
        return self.database_url is not None and self.database_url.lower().startswith("sqlite://")

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def is_test(self) -> bool:
        """Check if running in test environment."""
        return self.environment == "test"


settings = Settings()
