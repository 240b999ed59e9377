# backend/portfolio_tracker/services/constants.py
"""
Business constants for valuation, currency conversion and dividend estimation.

Usage:
    from portfolio_tracker.services.constants import FALLBACK_RATES_TO_DKK
"""

from decimal import Decimal


# =============================================================================
# CURRENCY
# =============================================================================

# Static rates used when no live rate can be fetched.
# Units: DKK per 1 unit of the currency.
FALLBACK_RATES_TO_DKK: dict[str, Decimal] = {
    "DKK": Decimal("1"),
    "USD": Decimal("6.8"),
    "EUR": Decimal("7.5"),
    "GBP": Decimal("8.5"),
    "SEK": Decimal("0.65"),
    "NOK": Decimal("0.65"),
    "CHF": Decimal("7.6"),
}

# Live rates older than this are refetched
FX_CACHE_TTL_SECONDS: int = 3600


# =============================================================================
# DIVIDEND ESTIMATION
# =============================================================================

# Fewer payments than this and history is not used at all
MIN_DIVIDEND_HISTORY: int = 4

# Trailing-window payments needed before the IQR filter is applied
MIN_TRAILING_PAYMENTS: int = 2

# Tukey fence multiplier: keep [Q1 - k*IQR, Q3 + k*IQR]
IQR_FENCE_MULTIPLIER: Decimal = Decimal("1.5")

# In the quarterly fallback, payments >= this multiple of the median are
# treated as special dividends
SPECIAL_DIVIDEND_MULTIPLE: Decimal = Decimal("2.5")

# Quarterly fallback uses the most recent N payments, and needs at least
# QUARTERLY_MIN_REGULAR of them to survive the special-dividend cut
QUARTERLY_SAMPLE_SIZE: int = 4
QUARTERLY_MIN_REGULAR: int = 3
PAYMENTS_PER_YEAR: int = 4

MONTHS_PER_YEAR: int = 12
