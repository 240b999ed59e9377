# backend/portfolio_tracker/utils/ticker_currency.py
"""
Currency inference from ticker symbols.

Exchange-qualified tickers carry a Yahoo-style suffix (NOVO-B.CO, VOLV-B.ST,
SAP.DE). When a holding was stored without a currency, the suffix decides
which currency its prices are quoted in. A stored currency always wins;
a ticker with no known suffix gets the configured default currency.

Example:
    >>> resolve_currency(None, "NOVO-B.CO", default="USD")
    'DKK'
    >>> resolve_currency("EUR", "NOVO-B.CO", default="USD")
    'EUR'
    >>> resolve_currency(None, "AAPL", default="USD")
    'USD'
"""

# Suffix (including the dot) -> ISO currency code
TICKER_SUFFIX_CURRENCIES: dict[str, str] = {
    ".CO": "DKK",   # Copenhagen
    ".ST": "SEK",   # Stockholm
    ".OL": "NOK",   # Oslo
    ".L": "GBP",    # London
    ".SW": "CHF",   # SIX Swiss
    ".DE": "EUR",   # XETRA
    ".F": "EUR",    # Frankfurt
    ".PA": "EUR",   # Paris
    ".AS": "EUR",   # Amsterdam
    ".BR": "EUR",   # Brussels
    ".MI": "EUR",   # Milan
    ".MC": "EUR",   # Madrid
    ".HE": "EUR",   # Helsinki
    ".LS": "EUR",   # Lisbon
    ".VI": "EUR",   # Vienna
    ".IR": "EUR",   # Dublin
}


def infer_currency_from_ticker(ticker: str | None) -> str | None:
    """Return the currency implied by the ticker's suffix, or None."""
    if not ticker:
        return None
    symbol = ticker.strip().upper()
    dot = symbol.rfind(".")
    if dot <= 0:
        return None
    return TICKER_SUFFIX_CURRENCIES.get(symbol[dot:])


def resolve_currency(stored: str | None, ticker: str | None, default: str) -> str:
    """Stored currency, else suffix inference, else the default."""
    if stored and stored.strip():
        return stored.strip().upper()
    return infer_currency_from_ticker(ticker) or default
