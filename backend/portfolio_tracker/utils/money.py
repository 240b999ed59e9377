# backend/portfolio_tracker/utils/money.py
"""
Decimal rounding helpers.

Monetary totals are reported with 2 decimals, per-share dividend figures
with 4. Both round half up, matching how amounts are presented to users.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

MONEY_QUANT = Decimal("0.01")
PER_SHARE_QUANT = Decimal("0.0001")
ZERO = Decimal("0")


def to_decimal(value: object) -> Decimal | None:
    """
    Coerce a number-like value to Decimal.

    Floats go through str() so 0.1 becomes Decimal("0.1"), not its binary
    expansion. Returns None for None, NaN, infinities and unparseable input.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError):
            return None
    if not result.is_finite():
        return None
    return result


def round_money(value: Decimal) -> Decimal:
    return value.quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def round_per_share(value: Decimal) -> Decimal:
    return value.quantize(PER_SHARE_QUANT, rounding=ROUND_HALF_UP)
