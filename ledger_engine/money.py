"""
Decimal helpers for ledger amounts.

Amounts are compared exactly after rounding to the currency's
minor unit, never with an epsilon.
"""

from decimal import Decimal, ROUND_HALF_UP

from ledger_engine.config import get_settings

ZERO = Decimal("0")


def minor_unit() -> Decimal:
    return Decimal(1).scaleb(-get_settings().CURRENCY_DECIMAL_PLACES)


def to_money(value) -> Decimal:
    """Round any numeric (or database aggregate) to the minor unit."""
    if value is None:
        return ZERO.quantize(minor_unit())
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(minor_unit(), rounding=ROUND_HALF_UP)
