"""
Money helpers
=============

All amounts are Decimals with two places, rounded half-up.
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, ROUND_DOWN
from koperasi.core.exceptions import InvalidInput

CENTS = Decimal("0.01")


def to_money(amount, rounding=ROUND_HALF_UP) -> Decimal:
    """Convert an int, float, str or Decimal to a two-place Decimal."""
    if amount is None:
        return Decimal("0.00")
    return Decimal(str(amount)).quantize(CENTS, rounding=rounding)


def percentage_of(amount, rate_percent) -> Decimal:
    """Return ``amount * rate_percent / 100`` rounded to cents."""
    return to_money(Decimal(str(amount)) * Decimal(str(rate_percent)) / Decimal("100"))


def split_evenly(total, parts: int) -> list:
    """Split ``total`` into ``parts`` equal cent amounts.

    Every part is rounded down to the cent; the last part absorbs the
    remainder so the parts always sum to ``total``.
    """
    total = to_money(total)
    share = (total / parts).quantize(CENTS, rounding=ROUND_DOWN)
    shares = [share] * (parts - 1)
    shares.append(total - share * (parts - 1))
    return shares


def parse_amount(value) -> Decimal:
    """Convert to a positive two-place Decimal or raise InvalidInput."""
    try:
        amount = to_money(value)
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidInput(f"Invalid amount: {value}")
    if amount <= 0:
        raise InvalidInput("Amount must be greater than zero")
    return amount
