"""
Monetary helpers.

DESIGN DECISION: All money is held as Decimal, never float.
Prices and settlement amounts are rounded to the minor unit (cents) when
they enter the ledger. Partner shares are NOT rounded, so that summing
them is exact and the order of summation never changes a balance.

A single price or payment is capped at MAX_AMOUNT so every value the
engine stores stays far inside Decimal's default 28-digit context.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext
from typing import Optional, Union

CENT = Decimal("0.01")

# Largest price or payment a single record may carry
MAX_AMOUNT = Decimal("999999999999.99")

# Partner percentages are kept to this many decimal places, so any sum
# of them is exact
MAX_PERCENTAGE_PLACES = 4

# Wide enough to quantize any derived total (sums of many MAX_AMOUNTs)
_MONEY_PRECISION = 60

NumberLike = Union[Decimal, int, float, str]


def to_decimal(value: Optional[NumberLike]) -> Optional[Decimal]:
    """
    Parse user input into a finite Decimal.

    Returns None when the value is missing, not a number, NaN or infinite.
    Raises TypeError for values that are not number-like at all (a list,
    a dict, a bool) since those indicate a programming error upstream.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise TypeError(f"Expected a number, got bool: {value!r}")
    if isinstance(value, Decimal):
        parsed = value
    elif isinstance(value, (int, float)):
        # repr() keeps 0.1 as 0.1 instead of its binary expansion
        parsed = Decimal(repr(value)) if isinstance(value, float) else Decimal(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            parsed = Decimal(text)
        except InvalidOperation:
            return None
    else:
        raise TypeError(f"Expected a number, got {type(value).__name__}")

    if not parsed.is_finite():
        return None
    return parsed


def quantize_money(amount: Decimal) -> Decimal:
    """Round an amount to cents, half up."""
    with localcontext() as ctx:
        ctx.prec = _MONEY_PRECISION
        return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def decimal_places(value: Decimal) -> int:
    """Significant digits after the point (trailing zeros do not count)."""
    _, digits, exponent = value.as_tuple()
    if exponent >= 0 or not any(digits):
        return 0
    places = -exponent
    for digit in reversed(digits):
        if places == 0 or digit != 0:
            break
        places -= 1
    return places


def format_money(amount: Decimal, symbol: str = "$") -> str:
    """Format an amount for display, e.g. ``$1234.50``."""
    return f"{symbol}{quantize_money(amount):.2f}"


def format_percentage(value: Decimal) -> str:
    """Format a percentage without trailing zeros (``60``, ``12.5``)."""
    normalized = value.normalize()
    # normalize() turns 100 into 1E+2
    if normalized == normalized.to_integral_value():
        return str(normalized.quantize(Decimal(1)))
    return format(normalized, "f")
