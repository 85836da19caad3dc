# quoteflow/utils/decimal_utils.py
from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_decimal(value) -> Decimal:
    """Exact Decimal for ints, strings and floats (floats go through str)."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def money(value) -> Decimal:
    """Round to whole agorot, half away from zero."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)
