"""Currency helpers.

Amounts are stored as integer minor units (cents). Decimals only appear at the
edges: request parsing and JSON rendering.
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

CENT = Decimal("0.01")


def to_cents(value) -> int:
    """Convert a user supplied amount (Decimal, str, int or float) to cents."""
    if isinstance(value, bool) or value is None:
        raise ValueError("amount is required")
    if isinstance(value, int):
        return value * 100
    try:
        # floats go through str() so 0.1 stays 0.1
        amount = Decimal(str(value)) if isinstance(value, float) else Decimal(value)
    except (InvalidOperation, TypeError):
        raise ValueError(f"invalid amount: {value!r}")
    if not amount.is_finite():
        raise ValueError(f"invalid amount: {value!r}")
    return int((amount.quantize(CENT, rounding=ROUND_HALF_UP) * 100).to_integral_value())


def from_cents(cents) -> Decimal:
    return (Decimal(int(cents or 0)) / 100).quantize(CENT)


def cents_to_float(cents) -> float:
    return float(from_cents(cents))
