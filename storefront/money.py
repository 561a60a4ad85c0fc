# Fixed-point money helpers shared by pricing, currency, promos and orders.
# All amounts are USD Decimals quantized to cents (round-half-up) unless a
# value is explicitly tagged as a display-currency conversion.

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from .errors import ValidationError

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_decimal(value) -> Decimal:
    """Exact Decimal for int/str/Decimal; floats go through str() to drop binary noise."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValidationError(f"Not a monetary amount: {value!r}")
    if isinstance(value, float):
        value = repr(value)
    try:
        out = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Not a monetary amount: {value!r}")
    if not out.is_finite():
        raise ValidationError(f"Not a monetary amount: {value!r}")
    return out


def round_money(value) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def to_money(value) -> Decimal:
    if value is None:
        return ZERO
    return round_money(value)


def optional_money(value):
    """None stays None ("no variant"); anything else becomes money."""
    if value is None:
        return None
    return round_money(value)


def as_float(value) -> float:
    """Two-decimal float for JSON responses."""
    return float(round_money(value))
