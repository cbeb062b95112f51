# Overview: Decimal helpers for prices and fabric quantities (2 decimal places).

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

CENT = Decimal("0.01")
# SQLite stores Numeric as REAL, so stock read back from it is only exact to half a cent
HALF_CENT = Decimal("0.005")
ZERO = Decimal("0.00")


def to_decimal(value) -> Decimal:
    """
    Convert JSON input (int, float, numeric string) to a 2-place Decimal.

    Floats go through str() so 0.1 stays 0.1 instead of its binary expansion.
    Raises ValueError for anything that is not a finite number.
    """
    if isinstance(value, bool) or value is None:
        raise ValueError(f"not a number: {value!r}")
    if isinstance(value, float):
        value = str(value)
    try:
        dec = Decimal(value) if not isinstance(value, Decimal) else value
    except (InvalidOperation, TypeError):
        raise ValueError(f"not a number: {value!r}")
    if not dec.is_finite():
        raise ValueError(f"not a number: {value!r}")
    return quantize(dec)


def quantize(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def as_number(value: Decimal | None):
    """JSON rendering: whole values become ints, the rest floats."""
    if value is None:
        return None
    if not isinstance(value, Decimal):
        value = to_decimal(value)
    if value == value.to_integral_value():
        return int(value)
    return float(value)


def format_quantity(value: Decimal) -> str:
    """'10', '2.5', '0.25' - no trailing zeros, for human-facing messages."""
    normalized = value.normalize()
    if normalized == normalized.to_integral_value():
        return str(normalized.quantize(Decimal(1)))
    return format(normalized, "f")
