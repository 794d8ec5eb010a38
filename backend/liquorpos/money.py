# Overview: Decimal helpers for currency amounts (KES, two decimal places).

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from .errors import ValidationError

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def quantize(value: Decimal) -> Decimal:
    """Round half-up to whole cents."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def to_money(value, field: str = "amount") -> Decimal:
    """
    Coerce user input to a cent-precision Decimal.

    Floats are routed through str() so 12.1 stays 12.10 rather than
    12.0999999...; booleans are rejected.
    """
    if value is None:
        raise ValidationError(f"{field} is required")
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number")
    # NaN and Infinity parse but cannot be compared or stored
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    try:
        return quantize(amount)
    except InvalidOperation:
        raise ValidationError(f"{field} is out of range")


def money_str(value: Decimal | None) -> str | None:
    if value is None:
        return None
    return str(quantize(Decimal(value)))
