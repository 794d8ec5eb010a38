# Overview: Input coercion helpers shared by routes and services.

from __future__ import annotations

from datetime import date
from typing import Any

from .errors import ValidationError
from .time_utils import parse_iso_date


def coerce_int(value: Any, field: str) -> int:
    """
    Strict integer coercion: ints and plain digit strings only.
    Floats, decimals and scientific notation are rejected.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    raise ValidationError(f"{field} must be an integer")


def require_int(value: Any, field: str, *, minimum: int | None = None) -> int:
    if value is None:
        raise ValidationError(f"{field} is required")
    number = coerce_int(value, field)
    if minimum is not None and number < minimum:
        if minimum == 1:
            raise ValidationError(f"{field} must be greater than zero")
        raise ValidationError(f"{field} must be at least {minimum}")
    return number


def optional_int(value: Any, field: str, *, minimum: int | None = None) -> int | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return require_int(value, field, minimum=minimum)


def optional_str(value: Any, max_length: int | None = None, field: str = "value") -> str | None:
    """Trim; empty becomes None."""
    if value is None:
        return None
    if not isinstance(value, str):
        value = str(value)
    value = value.strip()
    if not value:
        return None
    if max_length is not None and len(value) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters")
    return value


def require_str(value: Any, field: str, max_length: int | None = None) -> str:
    result = optional_str(value, max_length=max_length, field=field)
    if result is None:
        raise ValidationError(f"{field} is required")
    return result


def to_bool(value: Any, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def optional_date(value: Any, field: str) -> date | None:
    try:
        return parse_iso_date(value)
    except ValueError:
        raise ValidationError(f"{field} must be an ISO date (YYYY-MM-DD)")
