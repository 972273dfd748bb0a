# app/money.py
from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any

from app.errors import ValidationError

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value: Any, *, field: str = "amount") -> Decimal:
    """
    Coerce to a Decimal with at most two decimal places. Floats go through str()
    to avoid binary noise; sub-cent amounts are rejected rather than rounded.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number", field=field)
    try:
        d = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f"{field} must be a number", field=field)
    if not d.is_finite():
        raise ValidationError(f"{field} must be finite", field=field)
    if d != d.quantize(CENT):
        raise ValidationError(f"{field} must have at most 2 decimal places", field=field)
    return d.quantize(CENT)


def positive_money(value: Any, *, field: str = "amount") -> Decimal:
    d = to_money(value, field=field)
    if d <= 0:
        raise ValidationError(f"{field} must be > 0", field=field)
    return d
