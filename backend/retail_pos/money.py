"""
Fixed-point money helpers.

All persisted amounts are integer cents. Callers hand in Decimal, int or
numeric strings; floats are accepted at the JSON boundary and converted via
their shortest repr so 22.1 stays 22.10 and never 22.0999...

Amounts must be whole cents and no larger than MAX_AMOUNT in magnitude;
anything else is InvalidInput, never rounded.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation

from .errors import InvalidInput

CENT = Decimal("0.01")

# 99,999,999.99: fits NUMERIC(10, 2), and any cart total built from it fits a 64-bit column
MAX_AMOUNT_CENTS = 9_999_999_999
MAX_AMOUNT = Decimal(MAX_AMOUNT_CENTS) / 100


def to_decimal(value, *, field: str = "amount") -> Decimal:
    if isinstance(value, bool) or value is None:
        raise InvalidInput(f"{field} must be a decimal amount")
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, float, str)):
        try:
            amount = Decimal(str(value).strip())
        except InvalidOperation:
            raise InvalidInput(f"{field} must be a decimal amount")
    else:
        raise InvalidInput(f"{field} must be a decimal amount")

    if not amount.is_finite():
        raise InvalidInput(f"{field} must be a finite amount")
    if abs(amount) > MAX_AMOUNT:
        raise InvalidInput(f"{field} cannot exceed {MAX_AMOUNT:,}", details={"field": field})

    cents = amount.quantize(CENT)
    if cents != amount:
        raise InvalidInput(f"{field} must be a whole number of cents", details={"field": field})
    return cents


def to_cents(value, *, field: str = "amount") -> int:
    return int(to_decimal(value, field=field) * 100)


def from_cents(cents: int | None) -> Decimal | None:
    if cents is None:
        return None
    return (Decimal(int(cents)) / 100).quantize(CENT)


def format_cents(cents: int | None) -> str | None:
    amount = from_cents(cents)
    return None if amount is None else str(amount)
