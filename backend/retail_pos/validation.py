"""
Payload validation for catalog writes.

Incoming JSON is checked against the mapped columns of the target model:
only allowlisted keys pass, values are coerced to the column type, and
public money fields ("base_price", "price") are converted to the cents
column that stores them. The result is a patch keyed by column name.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text

from .errors import InvalidInput
from .money import MAX_AMOUNT_CENTS, to_cents


MAX_PRICE_CENTS = MAX_AMOUNT_CENTS

# Largest value a 32-bit INTEGER column holds; bounds every quantity and id
MAX_QUANTITY = 2_147_483_647


class ValidationError(InvalidInput):
    """400-level payload problem."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    writable_fields: set[str]
    required_on_create: set[str] = field(default_factory=set)
    # public decimal field -> integer cents column
    money_fields: dict[str, str] = field(default_factory=dict)


def _as_int(key: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal")
    # plain digits only: no "1e3", no "12.0"
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        value = int(value.strip())
    if not isinstance(value, int):
        raise ValidationError(f"{key} must be an integer")
    if abs(value) > MAX_QUANTITY:
        raise ValidationError(f"{key} cannot exceed {MAX_QUANTITY}")
    return value


def _as_bool(key: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise ValidationError(f"{key} must be a boolean")
    return value


def _as_text(key: str, value: Any, column) -> str:
    text = str(value).strip()
    if text == "" and not column.nullable:
        raise ValidationError(f"{key} cannot be blank")
    length = getattr(column.type, "length", None)
    if length and len(text) > length:
        raise ValidationError(f"{key} exceeds max length {length}")
    return text


def _coerce(key: str, value: Any, column) -> Any:
    coltype = column.type
    if isinstance(coltype, Boolean):
        return _as_bool(key, value)
    if isinstance(coltype, Integer):
        return _as_int(key, value)
    if isinstance(coltype, (String, Text)):
        return _as_text(key, value, column)
    return value


def validate_payload(*, model, payload: dict, policy: ModelValidationPolicy, partial: bool) -> dict:
    """
    Clean a create (partial=False) or patch (partial=True) payload.

    Raises ValidationError on a missing required field, a key outside the
    policy, a null in a non-nullable column, or a value of the wrong type.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(policy.required_on_create - payload.keys())
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    columns = {c.key: c for c in model.__mapper__.columns}

    patch: dict = {}
    for key, raw in payload.items():
        if key not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {key}")

        column_key = policy.money_fields.get(key, key)
        column = columns.get(column_key)
        if column is None:
            raise ValidationError(f"Unknown field: {key}")

        if raw is None:
            if not column.nullable:
                raise ValidationError(f"{key} cannot be null")
            patch[column_key] = None
        elif key in policy.money_fields:
            patch[column_key] = to_cents(raw, field=key)
        else:
            patch[column_key] = _coerce(key, raw, column)

    return patch


def _check_price(patch: dict, column_key: str, label: str) -> None:
    price = patch.get(column_key)
    if price is None:
        return
    if price <= 0:
        raise ValidationError(f"{label} must be > 0")
    if price > MAX_PRICE_CENTS:
        raise ValidationError(f"{label} cannot exceed {MAX_PRICE_CENTS / 100:,.2f}")


def enforce_rules_product(patch: dict) -> None:
    _check_price(patch, "base_price_cents", "base_price")

    stock = patch.get("stock_quantity")
    if stock is not None and stock < 0:
        raise ValidationError("stock_quantity must be >= 0")


def enforce_rules_price_variant(patch: dict) -> None:
    _check_price(patch, "price_cents", "price")
