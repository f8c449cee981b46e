"""
Transaction Service - atomic checkout commit

Turns a cart of line items plus one or more payments into a durable
Transaction with its items and payment records, decrementing stock in the
same database transaction. Either everything becomes visible or nothing does.

DESIGN:
- CartLine / PaymentEntry are transient inputs with no identity; they are
  never persisted as-is. TransactionItem / PaymentRecord carry ids and
  snapshot values.
- Prices are re-read inside the write transaction, never cached.
- Transaction numbers are random; the unique constraint is the real guard
  and a collision rolls back and retries the whole unit a bounded number
  of times.
- No other failure is retried. Callers fix the cart and resubmit.

KNOWN GAP: a line discount is not bounded by its line subtotal, so a large
discount yields a negative line total. Existing behavior, kept on purpose
until product signs off on a rule.
"""

from __future__ import annotations

import random
import string
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import joinedload

from ..errors import InvalidInput, PaymentMismatch, PosError, StorageFailure
from ..extensions import db
from ..models import Transaction, TransactionItem, PaymentRecord
from ..models.sales import TRANSACTION_STATUS_COMPLETED
from ..money import MAX_AMOUNT_CENTS, format_cents, to_cents, to_decimal
from ..time_utils import coerce_bound, utcnow
from ..validation import MAX_QUANTITY
from .catalog_service import decrement_stock
from .concurrency import begin_write, run_with_retry
from .pricing_service import resolve_unit_price_cents


# =============================================================================
# PAYMENT METHODS (CONSTANTS)
# =============================================================================

PAYMENT_CASH = "cash"
PAYMENT_CARD = "card"
PAYMENT_MOBILE = "mobile"
PAYMENT_MIXED = "mixed"

VALID_PAYMENT_METHODS = (PAYMENT_CASH, PAYMENT_CARD, PAYMENT_MOBILE)

_NUMBER_ALPHABET = string.ascii_lowercase + string.digits
_rng = random.SystemRandom()


# =============================================================================
# INPUT VALUE OBJECTS
# =============================================================================

def _require_int(value, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInput(f"{field} must be an integer")
    if abs(value) > MAX_QUANTITY:
        raise InvalidInput(f"{field} cannot exceed {MAX_QUANTITY}")
    return value


@dataclass(frozen=True)
class CartLine:
    product_id: int
    quantity: int
    price_variant_id: Optional[int] = None
    discount_amount: Decimal = Decimal("0.00")

    @classmethod
    def from_payload(cls, payload: dict) -> "CartLine":
        if not isinstance(payload, dict):
            raise InvalidInput("Each item must be an object")
        variant_id = payload.get("price_variant_id")
        return cls(
            product_id=_require_int(payload.get("product_id"), "product_id"),
            quantity=_require_int(payload.get("quantity"), "quantity"),
            price_variant_id=None if variant_id is None else _require_int(variant_id, "price_variant_id"),
            discount_amount=to_decimal(payload.get("discount_amount", 0), field="discount_amount"),
        )


@dataclass(frozen=True)
class PaymentEntry:
    payment_method: str
    amount: Decimal
    reference_number: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: dict) -> "PaymentEntry":
        if not isinstance(payload, dict):
            raise InvalidInput("Each payment must be an object")
        reference = payload.get("reference_number")
        return cls(
            payment_method=payload.get("payment_method"),
            amount=to_decimal(payload.get("amount"), field="amount"),
            reference_number=None if reference is None else str(reference).strip() or None,
        )


@dataclass(frozen=True)
class SettlementMethod:
    """
    How a transaction was settled: a single tender, or mixed.

    Derived once from the payment entries at commit time; `label` is what
    gets persisted in Transaction.payment_method.
    """
    method: Optional[str]

    @classmethod
    def single(cls, method: str) -> "SettlementMethod":
        return cls(method=method)

    @classmethod
    def from_payments(cls, payments: list[PaymentEntry]) -> "SettlementMethod":
        if len(payments) > 1:
            return MIXED
        return cls.single(payments[0].payment_method)

    @property
    def is_mixed(self) -> bool:
        return self.method is None

    @property
    def label(self) -> str:
        return PAYMENT_MIXED if self.is_mixed else self.method


MIXED = SettlementMethod(method=None)


@dataclass(frozen=True)
class _PricedLine:
    line: CartLine
    unit_price_cents: int
    discount_cents: int

    @property
    def total_price_cents(self) -> int:
        return self.unit_price_cents * self.line.quantity - self.discount_cents


# =============================================================================
# VALIDATION
# =============================================================================

def _validate_request(
    cart_lines: list[CartLine],
    tax_cents: int,
    discount_cents: int,
    payments: list[PaymentEntry],
) -> None:
    if not cart_lines:
        raise InvalidInput("Cart must contain at least one item")
    if not payments:
        raise InvalidInput("At least one payment is required")

    for i, line in enumerate(cart_lines):
        if isinstance(line.quantity, bool) or not isinstance(line.quantity, int) or line.quantity <= 0:
            raise InvalidInput("quantity must be a positive integer", details={"item_index": i})
        if line.quantity > MAX_QUANTITY:
            raise InvalidInput(f"quantity cannot exceed {MAX_QUANTITY}", details={"item_index": i})
        for key in ("product_id", "price_variant_id"):
            ref = getattr(line, key)
            if ref is None:
                continue
            if isinstance(ref, bool) or not isinstance(ref, int) or not 0 < ref <= MAX_QUANTITY:
                raise InvalidInput(f"{key} is out of range", details={"item_index": i})
        if to_cents(line.discount_amount, field="discount_amount") < 0:
            raise InvalidInput("discount_amount must be >= 0", details={"item_index": i})

    if tax_cents < 0:
        raise InvalidInput("tax_amount must be >= 0")
    if discount_cents < 0:
        raise InvalidInput("discount_amount must be >= 0")

    for i, payment in enumerate(payments):
        if payment.payment_method not in VALID_PAYMENT_METHODS:
            raise InvalidInput(
                f"Invalid payment method: {payment.payment_method}. Must be one of {list(VALID_PAYMENT_METHODS)}",
                details={"payment_index": i},
            )
        if to_cents(payment.amount) <= 0:
            raise InvalidInput("Payment amount must be positive", details={"payment_index": i})


def generate_transaction_number() -> str:
    """TXN-<epoch ms>-<9 base36 chars>; uniqueness is enforced by the database."""
    suffix = "".join(_rng.choice(_NUMBER_ALPHABET) for _ in range(9))
    return f"TXN-{int(time.time() * 1000)}-{suffix}"


def _is_number_collision(exc: Exception) -> bool:
    return isinstance(exc, IntegrityError) and "transaction_number" in str(exc.orig)


# =============================================================================
# COMMIT
# =============================================================================

def _commit_once(
    cart_lines: list[CartLine],
    tax_cents: int,
    discount_cents: int,
    payments: list[PaymentEntry],
    tolerance_cents: int,
) -> Transaction:
    begin_write()

    priced = [
        _PricedLine(
            line=line,
            unit_price_cents=resolve_unit_price_cents(line.product_id, line.price_variant_id),
            discount_cents=to_cents(line.discount_amount, field="discount_amount"),
        )
        for line in cart_lines
    ]

    total_cents = sum(p.total_price_cents for p in priced)
    final_cents = total_cents + tax_cents - discount_cents

    amounts = [p.total_price_cents for p in priced] + [total_cents, final_cents]
    if any(abs(cents) > MAX_AMOUNT_CENTS for cents in amounts):
        raise InvalidInput(
            f"Transaction amounts cannot exceed {format_cents(MAX_AMOUNT_CENTS)}",
            details={"total_amount": format_cents(total_cents), "final_amount": format_cents(final_cents)},
        )

    paid_cents = sum(to_cents(p.amount) for p in payments)
    if abs(paid_cents - final_cents) > tolerance_cents:
        raise PaymentMismatch(
            f"Payment total ({format_cents(paid_cents)}) does not match final amount ({format_cents(final_cents)})",
            details={"payment_total": format_cents(paid_cents), "final_amount": format_cents(final_cents)},
        )

    settlement = SettlementMethod.from_payments(payments)
    now = utcnow()

    txn = Transaction(
        transaction_number=generate_transaction_number(),
        total_amount_cents=total_cents,
        tax_amount_cents=tax_cents,
        discount_amount_cents=discount_cents,
        final_amount_cents=final_cents,
        payment_method=settlement.label,
        status=TRANSACTION_STATUS_COMPLETED,
        transaction_date=now,
        created_at=now,
    )
    db.session.add(txn)
    db.session.flush()

    for p in priced:
        db.session.add(TransactionItem(
            transaction_id=txn.id,
            product_id=p.line.product_id,
            price_variant_id=p.line.price_variant_id,
            quantity=p.line.quantity,
            unit_price_cents=p.unit_price_cents,
            total_price_cents=p.total_price_cents,
            discount_amount_cents=p.discount_cents,
        ))
        decrement_stock(p.line.product_id, p.line.quantity)

    for payment in payments:
        db.session.add(PaymentRecord(
            transaction_id=txn.id,
            payment_method=payment.payment_method,
            amount_cents=to_cents(payment.amount),
            reference_number=payment.reference_number,
            created_at=now,
        ))

    db.session.commit()
    return txn


def commit_transaction(
    cart_lines: Iterable[CartLine],
    tax_amount=Decimal("0.00"),
    discount_amount=Decimal("0.00"),
    payments: Iterable[PaymentEntry] = (),
) -> Transaction:
    """
    Commit a cart atomically.

    Raises:
        InvalidInput: empty cart/payments, bad quantity, negative or out-of-range amounts, unknown method
        NotFound: unknown product or price variant
        PaymentMismatch: payments differ from final amount by more than the tolerance
        InsufficientStock: a decrement would take stock below zero
        StorageFailure: the database failed; nothing was written
    """
    cart_lines = list(cart_lines)
    payments = list(payments)
    tax_cents = to_cents(tax_amount, field="tax_amount")
    discount_cents = to_cents(discount_amount, field="discount_amount")

    _validate_request(cart_lines, tax_cents, discount_cents, payments)

    config = current_app.config
    tolerance_cents = config.get("PAYMENT_TOLERANCE_CENTS", 1)

    try:
        txn = run_with_retry(
            lambda: _commit_once(cart_lines, tax_cents, discount_cents, payments, tolerance_cents),
            attempts=config.get("TRANSACTION_NUMBER_ATTEMPTS", 3),
            should_retry=_is_number_collision,
            label="transaction number allocation",
        )
    except PosError:
        raise
    except SQLAlchemyError as exc:
        raise StorageFailure("Transaction could not be committed") from exc

    current_app.logger.info(
        "Committed transaction %s: %d line(s), final %s, %s",
        txn.transaction_number, len(cart_lines), format_cents(txn.final_amount_cents), txn.payment_method,
    )
    return txn


# =============================================================================
# READS
# =============================================================================

def list_transactions(
    *,
    start_date=None,
    end_date=None,
    limit: int | None = None,
    offset: int = 0,
) -> list[Transaction]:
    """Newest first. Bounds are inclusive; a date-only end covers the whole day."""
    if limit is None:
        limit = current_app.config.get("TRANSACTIONS_DEFAULT_LIMIT", 50)
    if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
        raise InvalidInput("limit must be a positive integer")
    if isinstance(offset, bool) or not isinstance(offset, int) or offset < 0:
        raise InvalidInput("offset must be a non-negative integer")

    try:
        start_dt = coerce_bound(start_date, end_of_day=False)
        end_dt = coerce_bound(end_date, end_of_day=True)
    except (TypeError, ValueError):
        raise InvalidInput("start_date and end_date must be ISO-8601 dates")

    query = db.session.query(Transaction)
    if start_dt is not None:
        query = query.filter(Transaction.transaction_date >= start_dt)
    if end_dt is not None:
        query = query.filter(Transaction.transaction_date <= end_dt)

    return (
        query.order_by(Transaction.transaction_date.desc(), Transaction.id.desc())
        .limit(limit)
        .offset(offset)
        .all()
    )


def get_transaction_details(transaction_id: int) -> dict | None:
    """Transaction with its items (plus product/variant names) and payments, or None."""
    txn = db.session.get(Transaction, transaction_id)
    if txn is None:
        return None

    items = (
        db.session.query(TransactionItem)
        .options(joinedload(TransactionItem.product), joinedload(TransactionItem.price_variant))
        .filter(TransactionItem.transaction_id == transaction_id)
        .order_by(TransactionItem.id.asc())
        .all()
    )
    payments = (
        db.session.query(PaymentRecord)
        .filter_by(transaction_id=transaction_id)
        .order_by(PaymentRecord.id.asc())
        .all()
    )

    details = txn.to_dict()
    details["items"] = [
        {
            **item.to_dict(),
            "product_name": item.product.name,
            "variant_name": item.price_variant.variant_name if item.price_variant else None,
        }
        for item in items
    ]
    details["payments"] = [payment.to_dict() for payment in payments]
    return details
