from __future__ import annotations

from ..extensions import db
from ..money import format_cents, from_cents
from ..time_utils import to_utc_z


TRANSACTION_STATUS_PENDING = "pending"
TRANSACTION_STATUS_COMPLETED = "completed"
TRANSACTION_STATUS_CANCELLED = "cancelled"

TRANSACTION_STATUSES = (
    TRANSACTION_STATUS_PENDING,
    TRANSACTION_STATUS_COMPLETED,
    TRANSACTION_STATUS_CANCELLED,
)


class Transaction(db.Model):
    """
    Committed sale.

    IMMUTABLE: created exactly once by transaction_service.commit_transaction,
    together with its items and payment records, and never updated afterwards.

    AMOUNTS (all cents):
    - total_amount_cents = sum(item.total_price_cents)
    - final_amount_cents = total + tax - discount
    - sum(payment.amount_cents) is within tolerance of final_amount_cents
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.UniqueConstraint("transaction_number", name="uq_transactions_transaction_number"),
        # Composite index for report scans (status filter + date range)
        db.Index("ix_transactions_status_date", "status", "transaction_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable number (e.g., "TXN-1718000000000-k3j9x0a2b")
    transaction_number = db.Column(db.String(64), nullable=False)

    total_amount_cents = db.Column(db.Integer, nullable=False)
    tax_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    final_amount_cents = db.Column(db.Integer, nullable=False)

    # cash, card, mobile, or mixed (more than one payment record)
    payment_method = db.Column(db.String(16), nullable=False)

    status = db.Column(db.String(16), nullable=False, default=TRANSACTION_STATUS_PENDING, index=True)

    transaction_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    items = db.relationship(
        "TransactionItem",
        backref=db.backref("transaction", lazy=True),
        lazy=True,
        order_by="TransactionItem.id",
    )
    payments = db.relationship(
        "PaymentRecord",
        backref=db.backref("transaction", lazy=True),
        lazy=True,
        order_by="PaymentRecord.id",
    )

    @property
    def total_amount(self):
        return from_cents(self.total_amount_cents)

    @property
    def tax_amount(self):
        return from_cents(self.tax_amount_cents)

    @property
    def discount_amount(self):
        return from_cents(self.discount_amount_cents)

    @property
    def final_amount(self):
        return from_cents(self.final_amount_cents)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_number": self.transaction_number,
            "total_amount": format_cents(self.total_amount_cents),
            "tax_amount": format_cents(self.tax_amount_cents),
            "discount_amount": format_cents(self.discount_amount_cents),
            "final_amount": format_cents(self.final_amount_cents),
            "payment_method": self.payment_method,
            "status": self.status,
            "transaction_date": to_utc_z(self.transaction_date),
            "created_at": to_utc_z(self.created_at),
        }


class TransactionItem(db.Model):
    """
    Line on a committed transaction.

    unit_price_cents is a snapshot taken at commit time; later catalog price
    changes never touch it.
    """
    __tablename__ = "transaction_items"
    __table_args__ = (
        db.Index("ix_transaction_items_product", "product_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    price_variant_id = db.Column(db.Integer, db.ForeignKey("price_variants.id"), nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    # unit_price * quantity - discount (may be negative, see discount note in transaction_service)
    total_price_cents = db.Column(db.Integer, nullable=False)
    discount_amount_cents = db.Column(db.Integer, nullable=False, default=0)

    product = db.relationship("Product")
    price_variant = db.relationship("PriceVariant")

    @property
    def unit_price(self):
        return from_cents(self.unit_price_cents)

    @property
    def total_price(self):
        return from_cents(self.total_price_cents)

    @property
    def discount_amount(self):
        return from_cents(self.discount_amount_cents)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "product_id": self.product_id,
            "price_variant_id": self.price_variant_id,
            "quantity": self.quantity,
            "unit_price": format_cents(self.unit_price_cents),
            "total_price": format_cents(self.total_price_cents),
            "discount_amount": format_cents(self.discount_amount_cents),
        }


class PaymentRecord(db.Model):
    """
    One tender applied to a committed transaction.

    TENDER TYPES: cash, card, mobile. Several records on one transaction
    make it a "mixed" payment.
    """
    __tablename__ = "payment_records"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=False, index=True)

    payment_method = db.Column(db.String(16), nullable=False, index=True)
    amount_cents = db.Column(db.Integer, nullable=False)

    # Reference info (card auth code, mobile wallet reference, etc.)
    reference_number = db.Column(db.String(128), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    @property
    def amount(self):
        return from_cents(self.amount_cents)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "payment_method": self.payment_method,
            "amount": format_cents(self.amount_cents),
            "reference_number": self.reference_number,
            "created_at": to_utc_z(self.created_at),
        }
