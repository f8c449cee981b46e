from __future__ import annotations

from ..extensions import db
from ..money import format_cents, from_cents
from ..time_utils import to_utc_z


class Category(db.Model):
    __tablename__ = "categories"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "created_at": to_utc_z(self.created_at),
        }


class Product(db.Model):
    """
    Product master data.

    STOCK: stock_quantity is a mutable counter, changed only by the
    transaction committer (decrement) and the stock adjustment operation.
    It never goes negative; the check constraint is the last line of defense
    behind the row lock taken in catalog_service.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("stock_quantity >= 0", name="ck_products_stock_nonnegative"),
        db.CheckConstraint("base_price_cents > 0", name="ck_products_base_price_positive"),
        db.Index("ix_products_barcode", "barcode"),
        db.Index("ix_products_category_active", "category_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    barcode = db.Column(db.String(64), nullable=True)

    # Authoritative storage in cents
    base_price_cents = db.Column(db.Integer, nullable=False)
    stock_quantity = db.Column(db.Integer, nullable=False, default=0)

    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    category = db.relationship("Category", backref=db.backref("products", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def base_price(self):
        return from_cents(self.base_price_cents)

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} stock={self.stock_quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "barcode": self.barcode,
            "base_price": format_cents(self.base_price_cents),
            "stock_quantity": self.stock_quantity,
            "category_id": self.category_id,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class PriceVariant(db.Model):
    """
    Alternate priced option for a product (size, pack, etc.).

    is_default is informational only; nothing enforces a single default per product.
    """
    __tablename__ = "price_variants"
    __table_args__ = (
        db.CheckConstraint("price_cents > 0", name="ck_price_variants_price_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    variant_name = db.Column(db.String(255), nullable=False)
    price_cents = db.Column(db.Integer, nullable=False)
    is_default = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product", backref=db.backref("price_variants", lazy=True))

    @property
    def price(self):
        return from_cents(self.price_cents)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "variant_name": self.variant_name,
            "price": format_cents(self.price_cents),
            "is_default": self.is_default,
            "created_at": to_utc_z(self.created_at),
        }
