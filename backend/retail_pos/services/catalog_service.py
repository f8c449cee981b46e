# backend/retail_pos/services/catalog_service.py
"""
Catalog Service

Plain persistence operations over categories, products and price variants,
plus the two stock mutations:
- update_stock: operator-driven add/subtract/set, commits on its own
- decrement_stock: called by the transaction committer inside its unit of
  work; never commits
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..errors import InsufficientStock, InvalidInput, NotFound, StorageFailure
from ..extensions import db
from ..models import Category, Product, PriceVariant
from ..validation import MAX_QUANTITY
from .concurrency import begin_write, lock_for_update

PRODUCT_MUTABLE_FIELDS = {"name", "description", "barcode", "base_price_cents", "stock_quantity", "category_id", "is_active"}

STOCK_OPERATIONS = ("add", "subtract", "set")


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _require_category(category_id: int | None) -> None:
    if category_id is None:
        return
    if db.session.get(Category, category_id) is None:
        raise NotFound(f"Category with id {category_id} not found", details={"category_id": category_id})


# =============================================================================
# CATEGORIES
# =============================================================================

def create_category(patch: dict) -> Category:
    category = Category(name=patch["name"], description=patch.get("description"))
    db.session.add(category)
    db.session.commit()
    return category


def list_categories() -> list[Category]:
    return db.session.query(Category).order_by(Category.id.asc()).all()


# =============================================================================
# PRODUCTS
# =============================================================================

def create_product(patch: dict) -> Product:
    """Create product from a validated patch (see validation.validate_payload)."""
    _require_category(patch.get("category_id"))

    product = Product(is_active=True, stock_quantity=0)
    apply_product_patch(product, patch)
    db.session.add(product)
    db.session.commit()
    return product


def list_products(*, include_inactive: bool = True) -> list[Product]:
    query = db.session.query(Product)
    if not include_inactive:
        query = query.filter(Product.is_active.is_(True))
    return query.order_by(Product.id.asc()).all()


def get_product_by_id(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFound(f"Product with id {product_id} not found", details={"product_id": product_id})
    return product


def get_product_by_barcode(barcode: str) -> Product | None:
    """First product carrying the barcode, or None. Barcodes are not unique."""
    return (
        db.session.query(Product)
        .filter(Product.barcode == barcode)
        .order_by(Product.id.asc())
        .first()
    )


def update_product(product_id: int, patch: dict) -> Product:
    product = get_product_by_id(product_id)
    if "category_id" in patch:
        _require_category(patch["category_id"])
    apply_product_patch(product, patch)
    db.session.commit()
    return product


def delete_product(product_id: int) -> dict:
    """Soft delete: history in transaction_items keeps pointing at the row."""
    product = get_product_by_id(product_id)
    product.is_active = False
    db.session.commit()
    return {"success": True}


# =============================================================================
# PRICE VARIANTS
# =============================================================================

def create_price_variant(patch: dict) -> PriceVariant:
    get_product_by_id(patch["product_id"])

    variant = PriceVariant(
        product_id=patch["product_id"],
        variant_name=patch["variant_name"],
        price_cents=patch["price_cents"],
        is_default=bool(patch.get("is_default", False)),
    )
    db.session.add(variant)
    db.session.commit()
    return variant


def list_price_variants(product_id: int) -> list[PriceVariant]:
    return (
        db.session.query(PriceVariant)
        .filter_by(product_id=product_id)
        .order_by(PriceVariant.id.asc())
        .all()
    )


def get_price_variant_by_id(variant_id: int) -> PriceVariant:
    variant = db.session.get(PriceVariant, variant_id)
    if variant is None:
        raise NotFound(f"Price variant with id {variant_id} not found", details={"price_variant_id": variant_id})
    return variant


# =============================================================================
# STOCK
# =============================================================================

def _lock_product(product_id: int) -> Product:
    product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
    if product is None:
        raise NotFound(f"Product with id {product_id} not found", details={"product_id": product_id})
    return product


def decrement_stock(product_id: int, quantity: int) -> Product:
    """
    Decrement stock inside the caller's open unit of work.

    The caller owns begin/commit/rollback. Raises InsufficientStock without
    touching the row when the decrement would go below zero.
    """
    product = _lock_product(product_id)
    if product.stock_quantity < quantity:
        raise InsufficientStock(
            f"Insufficient stock for product {product_id}",
            details={
                "product_id": product_id,
                "requested_quantity": quantity,
                "on_hand": product.stock_quantity,
            },
        )
    product.stock_quantity = product.stock_quantity - quantity
    return product


def update_stock(product_id: int, quantity_change: int, operation: str) -> dict:
    """
    Operator stock adjustment: add, subtract, or set an absolute quantity.

    Returns {"success": True, "new_quantity": n}.
    """
    if operation not in STOCK_OPERATIONS:
        raise InvalidInput(f"operation must be one of {', '.join(STOCK_OPERATIONS)}")
    if isinstance(quantity_change, bool) or not isinstance(quantity_change, int):
        raise InvalidInput("quantity_change must be an integer")
    if abs(quantity_change) > MAX_QUANTITY:
        raise InvalidInput(f"quantity_change cannot exceed {MAX_QUANTITY}")
    if operation == "set" and quantity_change < 0:
        raise InvalidInput("Stock cannot be set to a negative quantity", details={"product_id": product_id})

    try:
        begin_write()
        product = _lock_product(product_id)
        current = product.stock_quantity

        if operation == "add":
            new_quantity = current + quantity_change
        elif operation == "subtract":
            new_quantity = current - quantity_change
        else:
            new_quantity = quantity_change

        if new_quantity < 0:
            raise InsufficientStock(
                f"Operation would result in negative stock: {new_quantity}. Current stock: {current}",
                details={"product_id": product_id, "on_hand": current, "new_quantity": new_quantity},
            )

        if new_quantity > MAX_QUANTITY:
            raise InvalidInput(f"Stock cannot exceed {MAX_QUANTITY}", details={"product_id": product_id})

        product.stock_quantity = new_quantity
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StorageFailure("Stock update failed", details={"product_id": product_id}) from exc
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info(
        "Stock %s for product %s: %s -> %s", operation, product_id, current, new_quantity
    )
    return {"success": True, "new_quantity": new_quantity}
