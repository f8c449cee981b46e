# Overview: Authoritative unit price for a cart line.

from __future__ import annotations

from decimal import Decimal

from ..errors import NotFound
from ..extensions import db
from ..models import Product, PriceVariant
from ..money import from_cents


def resolve_unit_price_cents(product_id: int, price_variant_id: int | None = None) -> int:
    """
    Price of one unit, in cents.

    A requested variant must exist and belong to the product; a missing one
    means the cart is stale, so there is no fallback to the base price.
    Always reads through to the database (populate_existing) so a committer
    running inside its own transaction sees current prices.
    """
    if price_variant_id is not None:
        variant = (
            db.session.query(PriceVariant)
            .filter_by(id=price_variant_id)
            .populate_existing()
            .first()
        )
        if variant is None or variant.product_id != product_id:
            raise NotFound(
                f"Price variant with ID {price_variant_id} not found",
                details={"product_id": product_id, "price_variant_id": price_variant_id},
            )
        return variant.price_cents

    product = (
        db.session.query(Product)
        .filter_by(id=product_id)
        .populate_existing()
        .first()
    )
    if product is None:
        raise NotFound(f"Product with ID {product_id} not found", details={"product_id": product_id})
    return product.base_price_cents


def resolve_unit_price(product_id: int, price_variant_id: int | None = None) -> Decimal:
    return from_cents(resolve_unit_price_cents(product_id, price_variant_id))
