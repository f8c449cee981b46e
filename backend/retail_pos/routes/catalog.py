# Overview: Flask API routes for catalog operations; parses input and returns JSON responses.

# backend/retail_pos/routes/catalog.py
"""
Catalog routes: categories, products, price variants and stock adjustment.

Thin field-mapping over catalog_service. Payloads are validated against the
model columns through ModelValidationPolicy before reaching the service.
"""
from flask import Blueprint, current_app, jsonify, request

from ..errors import PosError
from ..models import Category, Product, PriceVariant
from ..services import catalog_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    enforce_rules_price_variant,
)

CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description"},
    required_on_create={"name"},
)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description", "barcode", "base_price", "stock_quantity", "category_id", "is_active"},
    required_on_create={"name", "base_price", "stock_quantity"},
    money_fields={"base_price": "base_price_cents"},
)

PRICE_VARIANT_POLICY = ModelValidationPolicy(
    writable_fields={"product_id", "variant_name", "price", "is_default"},
    required_on_create={"product_id", "variant_name", "price"},
    money_fields={"price": "price_cents"},
)

catalog_bp = Blueprint("catalog", __name__, url_prefix="/api")


def _error(exc: PosError):
    return jsonify(exc.to_dict()), exc.status_code


# =============================================================================
# CATEGORIES
# =============================================================================

@catalog_bp.post("/categories")
def create_category_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=False)
        category = catalog_service.create_category(patch)
        return jsonify({"category": category.to_dict()}), 201
    except PosError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to create category")
        return jsonify({"error": "Internal server error"}), 500


@catalog_bp.get("/categories")
def list_categories_route():
    categories = catalog_service.list_categories()
    return jsonify({"items": [c.to_dict() for c in categories], "count": len(categories)}), 200


# =============================================================================
# PRODUCTS
# =============================================================================

@catalog_bp.post("/products")
def create_product_route():
    """
    Create a product.

    Body: name, base_price, stock_quantity (required); description, barcode,
    category_id, is_active (optional).
    """
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
        product = catalog_service.create_product(patch)
        return jsonify({"product": product.to_dict()}), 201
    except PosError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@catalog_bp.get("/products")
def list_products_route():
    """Query params: active_only=true hides soft-deleted products."""
    active_only = request.args.get("active_only", "false").lower() == "true"
    products = catalog_service.list_products(include_inactive=not active_only)
    return jsonify({"items": [p.to_dict() for p in products], "count": len(products)}), 200


@catalog_bp.get("/products/<int:product_id>")
def get_product_route(product_id: int):
    try:
        product = catalog_service.get_product_by_id(product_id)
        return jsonify({"product": product.to_dict()}), 200
    except PosError as e:
        return _error(e)


@catalog_bp.get("/products/barcode/<string:barcode>")
def get_product_by_barcode_route(barcode: str):
    product = catalog_service.get_product_by_barcode(barcode)
    if product is None:
        return jsonify({"error": "Product not found"}), 404
    return jsonify({"product": product.to_dict()}), 200


@catalog_bp.patch("/products/<int:product_id>")
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
        product = catalog_service.update_product(product_id, patch)
        return jsonify({"product": product.to_dict()}), 200
    except PosError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500


@catalog_bp.delete("/products/<int:product_id>")
def delete_product_route(product_id: int):
    """Soft delete (is_active=False)."""
    try:
        return jsonify(catalog_service.delete_product(product_id)), 200
    except PosError as e:
        return _error(e)


@catalog_bp.post("/products/<int:product_id>/stock")
def update_stock_route(product_id: int):
    """
    Adjust stock.

    Body: quantity_change (int), operation (add | subtract | set)
    """
    payload = request.get_json(silent=True) or {}
    try:
        result = catalog_service.update_stock(
            product_id,
            payload.get("quantity_change"),
            payload.get("operation"),
        )
        return jsonify(result), 200
    except PosError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to update stock")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# PRICE VARIANTS
# =============================================================================

@catalog_bp.post("/price-variants")
def create_price_variant_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=PriceVariant, payload=payload, policy=PRICE_VARIANT_POLICY, partial=False)
        enforce_rules_price_variant(patch)
        variant = catalog_service.create_price_variant(patch)
        return jsonify({"price_variant": variant.to_dict()}), 201
    except PosError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to create price variant")
        return jsonify({"error": "Internal server error"}), 500


@catalog_bp.get("/products/<int:product_id>/price-variants")
def list_price_variants_route(product_id: int):
    variants = catalog_service.list_price_variants(product_id)
    return jsonify({"items": [v.to_dict() for v in variants], "count": len(variants)}), 200
