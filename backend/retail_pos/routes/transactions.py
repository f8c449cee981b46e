# Overview: Flask API routes for checkout and transaction history.

# backend/retail_pos/routes/transactions.py
"""Transaction API routes"""

from flask import Blueprint, current_app, jsonify, request

from ..errors import InvalidInput, PosError
from ..services import transaction_service
from ..services.transaction_service import CartLine, PaymentEntry


transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")


@transactions_bp.post("")
def create_transaction_route():
    """
    Commit a cart.

    Body:
        items: [{product_id, price_variant_id?, quantity, discount_amount?}]
        tax_amount?, discount_amount?
        payments: [{payment_method, amount, reference_number?}]
    """
    data = request.get_json(silent=True) or {}
    try:
        items = data.get("items") or []
        payments = data.get("payments") or []
        if not isinstance(items, list) or not isinstance(payments, list):
            raise InvalidInput("items and payments must be arrays")

        txn = transaction_service.commit_transaction(
            [CartLine.from_payload(item) for item in items],
            tax_amount=data.get("tax_amount", 0),
            discount_amount=data.get("discount_amount", 0),
            payments=[PaymentEntry.from_payload(p) for p in payments],
        )
        return jsonify({"transaction": txn.to_dict()}), 201

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create transaction")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.get("")
def list_transactions_route():
    """
    List transactions, newest first.

    Query params: start_date, end_date (ISO-8601, inclusive), limit (default 50), offset
    """
    limit = request.args.get("limit", type=int)
    offset = request.args.get("offset", 0, type=int)
    try:
        txns = transaction_service.list_transactions(
            start_date=request.args.get("start_date"),
            end_date=request.args.get("end_date"),
            limit=limit,
            offset=offset,
        )
        return jsonify({"items": [t.to_dict() for t in txns], "count": len(txns)}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code


@transactions_bp.get("/<int:transaction_id>")
def get_transaction_route(transaction_id: int):
    details = transaction_service.get_transaction_details(transaction_id)
    if details is None:
        return jsonify({"error": "Transaction not found"}), 404
    return jsonify({"transaction": details}), 200
