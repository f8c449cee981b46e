# Overview: Service-layer operations for sales reporting; read-only aggregation over committed transactions.

from __future__ import annotations

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal

from flask import current_app
from sqlalchemy import func

from ..errors import InvalidInput
from ..extensions import db
from ..models import Product, Transaction, TransactionItem
from ..models.sales import TRANSACTION_STATUS_COMPLETED
from ..money import CENT, from_cents
from ..time_utils import coerce_bound, to_utc_z

"""
Sales report semantics (authoritative)

- Only status='completed' transactions count; pending/cancelled are invisible
  to every aggregate.
- Bounds are inclusive: start <= transaction_date <= end. A date-only end
  bound covers the whole day.
- report_type is accepted (daily/weekly/monthly) and echoed back, but
  daily_breakdown is always bucketed per calendar day.
- Consistency is best-effort: each aggregate is its own SELECT, so a commit
  landing mid-report can show up in some figures and not others.
"""

REPORT_TYPES = ("daily", "weekly", "monthly")


def _parse_range(start, end) -> tuple[datetime, datetime]:
    if start is None or end is None:
        raise InvalidInput("start_date and end_date are required")
    try:
        start_dt = coerce_bound(start, end_of_day=False)
        end_dt = coerce_bound(end, end_of_day=True)
    except (TypeError, ValueError):
        raise InvalidInput("start_date and end_date must be ISO-8601 dates")
    if start_dt is None or end_dt is None:
        raise InvalidInput("start_date and end_date are required")
    return start_dt, end_dt


def _completed_in_range(query, start_dt: datetime, end_dt: datetime):
    return query.filter(
        Transaction.status == TRANSACTION_STATUS_COMPLETED,
        Transaction.transaction_date >= start_dt,
        Transaction.transaction_date <= end_dt,
    )


def _date_key(value) -> str:
    # SQLite DATE() yields 'YYYY-MM-DD' text; PostgreSQL yields a date
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value)[:10]


def _average(revenue_cents: int, count: int) -> Decimal:
    if count == 0:
        return Decimal("0.00")
    return (Decimal(revenue_cents) / 100 / count).quantize(CENT, rounding=ROUND_HALF_UP)


def generate_sales_report(start_date, end_date, report_type: str = "daily") -> dict:
    """
    Summarize completed transactions in [start_date, end_date].

    Returns total_transactions, total_revenue, total_items_sold,
    average_transaction_value, top_products and daily_breakdown.
    Money values are Decimal.
    """
    if report_type not in REPORT_TYPES:
        raise InvalidInput(f"report_type must be one of {', '.join(REPORT_TYPES)}")
    start_dt, end_dt = _parse_range(start_date, end_date)

    totals = _completed_in_range(
        db.session.query(
            func.count(Transaction.id).label("total_transactions"),
            func.coalesce(func.sum(Transaction.final_amount_cents), 0).label("revenue_cents"),
        ),
        start_dt,
        end_dt,
    ).one()

    items_sold = _completed_in_range(
        db.session.query(func.coalesce(func.sum(TransactionItem.quantity), 0))
        .join(Transaction, TransactionItem.transaction_id == Transaction.id),
        start_dt,
        end_dt,
    ).scalar()

    revenue_col = func.sum(TransactionItem.total_price_cents)
    top_rows = (
        _completed_in_range(
            db.session.query(
                TransactionItem.product_id.label("product_id"),
                Product.name.label("product_name"),
                func.sum(TransactionItem.quantity).label("quantity_sold"),
                revenue_col.label("revenue_cents"),
            )
            .join(Transaction, TransactionItem.transaction_id == Transaction.id)
            .join(Product, TransactionItem.product_id == Product.id),
            start_dt,
            end_dt,
        )
        .group_by(TransactionItem.product_id, Product.name)
        # Ties on revenue fall back to product id so the ranking is stable
        .order_by(revenue_col.desc(), TransactionItem.product_id.asc())
        .limit(current_app.config.get("REPORT_TOP_PRODUCTS_LIMIT", 10))
        .all()
    )

    day_col = func.date(Transaction.transaction_date)
    daily_rows = (
        _completed_in_range(
            db.session.query(
                day_col.label("day"),
                func.count(Transaction.id).label("transactions"),
                func.sum(Transaction.final_amount_cents).label("revenue_cents"),
            ),
            start_dt,
            end_dt,
        )
        .group_by(day_col)
        .order_by(day_col)
        .all()
    )

    total_transactions = int(totals.total_transactions or 0)
    revenue_cents = int(totals.revenue_cents or 0)

    return {
        "report_type": report_type,
        "start_date": to_utc_z(start_dt),
        "end_date": to_utc_z(end_dt),
        "total_transactions": total_transactions,
        "total_revenue": from_cents(revenue_cents),
        "total_items_sold": int(items_sold or 0),
        "average_transaction_value": _average(revenue_cents, total_transactions),
        "top_products": [
            {
                "product_id": row.product_id,
                "product_name": row.product_name,
                "quantity_sold": int(row.quantity_sold or 0),
                "revenue": from_cents(int(row.revenue_cents or 0)),
            }
            for row in top_rows
        ],
        "daily_breakdown": [
            {
                "date": _date_key(row.day),
                "transactions": int(row.transactions or 0),
                "revenue": from_cents(int(row.revenue_cents or 0)),
            }
            for row in daily_rows
        ],
    }


def report_to_json(report: dict) -> dict:
    """Render Decimal money values as two-decimal strings for JSON responses."""
    def _render(value):
        if isinstance(value, Decimal):
            return str(value)
        if isinstance(value, list):
            return [_render(v) for v in value]
        if isinstance(value, dict):
            return {k: _render(v) for k, v in value.items()}
        return value

    return _render(report)
