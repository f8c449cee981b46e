"""
Pytest fixtures for retail POS backend tests.

Provides an in-memory application, per-test table cleanup, a test client and
a small catalog.
"""

from datetime import datetime

import pytest

from retail_pos import create_app
from retail_pos.extensions import db
from retail_pos.models import Category, Product, PriceVariant, Transaction, TransactionItem
from retail_pos.models.sales import TRANSACTION_STATUS_COMPLETED


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test',
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def category(db_session):
    category = Category(name="Beverages")
    db_session.add(category)
    db_session.commit()
    return category


@pytest.fixture(scope='function')
def product_a(db_session, category):
    """Product A: 10.00, 50 on hand."""
    product = Product(
        name="Product A",
        barcode="0001",
        base_price_cents=1000,
        stock_quantity=50,
        category_id=category.id,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def product_b(db_session, category):
    """Product B: 4.50, 5 on hand."""
    product = Product(
        name="Product B",
        barcode="0002",
        base_price_cents=450,
        stock_quantity=5,
        category_id=category.id,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def large_variant(db_session, product_a):
    variant = PriceVariant(product_id=product_a.id, variant_name="Large", price_cents=1250)
    db_session.add(variant)
    db_session.commit()
    return variant


def record_sale(
    session,
    *,
    number: str,
    when: datetime,
    lines,
    status: str = TRANSACTION_STATUS_COMPLETED,
    tax_cents: int = 0,
):
    """
    Insert a transaction directly, bypassing the committer.

    lines: [(product, quantity, unit_price_cents)]
    """
    total_cents = sum(qty * unit for _, qty, unit in lines)
    txn = Transaction(
        transaction_number=number,
        total_amount_cents=total_cents,
        tax_amount_cents=tax_cents,
        discount_amount_cents=0,
        final_amount_cents=total_cents + tax_cents,
        payment_method="cash",
        status=status,
        transaction_date=when,
        created_at=when,
    )
    session.add(txn)
    session.flush()
    for product, qty, unit in lines:
        session.add(TransactionItem(
            transaction_id=txn.id,
            product_id=product.id,
            quantity=qty,
            unit_price_cents=unit,
            total_price_cents=qty * unit,
            discount_amount_cents=0,
        ))
    session.commit()
    return txn
