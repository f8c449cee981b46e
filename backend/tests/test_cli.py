import json
from datetime import datetime

from retail_pos.extensions import db
from retail_pos.models import Category, Product, PriceVariant

from conftest import record_sale


def test_seed_catalog_is_idempotent(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["catalog", "seed"])
    assert result.exit_code == 0
    assert "Created 4 product(s)" in result.output

    result = runner.invoke(args=["catalog", "seed"])
    assert "Created 0 product(s)" in result.output

    db.session.expire_all()
    assert db.session.query(Product).count() == 4
    assert db.session.query(Category).count() == 2
    assert db.session.query(PriceVariant).count() == 4


def test_sales_report_command(app, db_session, product_a):
    record_sale(db_session, number="T1", when=datetime(2026, 2, 3, 11), lines=[(product_a, 2, 1000)])

    result = app.test_cli_runner().invoke(
        args=["reports", "sales", "--start", "2026-02-01", "--end", "2026-02-28"]
    )
    assert result.exit_code == 0
    report = json.loads(result.output)
    assert report["total_transactions"] == 1
    assert report["total_revenue"] == "20.00"


def test_sales_report_command_bad_dates(app, db_session):
    result = app.test_cli_runner().invoke(args=["reports", "sales", "--start", "soon", "--end", "later"])
    assert result.exit_code != 0
    assert "ISO-8601" in result.output


def test_reset_db_requires_confirmation(app, db_session):
    result = app.test_cli_runner().invoke(args=["system", "reset-db"])
    assert result.exit_code == 1
    assert "Refusing" in result.output
