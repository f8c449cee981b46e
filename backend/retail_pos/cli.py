# Overview: Flask CLI command groups for bootstrap, demo data, and reporting.

# backend/retail_pos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System:
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Catalog:
# - python -m flask catalog seed
#   Insert a small demo catalog (idempotent by product name).
#
# Reports:
# - python -m flask reports sales --start 2026-01-01 --end 2026-01-31 [--type daily]
#   Print the sales report as JSON.

import json

import click
from flask.cli import with_appcontext

from .errors import PosError
from .extensions import db
from .models import Category, Product, PriceVariant
from .services import reporting_service


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Confirm destructive reset')
@with_appcontext
def reset_db(yes):
    """Drop and recreate all tables."""
    if not yes:
        click.echo("FAIL Refusing to reset without --yes")
        raise SystemExit(1)
    db.drop_all()
    db.create_all()
    click.echo("PASS Database reset")


DEMO_CATALOG = [
    # (category, product, barcode, base_price_cents, stock, variants)
    ("Beverages", "Coffee", "1000000000017", 300, 200, [("Small", 300, True), ("Large", 450, False)]),
    ("Beverages", "Orange Juice", "1000000000024", 350, 80, []),
    ("Bakery", "Croissant", "1000000000031", 275, 40, []),
    ("Bakery", "Bagel", "1000000000048", 225, 60, [("Plain", 225, True), ("Everything", 250, False)]),
]


@click.group('catalog')
def catalog_group():
    """Catalog data commands."""


@catalog_group.command('seed')
@with_appcontext
def seed_catalog():
    """Insert a small demo catalog."""
    categories: dict[str, Category] = {}
    created = 0
    for category_name, name, barcode, price_cents, stock, variants in DEMO_CATALOG:
        category = categories.get(category_name)
        if category is None:
            category = db.session.query(Category).filter_by(name=category_name).first()
            if category is None:
                category = Category(name=category_name)
                db.session.add(category)
                db.session.flush()
            categories[category_name] = category

        if db.session.query(Product).filter_by(name=name).first():
            click.echo(f"WARN  Product '{name}' already exists, skipping...")
            continue

        product = Product(
            name=name,
            barcode=barcode,
            base_price_cents=price_cents,
            stock_quantity=stock,
            category_id=category.id,
            is_active=True,
        )
        db.session.add(product)
        db.session.flush()
        for variant_name, variant_price, is_default in variants:
            db.session.add(PriceVariant(
                product_id=product.id,
                variant_name=variant_name,
                price_cents=variant_price,
                is_default=is_default,
            ))
        created += 1

    db.session.commit()
    click.echo(f"PASS Created {created} product(s)")


@click.group('reports')
def reports_group():
    """Reporting commands."""


@reports_group.command('sales')
@click.option('--start', required=True, help='Start date/datetime (ISO-8601, inclusive)')
@click.option('--end', required=True, help='End date/datetime (ISO-8601, inclusive)')
@click.option('--type', 'report_type', default='daily', type=click.Choice(reporting_service.REPORT_TYPES))
@with_appcontext
def sales_report(start, end, report_type):
    """Print the sales report for a date range."""
    try:
        report = reporting_service.generate_sales_report(start, end, report_type)
    except PosError as e:
        raise click.ClickException(str(e))
    click.echo(json.dumps(reporting_service.report_to_json(report), indent=2))


def register_commands(app):
    app.cli.add_command(system_group)
    app.cli.add_command(catalog_group)
    app.cli.add_command(reports_group)
