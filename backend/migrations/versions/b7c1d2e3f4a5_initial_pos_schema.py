"""initial point-of-sale schema

Revision ID: b7c1d2e3f4a5
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the catalog and sales tables:
- categories, products, price_variants: catalog
- transactions, transaction_items, payment_records: committed sales

All money columns are integer cents.
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'b7c1d2e3f4a5'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ============================================================================
    # categories
    # ============================================================================
    op.create_table(
        'categories',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )

    # ============================================================================
    # products: stock_quantity is a guarded counter (never negative)
    # ============================================================================
    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('barcode', sa.String(length=64), nullable=True),
        sa.Column('base_price_cents', sa.Integer(), nullable=False),
        sa.Column('stock_quantity', sa.Integer(), nullable=False),
        sa.Column('category_id', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('version_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['category_id'], ['categories.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('stock_quantity >= 0', name='ck_products_stock_nonnegative'),
        sa.CheckConstraint('base_price_cents > 0', name='ck_products_base_price_positive'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_products_barcode', 'products', ['barcode'])
    op.create_index('ix_products_category_active', 'products', ['category_id', 'is_active'])
    op.create_index(op.f('ix_products_category_id'), 'products', ['category_id'])

    # ============================================================================
    # price_variants
    # ============================================================================
    op.create_table(
        'price_variants',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('variant_name', sa.String(length=255), nullable=False),
        sa.Column('price_cents', sa.Integer(), nullable=False),
        sa.Column('is_default', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('price_cents > 0', name='ck_price_variants_price_positive'),
        sqlite_autoincrement=True
    )
    op.create_index(op.f('ix_price_variants_product_id'), 'price_variants', ['product_id'])

    # ============================================================================
    # transactions: transaction_number uniqueness is the authoritative guard
    # ============================================================================
    op.create_table(
        'transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('transaction_number', sa.String(length=64), nullable=False),
        sa.Column('total_amount_cents', sa.Integer(), nullable=False),
        sa.Column('tax_amount_cents', sa.Integer(), nullable=False),
        sa.Column('discount_amount_cents', sa.Integer(), nullable=False),
        sa.Column('final_amount_cents', sa.Integer(), nullable=False),
        sa.Column('payment_method', sa.String(length=16), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('transaction_date', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('transaction_number', name='uq_transactions_transaction_number'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_transactions_status_date', 'transactions', ['status', 'transaction_date'])
    op.create_index(op.f('ix_transactions_status'), 'transactions', ['status'])
    op.create_index(op.f('ix_transactions_transaction_date'), 'transactions', ['transaction_date'])

    # ============================================================================
    # transaction_items: unit_price_cents is a commit-time snapshot
    # ============================================================================
    op.create_table(
        'transaction_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('transaction_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('price_variant_id', sa.Integer(), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price_cents', sa.Integer(), nullable=False),
        sa.Column('total_price_cents', sa.Integer(), nullable=False),
        sa.Column('discount_amount_cents', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['transaction_id'], ['transactions.id']),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.ForeignKeyConstraint(['price_variant_id'], ['price_variants.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_transaction_items_product', 'transaction_items', ['product_id'])
    op.create_index(op.f('ix_transaction_items_transaction_id'), 'transaction_items', ['transaction_id'])

    # ============================================================================
    # payment_records
    # ============================================================================
    op.create_table(
        'payment_records',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('transaction_id', sa.Integer(), nullable=False),
        sa.Column('payment_method', sa.String(length=16), nullable=False),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('reference_number', sa.String(length=128), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['transaction_id'], ['transactions.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index(op.f('ix_payment_records_transaction_id'), 'payment_records', ['transaction_id'])
    op.create_index(op.f('ix_payment_records_payment_method'), 'payment_records', ['payment_method'])


def downgrade():
    op.drop_table('payment_records')
    op.drop_table('transaction_items')
    op.drop_table('transactions')
    op.drop_table('price_variants')
    op.drop_table('products')
    op.drop_table('categories')
