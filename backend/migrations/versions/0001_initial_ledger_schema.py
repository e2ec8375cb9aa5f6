"""initial ledger schema

Revision ID: 0001_initial_ledger
Revises:
Create Date: 2026-10-16 00:00:00.000000

Creates the catalog (categories, products, services), the sales ledger
(sale_transactions, sell_history), customer credit (debits, debit_items)
and expenses (daily_expenses, supply_expenses).
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_initial_ledger'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ============================================================================
    # Catalog
    # ============================================================================
    op.create_table(
        'categories',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('initial_price_cents', sa.Integer(), nullable=False),
        sa.Column('selling_price_cents', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('total_sold', sa.Integer(), nullable=False),
        sa.Column('revenue_cents', sa.Integer(), nullable=False),
        sa.Column('profit_cents', sa.Integer(), nullable=False),
        sa.Column('category_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint('quantity >= 0', name='ck_products_quantity_nonneg'),
        sa.ForeignKeyConstraint(['category_id'], ['categories.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_products_category_id', 'products', ['category_id'])
    op.create_index('ix_products_category_name', 'products', ['category_id', 'name'])

    op.create_table(
        'services',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('default_price_cents', sa.Integer(), nullable=False),
        sa.Column('total_sold', sa.Integer(), nullable=False),
        sa.Column('revenue_cents', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
        sqlite_autoincrement=True
    )

    # ============================================================================
    # Sales ledger
    # ============================================================================
    op.create_table(
        'sale_transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('total_revenue_cents', sa.Integer(), nullable=False),
        sa.Column('total_profit_cents', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'sell_history',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('kind', sa.String(length=16), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=True),
        sa.Column('service_id', sa.Integer(), nullable=True),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('sold_price_cents', sa.Integer(), nullable=False),
        sa.Column('total_price_cents', sa.Integer(), nullable=False),
        sa.Column('initial_price_cents', sa.Integer(), nullable=True),
        sa.Column('transaction_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint(
            "(kind = 'PRODUCT' AND product_id IS NOT NULL AND service_id IS NULL)"
            " OR (kind = 'SERVICE' AND service_id IS NOT NULL AND product_id IS NULL)",
            name='ck_sell_history_kind_target',
        ),
        sa.CheckConstraint('amount > 0', name='ck_sell_history_amount_pos'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.ForeignKeyConstraint(['service_id'], ['services.id'], ),
        sa.ForeignKeyConstraint(['transaction_id'], ['sale_transactions.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sell_history_product_id', 'sell_history', ['product_id'])
    op.create_index('ix_sell_history_service_id', 'sell_history', ['service_id'])
    op.create_index('ix_sell_history_transaction_id', 'sell_history', ['transaction_id'])
    op.create_index('ix_sell_history_created_at', 'sell_history', ['created_at'])

    # ============================================================================
    # Customer credit
    # ============================================================================
    op.create_table(
        'debits',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('customer_name', sa.String(length=255), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('total_amount_cents', sa.Integer(), nullable=False),
        sa.Column('paid_amount_cents', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint('paid_amount_cents >= 0', name='ck_debits_paid_nonneg'),
        sa.CheckConstraint('paid_amount_cents <= total_amount_cents', name='ck_debits_paid_le_total'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_debits_status', 'debits', ['status'])

    op.create_table(
        'debit_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('debit_id', sa.Integer(), nullable=False),
        sa.Column('sell_history_id', sa.Integer(), nullable=False),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint('amount_cents > 0', name='ck_debit_items_amount_pos'),
        sa.ForeignKeyConstraint(['debit_id'], ['debits.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['sell_history_id'], ['sell_history.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('sell_history_id', name='uq_debit_items_sell_history'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_debit_items_debit_id', 'debit_items', ['debit_id'])

    # ============================================================================
    # Expenses
    # ============================================================================
    op.create_table(
        'daily_expenses',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=False),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('category', sa.String(length=64), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('expense_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_daily_expenses_date', 'daily_expenses', ['expense_date'])
    op.create_index('ix_daily_expenses_category', 'daily_expenses', ['category'])

    op.create_table(
        'supply_expenses',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=False),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('supplier', sa.String(length=255), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=True),
        sa.Column('unit_price_cents', sa.Integer(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_supply_expenses_created_at', 'supply_expenses', ['created_at'])


def downgrade():
    op.drop_index('ix_supply_expenses_created_at', table_name='supply_expenses')
    op.drop_table('supply_expenses')
    op.drop_index('ix_daily_expenses_category', table_name='daily_expenses')
    op.drop_index('ix_daily_expenses_date', table_name='daily_expenses')
    op.drop_table('daily_expenses')
    op.drop_index('ix_debit_items_debit_id', table_name='debit_items')
    op.drop_table('debit_items')
    op.drop_index('ix_debits_status', table_name='debits')
    op.drop_table('debits')
    op.drop_index('ix_sell_history_created_at', table_name='sell_history')
    op.drop_index('ix_sell_history_transaction_id', table_name='sell_history')
    op.drop_index('ix_sell_history_service_id', table_name='sell_history')
    op.drop_index('ix_sell_history_product_id', table_name='sell_history')
    op.drop_table('sell_history')
    op.drop_table('sale_transactions')
    op.drop_table('services')
    op.drop_index('ix_products_category_name', table_name='products')
    op.drop_index('ix_products_category_id', table_name='products')
    op.drop_table('products')
    op.drop_table('categories')
