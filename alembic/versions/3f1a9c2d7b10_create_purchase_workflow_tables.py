"""create purchase workflow tables

Revision ID: 3f1a9c2d7b10
Revises:
Create Date: 2026-10-19 09:12:41.218304

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1a9c2d7b10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _base_columns():
    return [
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('uuid', sa.String(length=36), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
    ]


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    ]


def upgrade():
    op.create_table(
        'branches',
        *_base_columns(),
        sa.Column('name', sa.String(length=150), nullable=False),
        sa.Column('location', sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
        sa.UniqueConstraint('uuid'),
    )

    op.create_table(
        'users',
        *_base_columns(),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=False),
        sa.Column('hashed_password', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=7), nullable=False),
        sa.Column('branch_id', sa.Integer(), nullable=True),
        sa.Column('last_login', sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['branch_id'], ['branches.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('uuid'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_branch_id', 'users', ['branch_id'])

    op.create_table(
        'products',
        *_base_columns(),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('item_code', sa.String(length=64), nullable=False),
        sa.Column('buying_price', sa.Numeric(12, 2), nullable=True),
        sa.Column('unit_price', sa.Numeric(12, 2), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('uuid'),
    )
    op.create_index('ix_products_item_code', 'products', ['item_code'], unique=True)

    op.create_table(
        'stocks',
        *_base_columns(),
        sa.Column('branch_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['branch_id'], ['branches.id']),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('branch_id', 'product_id', name='uq_stock_branch_product'),
        sa.UniqueConstraint('uuid'),
    )
    op.create_index('ix_stocks_branch_id', 'stocks', ['branch_id'])
    op.create_index('ix_stocks_product_id', 'stocks', ['product_id'])

    op.create_table(
        'purchase_orders',
        *_base_columns(),
        sa.Column('branch_id', sa.Integer(), nullable=False),
        sa.Column('created_by_user_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('cancellation_reason', sa.Text(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['branch_id'], ['branches.id']),
        sa.ForeignKeyConstraint(['created_by_user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('uuid'),
    )
    op.create_index('ix_purchase_orders_branch_id', 'purchase_orders', ['branch_id'])
    op.create_index('ix_purchase_orders_created_by_user_id', 'purchase_orders', ['created_by_user_id'])
    op.create_index('ix_purchase_orders_status', 'purchase_orders', ['status'])

    op.create_table(
        'purchase_order_items',
        *_base_columns(),
        sa.Column('purchase_order_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('supplier_name', sa.String(length=255), nullable=True),
        sa.Column('quantity_requested', sa.Integer(), nullable=False),
        sa.Column('quantity_accepted', sa.Integer(), nullable=True),
        sa.Column('accepted_at', sa.DateTime(), nullable=True),
        sa.Column('accepted_by_user_id', sa.Integer(), nullable=True),
        sa.Column('quantity_registered', sa.Integer(), nullable=True),
        sa.Column('registered_at', sa.DateTime(), nullable=True),
        sa.Column('registered_by_user_id', sa.Integer(), nullable=True),
        sa.Column('registration_edit_count', sa.Integer(), nullable=False),
        sa.Column('last_registration_edit_at', sa.DateTime(), nullable=True),
        sa.Column('finance_verified', sa.Boolean(), nullable=False),
        sa.Column('finance_verified_at', sa.DateTime(), nullable=True),
        sa.Column('finance_verified_by_user_id', sa.Integer(), nullable=True),
        sa.Column('buying_price', sa.Numeric(12, 2), nullable=True),
        sa.Column('unit_price', sa.Numeric(12, 2), nullable=True),
        sa.Column('price_set_at', sa.DateTime(), nullable=True),
        sa.Column('price_set_by_user_id', sa.Integer(), nullable=True),
        sa.Column('price_edit_count', sa.Integer(), nullable=False),
        sa.Column('approved_at', sa.DateTime(), nullable=True),
        sa.Column('approved_by_user_id', sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['purchase_order_id'], ['purchase_orders.id']),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.ForeignKeyConstraint(['accepted_by_user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['registered_by_user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['finance_verified_by_user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['price_set_by_user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['approved_by_user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('uuid'),
    )
    op.create_index('ix_purchase_order_items_purchase_order_id', 'purchase_order_items', ['purchase_order_id'])
    op.create_index('ix_purchase_order_items_product_id', 'purchase_order_items', ['product_id'])
    op.create_index('ix_purchase_order_items_supplier_name', 'purchase_order_items', ['supplier_name'])

    op.create_table(
        'purchase_history',
        *_base_columns(),
        sa.Column('purchase_order_id', sa.Integer(), nullable=False),
        sa.Column('purchase_order_item_id', sa.Integer(), nullable=True),
        sa.Column('action', sa.String(length=15), nullable=False),
        sa.Column('performed_by_user_id', sa.Integer(), nullable=False),
        sa.Column('details', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['purchase_order_id'], ['purchase_orders.id']),
        sa.ForeignKeyConstraint(['purchase_order_item_id'], ['purchase_order_items.id']),
        sa.ForeignKeyConstraint(['performed_by_user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('uuid'),
    )
    op.create_index('ix_purchase_history_purchase_order_id', 'purchase_history', ['purchase_order_id'])

    op.create_table(
        'stock_movements',
        *_base_columns(),
        sa.Column('stock_id', sa.Integer(), nullable=False),
        sa.Column('movement_type', sa.String(length=10), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('previous_quantity', sa.Integer(), nullable=False),
        sa.Column('new_quantity', sa.Integer(), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('performed_by_user_id', sa.Integer(), nullable=True),
        sa.Column('purchase_order_id', sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['stock_id'], ['stocks.id']),
        sa.ForeignKeyConstraint(['performed_by_user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['purchase_order_id'], ['purchase_orders.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('uuid'),
    )
    op.create_index('ix_stock_movements_stock_id', 'stock_movements', ['stock_id'])
    op.create_index('ix_stock_movements_purchase_order_id', 'stock_movements', ['purchase_order_id'])


def downgrade():
    op.drop_index('ix_stock_movements_purchase_order_id', table_name='stock_movements')
    op.drop_index('ix_stock_movements_stock_id', table_name='stock_movements')
    op.drop_table('stock_movements')
    op.drop_index('ix_purchase_history_purchase_order_id', table_name='purchase_history')
    op.drop_table('purchase_history')
    op.drop_index('ix_purchase_order_items_supplier_name', table_name='purchase_order_items')
    op.drop_index('ix_purchase_order_items_product_id', table_name='purchase_order_items')
    op.drop_index('ix_purchase_order_items_purchase_order_id', table_name='purchase_order_items')
    op.drop_table('purchase_order_items')
    op.drop_index('ix_purchase_orders_status', table_name='purchase_orders')
    op.drop_index('ix_purchase_orders_created_by_user_id', table_name='purchase_orders')
    op.drop_index('ix_purchase_orders_branch_id', table_name='purchase_orders')
    op.drop_table('purchase_orders')
    op.drop_index('ix_stocks_product_id', table_name='stocks')
    op.drop_index('ix_stocks_branch_id', table_name='stocks')
    op.drop_table('stocks')
    op.drop_index('ix_products_item_code', table_name='products')
    op.drop_table('products')
    op.drop_index('ix_users_branch_id', table_name='users')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
    op.drop_table('branches')
