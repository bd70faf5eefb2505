"""
Alembic migration: Initial storefront schema.

Creates users, the product catalog (categories, products and their
association table), orders with line items and status history, and
wishlist entries. Enumerated columns are stored as plain strings holding the
enum values; CHECK constraints keep stock, prices, quantities and order
amounts non-negative.

Revision ID: 001
Revises:
Create Date: 2024-03-02 10:14:27.518093
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# Revision identifiers, used by Alembic
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id_column() -> sa.Column:
    return sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True)


def _timestamp_columns() -> list[sa.Column]:
    return [
        sa.Column(
            'created_at',
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            'updated_at',
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    ]


def _money(name: str, default: Union[str, None] = None) -> sa.Column:
    return sa.Column(
        name,
        sa.Numeric(precision=10, scale=2),
        nullable=False,
        server_default=default,
    )


def upgrade() -> None:
    """Create the storefront tables, indexes and constraints."""
    op.create_table(
        'users',
        _id_column(),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('first_name', sa.String(100), nullable=False),
        sa.Column('last_name', sa.String(100), nullable=False),
        sa.Column('phone', sa.String(30), nullable=True),
        sa.Column('address', sa.String(500), nullable=True),
        sa.Column('city', sa.String(100), nullable=True),
        sa.Column('postal_code', sa.String(20), nullable=True),
        sa.Column('country', sa.String(100), nullable=True),
        sa.Column('role', sa.String(8), nullable=False, server_default='customer'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamp_columns(),
        sa.CheckConstraint('length(email) >= 3', name='ck_users_email_length'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_role', 'users', ['role'])

    op.create_table(
        'categories',
        _id_column(),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('description', sa.String(1000), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamp_columns(),
    )
    op.create_index('ix_categories_name', 'categories', ['name'], unique=True)

    op.create_table(
        'products',
        _id_column(),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('sku', sa.String(64), nullable=True),
        _money('price'),
        sa.Column('stock_quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('is_featured', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('image_url', sa.String(500), nullable=True),
        *_timestamp_columns(),
        sa.UniqueConstraint('sku', name='uq_products_sku'),
        sa.CheckConstraint(
            'stock_quantity >= 0',
            name='ck_products_stock_quantity_non_negative',
        ),
        sa.CheckConstraint('price >= 0', name='ck_products_price_non_negative'),
    )
    op.create_index('ix_products_name', 'products', ['name'])
    op.create_index('ix_products_active_featured', 'products', ['is_active', 'is_featured'])

    op.create_table(
        'product_categories',
        sa.Column(
            'product_id',
            sa.Integer(),
            sa.ForeignKey('products.id', ondelete='CASCADE'),
            primary_key=True,
        ),
        sa.Column(
            'category_id',
            sa.Integer(),
            sa.ForeignKey('categories.id', ondelete='CASCADE'),
            primary_key=True,
        ),
    )

    op.create_table(
        'orders',
        _id_column(),
        sa.Column('order_number', sa.String(50), nullable=False),
        sa.Column(
            'user_id',
            sa.Integer(),
            sa.ForeignKey('users.id', ondelete='RESTRICT'),
            nullable=False,
        ),
        sa.Column('status', sa.String(10), nullable=False, server_default='pending'),
        sa.Column('payment_method', sa.String(16), nullable=False),
        sa.Column('payment_status', sa.String(8), nullable=False, server_default='pending'),
        _money('subtotal'),
        _money('tax_amount', '0'),
        _money('shipping_cost', '0'),
        _money('total_amount'),
        sa.Column('shipping_address', sa.String(500), nullable=False),
        sa.Column('shipping_city', sa.String(100), nullable=False),
        sa.Column('shipping_postal_code', sa.String(20), nullable=False),
        sa.Column('shipping_country', sa.String(100), nullable=False),
        sa.Column('billing_address', sa.String(500), nullable=True),
        sa.Column('billing_city', sa.String(100), nullable=True),
        sa.Column('billing_postal_code', sa.String(20), nullable=True),
        sa.Column('billing_country', sa.String(100), nullable=True),
        sa.Column('notes', sa.String(1000), nullable=True),
        sa.Column('tracking_number', sa.String(100), nullable=True),
        sa.Column('confirmed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('shipped_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('delivered_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamp_columns(),
        sa.UniqueConstraint('order_number', name='uq_orders_order_number'),
        sa.CheckConstraint('subtotal >= 0', name='ck_orders_subtotal_non_negative'),
        sa.CheckConstraint('tax_amount >= 0', name='ck_orders_tax_amount_non_negative'),
        sa.CheckConstraint(
            'shipping_cost >= 0',
            name='ck_orders_shipping_cost_non_negative',
        ),
        sa.CheckConstraint(
            'total_amount >= 0',
            name='ck_orders_total_amount_non_negative',
        ),
    )
    op.create_index('ix_orders_user_id', 'orders', ['user_id'])
    op.create_index('ix_orders_status', 'orders', ['status'])
    op.create_index('ix_orders_user_created', 'orders', ['user_id', 'created_at'])
    op.create_index('ix_orders_status_created', 'orders', ['status', 'created_at'])

    op.create_table(
        'order_items',
        _id_column(),
        sa.Column(
            'order_id',
            sa.Integer(),
            sa.ForeignKey('orders.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column(
            'product_id',
            sa.Integer(),
            sa.ForeignKey('products.id', ondelete='RESTRICT'),
            nullable=False,
        ),
        sa.Column('product_name', sa.String(255), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        _money('unit_price'),
        _money('total_price'),
        *_timestamp_columns(),
        sa.CheckConstraint('quantity > 0', name='ck_order_items_quantity_positive'),
        sa.CheckConstraint(
            'unit_price >= 0',
            name='ck_order_items_unit_price_non_negative',
        ),
        sa.CheckConstraint(
            'total_price >= 0',
            name='ck_order_items_total_price_non_negative',
        ),
    )
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])
    op.create_index('ix_order_items_product_id', 'order_items', ['product_id'])

    op.create_table(
        'order_status_history',
        _id_column(),
        sa.Column(
            'order_id',
            sa.Integer(),
            sa.ForeignKey('orders.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('from_status', sa.String(10), nullable=True),
        sa.Column('to_status', sa.String(10), nullable=False),
        sa.Column(
            'changed_by',
            sa.Integer(),
            sa.ForeignKey('users.id', ondelete='SET NULL'),
            nullable=True,
        ),
        sa.Column('reason', sa.String(500), nullable=True),
        *_timestamp_columns(),
    )
    op.create_index(
        'ix_order_status_history_order_id',
        'order_status_history',
        ['order_id'],
    )

    op.create_table(
        'wishlist_items',
        _id_column(),
        sa.Column(
            'user_id',
            sa.Integer(),
            sa.ForeignKey('users.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column(
            'product_id',
            sa.Integer(),
            sa.ForeignKey('products.id', ondelete='CASCADE'),
            nullable=False,
        ),
        *_timestamp_columns(),
        sa.UniqueConstraint(
            'user_id',
            'product_id',
            name='uq_wishlist_items_user_product',
        ),
    )
    op.create_index('ix_wishlist_items_user_id', 'wishlist_items', ['user_id'])


def downgrade() -> None:
    """Drop every storefront table in dependency order."""
    op.drop_index('ix_wishlist_items_user_id', table_name='wishlist_items')
    op.drop_table('wishlist_items')

    op.drop_index('ix_order_status_history_order_id', table_name='order_status_history')
    op.drop_table('order_status_history')

    op.drop_index('ix_order_items_product_id', table_name='order_items')
    op.drop_index('ix_order_items_order_id', table_name='order_items')
    op.drop_table('order_items')

    op.drop_index('ix_orders_status_created', table_name='orders')
    op.drop_index('ix_orders_user_created', table_name='orders')
    op.drop_index('ix_orders_status', table_name='orders')
    op.drop_index('ix_orders_user_id', table_name='orders')
    op.drop_table('orders')

    op.drop_table('product_categories')

    op.drop_index('ix_products_active_featured', table_name='products')
    op.drop_index('ix_products_name', table_name='products')
    op.drop_table('products')

    op.drop_index('ix_categories_name', table_name='categories')
    op.drop_table('categories')

    op.drop_index('ix_users_role', table_name='users')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
