"""Initial schema: shops, catalog, customers, orders and sync logs.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    ]


def _postal_columns() -> list[sa.Column]:
    return [
        sa.Column('first_name', sa.String(255)),
        sa.Column('last_name', sa.String(255)),
        sa.Column('company', sa.String(255)),
        sa.Column('address1', sa.String(255)),
        sa.Column('address2', sa.String(255)),
        sa.Column('city', sa.String(255)),
        sa.Column('province', sa.String(255)),
        sa.Column('province_code', sa.String(10)),
        sa.Column('country', sa.String(255)),
        sa.Column('country_code', sa.String(10)),
        sa.Column('zip', sa.String(50)),
        sa.Column('phone', sa.String(50)),
        sa.Column('name', sa.String(255)),
    ]


def upgrade() -> None:
    # ### Shops table ###
    op.create_table(
        'shops',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('shopify_id', sa.BigInteger(), unique=True, nullable=True),
        sa.Column('domain', sa.String(255), unique=True, index=True, nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255)),
        sa.Column('currency', sa.String(10)),
        sa.Column('access_token_encrypted', sa.Text()),
        sa.Column('scopes', sa.Text()),
        sa.Column('last_sync_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )

    # ### Products and their variants/images ###
    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('shopify_id', sa.BigInteger(), unique=True, nullable=False),
        sa.Column('shop_id', sa.Integer(), sa.ForeignKey('shops.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('title', sa.String(500), nullable=False),
        sa.Column('handle', sa.String(255), index=True),
        sa.Column('vendor', sa.String(255)),
        sa.Column('status', sa.String(50)),
        *_timestamps(),
    )
    op.create_table(
        'product_variants',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('shopify_id', sa.BigInteger(), unique=True, nullable=False),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('title', sa.String(255)),
        sa.Column('price', sa.Numeric(precision=12, scale=2)),
        sa.Column('sku', sa.String(255)),
        sa.Column('inventory_quantity', sa.Integer(), default=0),
        *_timestamps(),
    )
    op.create_table(
        'product_images',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('shopify_id', sa.BigInteger(), unique=True, nullable=False),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('alt', sa.Text()),
        sa.Column('width', sa.Integer()),
        sa.Column('height', sa.Integer()),
        sa.Column('src', sa.Text()),
    )

    # ### Customers ###
    op.create_table(
        'customers',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('shopify_id', sa.BigInteger(), unique=True, nullable=False),
        sa.Column('shop_id', sa.Integer(), sa.ForeignKey('shops.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('first_name', sa.String(255)),
        sa.Column('last_name', sa.String(255)),
        sa.Column('email', sa.String(255), index=True),
        sa.Column('phone', sa.String(50)),
        sa.Column('total_spent', sa.Numeric(precision=12, scale=2)),
        sa.Column('orders_count', sa.Integer()),
        *_timestamps(),
    )
    op.create_table(
        'customer_addresses',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('shopify_id', sa.BigInteger(), unique=True, nullable=False),
        sa.Column('customer_id', sa.Integer(), sa.ForeignKey('customers.id', ondelete='CASCADE'), nullable=False, index=True),
        *_postal_columns(),
        sa.Column('is_default', sa.Boolean(), default=False),
    )

    # ### Orders, line items and addresses ###
    op.create_table(
        'orders',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('shopify_id', sa.BigInteger(), unique=True, nullable=False),
        sa.Column('shop_id', sa.Integer(), sa.ForeignKey('shops.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('customer_id', sa.Integer(), sa.ForeignKey('customers.id', ondelete='SET NULL'), nullable=True, index=True),
        sa.Column('order_number', sa.String(50), nullable=False),
        sa.Column('email', sa.String(255)),
        sa.Column('financial_status', sa.String(50)),
        sa.Column('fulfillment_status', sa.String(50)),
        sa.Column('total_price', sa.Numeric(precision=12, scale=2)),
        sa.Column('currency', sa.String(10)),
        *_timestamps(),
        sa.UniqueConstraint('shop_id', 'order_number', name='uq_orders_shop_order_number'),
    )
    op.create_table(
        'order_items',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('shopify_id', sa.BigInteger(), unique=True, nullable=True),
        sa.Column('order_id', sa.Integer(), sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('product_variant_id', sa.Integer(), sa.ForeignKey('product_variants.id', ondelete='SET NULL'), nullable=True),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id', ondelete='SET NULL'), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('price', sa.Numeric(precision=12, scale=2), nullable=False, server_default='0'),
    )
    for table in ('shipping_addresses', 'billing_addresses'):
        op.create_table(
            table,
            sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column('order_id', sa.Integer(), sa.ForeignKey('orders.id', ondelete='CASCADE'), unique=True, nullable=False),
            *_postal_columns(),
            sa.Column('latitude', sa.Float()),
            sa.Column('longitude', sa.Float()),
        )

    # ### Collections ###
    op.create_table(
        'collections',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('shopify_id', sa.BigInteger(), unique=True, nullable=False),
        sa.Column('shop_id', sa.Integer(), sa.ForeignKey('shops.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('handle', sa.String(255)),
        sa.Column('title', sa.String(500), nullable=False),
    )
    op.create_table(
        'collection_products',
        sa.Column('collection_id', sa.Integer(), sa.ForeignKey('collections.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id', ondelete='CASCADE'), primary_key=True),
    )

    # ### Sync logs ###
    op.create_table(
        'sync_logs',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('shop_id', sa.Integer(), sa.ForeignKey('shops.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('sync_type', sa.String(50), nullable=False, server_default='initial'),
        sa.Column('entity_type', sa.String(50), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='started', index=True),
        sa.Column('records_processed', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('records_total', sa.Integer()),
        sa.Column('error_message', sa.Text()),
        sa.Column('started_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('completed_at', sa.DateTime(timezone=True)),
    )
    op.create_index('ix_sync_logs_shop_entity_started', 'sync_logs', ['shop_id', 'entity_type', 'started_at'])


def downgrade() -> None:
    op.drop_index('ix_sync_logs_shop_entity_started', 'sync_logs')
    op.drop_table('sync_logs')
    op.drop_table('collection_products')
    op.drop_table('collections')
    op.drop_table('billing_addresses')
    op.drop_table('shipping_addresses')
    op.drop_table('order_items')
    op.drop_table('orders')
    op.drop_table('customer_addresses')
    op.drop_table('customers')
    op.drop_table('product_images')
    op.drop_table('product_variants')
    op.drop_table('products')
    op.drop_table('shops')
