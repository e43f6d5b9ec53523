"""initial_storefront_schema

Revision ID: 3a9f1c2d7e10
Revises:
Create Date: 2026-10-19 10:12:41.204518

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3a9f1c2d7e10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'users',
        sa.Column('user_id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('username', sa.String(length=50), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=30), nullable=True),
        sa.Column('preferred_currency', sa.String(length=3), nullable=False, server_default='USD'),
        sa.Column('country', sa.String(length=2), nullable=False, server_default='US'),
        sa.Column('email_notifications', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('role', sa.String(length=20), nullable=False, server_default='user'),
        sa.Column('email_verified', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        # SHA-256 hex of the single valid refresh token, NULL when logged out
        sa.Column('refresh_token_hash', sa.String(length=64), nullable=True),
        sa.Column('verify_token', sa.String(length=64), nullable=True),
        sa.Column('verify_token_expiry', sa.DateTime(), nullable=True),
        sa.Column('forget_password_token', sa.String(length=64), nullable=True),
        sa.Column('forget_password_token_expiry', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('user_id'),
    )
    op.create_index('idx_users_username', 'users', ['username'], unique=True)
    op.create_index('idx_users_email', 'users', ['email'], unique=True)
    op.create_index('idx_users_verify_token', 'users', ['verify_token'])
    op.create_index('idx_users_forget_password_token', 'users', ['forget_password_token'])

    op.create_table(
        'categories',
        sa.Column('category_id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('image_url', sa.String(length=500), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('category_id'),
    )
    op.create_index('idx_categories_name', 'categories', ['name'], unique=True)

    op.create_table(
        'products',
        sa.Column('product_id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('description', sa.String(length=500), nullable=False),
        sa.Column('price', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('image_url', sa.String(length=500), nullable=True),
        sa.Column('category_id', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('product_id'),
        sa.ForeignKeyConstraint(['category_id'], ['categories.category_id'], name='fk_products_category_id', onupdate='CASCADE', ondelete='RESTRICT'),
    )
    op.create_index('idx_products_category_id', 'products', ['category_id'])
    op.create_index('idx_products_name', 'products', ['name'])

    op.create_table(
        'orders',
        sa.Column('order_id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('name', sa.String(length=100), nullable=True),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('total_amount', sa.Numeric(precision=12, scale=2), nullable=False, server_default='0.00'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='PENDING'),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('order_id'),
        sa.ForeignKeyConstraint(['user_id'], ['users.user_id'], name='fk_orders_user_id', onupdate='CASCADE', ondelete='CASCADE'),
    )
    op.create_index('idx_orders_user_id', 'orders', ['user_id'])

    op.create_table(
        'order_items',
        sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('unit_price', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['order_id'], ['orders.order_id'], name='fk_order_items_order_id', onupdate='CASCADE', ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['product_id'], ['products.product_id'], name='fk_order_items_product_id', onupdate='CASCADE', ondelete='RESTRICT'),
    )
    op.create_index('idx_order_items_order_id', 'order_items', ['order_id'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('idx_order_items_order_id', table_name='order_items')
    op.drop_table('order_items')

    op.drop_index('idx_orders_user_id', table_name='orders')
    op.drop_table('orders')

    op.drop_index('idx_products_name', table_name='products')
    op.drop_index('idx_products_category_id', table_name='products')
    op.drop_table('products')

    op.drop_index('idx_categories_name', table_name='categories')
    op.drop_table('categories')

    op.drop_index('idx_users_forget_password_token', table_name='users')
    op.drop_index('idx_users_verify_token', table_name='users')
    op.drop_index('idx_users_email', table_name='users')
    op.drop_index('idx_users_username', table_name='users')
    op.drop_table('users')
