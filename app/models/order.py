"""
SQLModel-based Order and OrderItem models.

An order belongs to exactly one user (its owner for authorization checks)
and holds line items. Each item captures the product's unit price at the
time the order was placed, so later price changes do not rewrite history.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKeyConstraint, Index
from sqlmodel import Field, SQLModel

from app.config import OrderStatus
from app.utils import utc_now


class Orders(SQLModel, table=True):
    """Database table for orders."""

    __tablename__ = "orders"

    __table_args__ = (
        ForeignKeyConstraint(
            ["user_id"],
            ["users.user_id"],
            ondelete="CASCADE",
            onupdate="CASCADE",
            name="fk_orders_user_id",
        ),
        Index("idx_orders_user_id", "user_id"),
    )

    order_id: int | None = Field(default=None, primary_key=True)
    name: str | None = Field(default=None, max_length=100)
    user_id: int
    total_amount: Decimal = Field(default=Decimal("0.00"), max_digits=12, decimal_places=2)
    status: str = Field(default=OrderStatus.PENDING, max_length=20)

    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime())
    updated_at: datetime = Field(default_factory=utc_now, sa_type=DateTime())


class OrderItems(SQLModel, table=True):
    """Database table for order line items."""

    __tablename__ = "order_items"

    __table_args__ = (
        ForeignKeyConstraint(
            ["order_id"],
            ["orders.order_id"],
            ondelete="CASCADE",
            onupdate="CASCADE",
            name="fk_order_items_order_id",
        ),
        ForeignKeyConstraint(
            ["product_id"],
            ["products.product_id"],
            ondelete="RESTRICT",
            onupdate="CASCADE",
            name="fk_order_items_product_id",
        ),
        Index("idx_order_items_order_id", "order_id"),
    )

    id: int | None = Field(default=None, primary_key=True)
    order_id: int
    product_id: int
    quantity: int = Field(default=1)
    unit_price: Decimal = Field(max_digits=12, decimal_places=2)
