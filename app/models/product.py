"""
SQLModel-based Product model.

ProductBase (shared public fields)
    ├─> Products (database table)
    └─> ProductCreate/ProductResponse (API schemas, defined in app/schemas)
"""

from decimal import Decimal

from sqlalchemy import ForeignKeyConstraint, Index
from sqlmodel import Field, SQLModel


class ProductBase(SQLModel):
    """Public product fields."""

    name: str = Field(max_length=100)
    description: str = Field(max_length=500)
    price: Decimal = Field(max_digits=12, decimal_places=2)
    image_url: str | None = Field(default=None, max_length=500)
    category_id: int


class Products(ProductBase, table=True):
    """Database table for products. Every product belongs to one category."""

    __tablename__ = "products"

    __table_args__ = (
        ForeignKeyConstraint(
            ["category_id"],
            ["categories.category_id"],
            ondelete="RESTRICT",
            onupdate="CASCADE",
            name="fk_products_category_id",
        ),
        Index("idx_products_category_id", "category_id"),
        Index("idx_products_name", "name"),
    )

    product_id: int | None = Field(default=None, primary_key=True)
