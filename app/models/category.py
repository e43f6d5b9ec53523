"""
SQLModel-based Category model.

CategoryBase (shared public fields)
    ├─> Categories (database table)
    └─> CategoryCreate/CategoryResponse (API schemas, defined in app/schemas)
"""

from datetime import datetime

from sqlalchemy import DateTime, Index
from sqlmodel import Field, SQLModel

from app.utils import utc_now


class CategoryBase(SQLModel):
    """Public category fields."""

    name: str = Field(max_length=100)
    image_url: str = Field(max_length=500)


class Categories(CategoryBase, table=True):
    """Database table for product categories."""

    __tablename__ = "categories"

    __table_args__ = (Index("idx_categories_name", "name", unique=True),)

    category_id: int | None = Field(default=None, primary_key=True)

    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime())
    updated_at: datetime = Field(default_factory=utc_now, sa_type=DateTime())
