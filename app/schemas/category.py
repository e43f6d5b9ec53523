"""
Pydantic schemas for Category endpoints
"""

from pydantic import BaseModel, Field, HttpUrl

from app.models.category import CategoryBase
from app.schemas.base import UTCDatetime
from app.schemas.product import ProductResponse


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    image_url: HttpUrl


class CategoryUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    image_url: HttpUrl | None = None


class CategoryResponse(CategoryBase):
    category_id: int
    created_at: UTCDatetime

    model_config = {"from_attributes": True}


class CategoryDetailsResponse(CategoryResponse):
    """Category with its products embedded."""

    products: list[ProductResponse] = []
