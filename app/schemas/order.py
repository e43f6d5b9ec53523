"""
Pydantic schemas for Order endpoints
"""

from typing import Literal

from pydantic import BaseModel, Field

from app.schemas.base import Money, UTCDatetime

OrderStatusValue = Literal["PENDING", "COMPLETED", "CANCELED"]


class OrderItemIn(BaseModel):
    product_id: int = Field(..., gt=0)
    quantity: int = Field(default=1, ge=1, le=1000)


class OrderCreate(BaseModel):
    """New order. Prices and total are computed server-side."""

    name: str | None = Field(default=None, max_length=100)
    user_id: int = Field(..., ge=0)
    items: list[OrderItemIn] = Field(..., min_length=1)


class OrderUpdate(BaseModel):
    name: str | None = Field(default=None, max_length=100)
    items: list[OrderItemIn] | None = Field(default=None, min_length=1)
    status: OrderStatusValue | None = None


class OrderItemResponse(BaseModel):
    product_id: int
    quantity: int
    unit_price: Money

    model_config = {"from_attributes": True}


class OrderResponse(BaseModel):
    order_id: int
    name: str | None
    user_id: int
    total_amount: Money
    status: str
    created_at: UTCDatetime
    items: list[OrderItemResponse] = []
