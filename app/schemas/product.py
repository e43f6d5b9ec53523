"""
Pydantic schemas for Product endpoints
"""

from decimal import Decimal

from pydantic import BaseModel, Field, HttpUrl

from app.schemas.base import Money

MAX_IDS_PARAM_LENGTH = 2000
MAX_IDS_PER_REQUEST = 200


class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str = Field(default="", max_length=500)
    price: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    image_url: HttpUrl | None = None
    category_id: int = Field(..., gt=0)


class ProductUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    price: Decimal | None = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    image_url: HttpUrl | None = None
    category_id: int | None = Field(default=None, gt=0)


class ProductResponse(BaseModel):
    product_id: int
    name: str
    description: str
    price: Money
    image_url: str | None = None
    category_id: int

    model_config = {"from_attributes": True}


class ProductListResponse(BaseModel):
    """Paginated product list"""

    total: int
    page: int
    limit: int
    products: list[ProductResponse]


def parse_product_ids(raw: str) -> list[int]:
    """
    Parse a comma-separated ``ids`` query value.

    Blank entries are ignored and duplicates collapsed, keeping first-seen
    order.

    Raises:
        ValueError: Too long, too many ids, or a non-positive / non-integer id
    """
    if len(raw) > MAX_IDS_PARAM_LENGTH:
        raise ValueError("ids parameter is too long")

    ids: list[int] = []
    seen: set[int] = set()
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        if not part.isdigit() or int(part) <= 0:
            raise ValueError(f"Invalid product id: {part}")
        value = int(part)
        if value not in seen:
            seen.add(value)
            ids.append(value)

    if not ids:
        raise ValueError("No product ids given")
    if len(ids) > MAX_IDS_PER_REQUEST:
        raise ValueError(f"At most {MAX_IDS_PER_REQUEST} product ids per request")
    return ids
