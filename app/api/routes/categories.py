"""
Category endpoints.

Listing and details are public, a single category by id needs a session,
and writes are admin-only (enforced by the route policy table).
"""

from typing import Annotated

from fastapi import APIRouter, HTTPException, Path, status
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from app.api.dependencies import DbSession
from app.core.logging import get_logger
from app.models.category import Categories
from app.models.product import Products
from app.schemas.auth import MessageResponse
from app.schemas.category import (
    CategoryCreate,
    CategoryDetailsResponse,
    CategoryResponse,
    CategoryUpdate,
)
from app.schemas.product import ProductResponse
from app.utils import utc_now

logger = get_logger(__name__)

router = APIRouter(prefix="/category", tags=["categories"])

CategoryId = Annotated[int, Path(gt=0, description="Category ID")]


async def _get_category_or_404(db: DbSession, category_id: int) -> Categories:
    result = await db.execute(
        select(Categories).where(Categories.category_id == category_id)  # type: ignore[arg-type]
    )
    category = result.scalar_one_or_none()
    if category is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Category not found")
    return category


async def _ensure_name_free(db: DbSession, name: str) -> None:
    result = await db.execute(
        select(Categories.category_id).where(func.lower(Categories.name) == name.lower())  # type: ignore[arg-type]
    )
    if result.first() is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Category with this name already exists",
        )


async def _with_products(db: DbSession, categories: list[Categories]) -> list[CategoryDetailsResponse]:
    ids = [c.category_id for c in categories]
    by_category: dict[int, list[ProductResponse]] = {cid: [] for cid in ids if cid is not None}
    if by_category:
        result = await db.execute(
            select(Products)
            .where(Products.category_id.in_(list(by_category)))  # type: ignore[attr-defined]
            .order_by(Products.product_id)  # type: ignore[arg-type]
        )
        for product in result.scalars():
            by_category[product.category_id].append(ProductResponse.model_validate(product))

    return [
        CategoryDetailsResponse(
            category_id=c.category_id,
            name=c.name,
            image_url=c.image_url,
            created_at=c.created_at,
            products=by_category.get(c.category_id, []) if c.category_id is not None else [],
        )
        for c in categories
    ]


@router.get("", response_model=list[CategoryResponse])
async def list_categories(db: DbSession) -> list[Categories]:
    result = await db.execute(select(Categories).order_by(Categories.category_id))  # type: ignore[arg-type]
    return list(result.scalars().all())


@router.get("/details", response_model=list[CategoryDetailsResponse])
async def list_categories_with_products(db: DbSession) -> list[CategoryDetailsResponse]:
    """All categories, each with its products."""
    result = await db.execute(select(Categories).order_by(Categories.category_id))  # type: ignore[arg-type]
    return await _with_products(db, list(result.scalars().all()))


@router.get("/details/{category_id}", response_model=CategoryDetailsResponse)
async def get_category_with_products(
    category_id: CategoryId, db: DbSession
) -> CategoryDetailsResponse:
    category = await _get_category_or_404(db, category_id)
    return (await _with_products(db, [category]))[0]


@router.get("/{category_id}", response_model=CategoryResponse)
async def get_category(category_id: CategoryId, db: DbSession) -> Categories:
    return await _get_category_or_404(db, category_id)


@router.post("", response_model=CategoryResponse, status_code=status.HTTP_201_CREATED)
async def create_category(body: CategoryCreate, db: DbSession) -> Categories:
    await _ensure_name_free(db, body.name)

    category = Categories(name=body.name, image_url=str(body.image_url))
    db.add(category)
    await db.commit()
    await db.refresh(category)

    logger.info("category_created", category_id=category.category_id)
    return category


@router.put("/{category_id}", response_model=CategoryResponse)
async def update_category(
    category_id: CategoryId, body: CategoryUpdate, db: DbSession
) -> Categories:
    category = await _get_category_or_404(db, category_id)

    if body.name is not None and body.name.lower() != category.name.lower():
        await _ensure_name_free(db, body.name)
        category.name = body.name
    if body.image_url is not None:
        category.image_url = str(body.image_url)
    category.updated_at = utc_now()
    await db.commit()
    await db.refresh(category)

    logger.info("category_updated", category_id=category_id)
    return category


@router.delete("/{category_id}", response_model=MessageResponse)
async def delete_category(category_id: CategoryId, db: DbSession) -> MessageResponse:
    """Delete an empty category. Categories that still hold products are kept."""
    category = await _get_category_or_404(db, category_id)

    in_use = await db.execute(
        select(Products.product_id).where(Products.category_id == category_id).limit(1)  # type: ignore[arg-type]
    )
    if in_use.first() is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Category still has products",
        )

    await db.delete(category)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Category still has products",
        ) from None

    logger.info("category_deleted", category_id=category_id)
    return MessageResponse(message="Category deleted")
