"""
Product endpoints.

Reads are public; create, update and delete are admin-only (enforced by the
route policy table before these handlers run).
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from app.api.dependencies import DbSession, PaginationParams
from app.core.logging import get_logger
from app.models.category import Categories
from app.models.order import OrderItems
from app.models.product import Products
from app.schemas.auth import MessageResponse
from app.schemas.product import (
    ProductCreate,
    ProductListResponse,
    ProductResponse,
    ProductUpdate,
    parse_product_ids,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/products", tags=["products"])

ProductId = Annotated[int, Path(gt=0, description="Product ID")]


async def _get_product_or_404(db: DbSession, product_id: int) -> Products:
    result = await db.execute(
        select(Products).where(Products.product_id == product_id)  # type: ignore[arg-type]
    )
    product = result.scalar_one_or_none()
    if product is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    return product


async def _ensure_category_exists(db: DbSession, category_id: int) -> None:
    result = await db.execute(
        select(Categories.category_id).where(Categories.category_id == category_id)  # type: ignore[arg-type]
    )
    if result.first() is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Category not found")


async def _ensure_name_free(db: DbSession, name: str) -> None:
    result = await db.execute(
        select(Products.product_id).where(Products.name == name)  # type: ignore[arg-type]
    )
    if result.first() is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="This product with the same name already exists",
        )


@router.get("", response_model=ProductListResponse)
async def list_products(
    pagination: Annotated[PaginationParams, Depends()],
    db: DbSession,
) -> ProductListResponse:
    total = (await db.execute(select(func.count()).select_from(Products))).scalar_one()
    result = await db.execute(
        select(Products)
        .order_by(Products.product_id)  # type: ignore[arg-type]
        .offset(pagination.offset)
        .limit(pagination.limit)
    )
    return ProductListResponse(
        total=total,
        page=pagination.page,
        limit=pagination.limit,
        products=[ProductResponse.model_validate(p) for p in result.scalars()],
    )


@router.get("/search", response_model=ProductListResponse)
async def search_products(
    name: Annotated[str, Query(min_length=1, max_length=100, description="Substring of the name")],
    pagination: Annotated[PaginationParams, Depends()],
    db: DbSession,
) -> ProductListResponse:
    """Case-insensitive substring search on product names."""
    term = name.strip()
    if not term:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid product name")

    # Escape LIKE wildcards so user input matches literally
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    condition = func.lower(Products.name).like(f"%{escaped.lower()}%", escape="\\")

    total = (
        await db.execute(select(func.count()).select_from(Products).where(condition))
    ).scalar_one()
    result = await db.execute(
        select(Products)
        .where(condition)
        .order_by(Products.product_id)  # type: ignore[arg-type]
        .offset(pagination.offset)
        .limit(pagination.limit)
    )
    return ProductListResponse(
        total=total,
        page=pagination.page,
        limit=pagination.limit,
        products=[ProductResponse.model_validate(p) for p in result.scalars()],
    )


@router.get("/all", response_model=list[ProductResponse])
async def get_products_by_ids(
    ids: Annotated[str, Query(description="Comma-separated product ids, e.g. 1,2,3")],
    db: DbSession,
) -> list[Products]:
    """Fetch several products at once. Unknown ids are skipped."""
    try:
        product_ids = parse_product_ids(ids)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from None

    result = await db.execute(
        select(Products)
        .where(Products.product_id.in_(product_ids))  # type: ignore[union-attr]
        .order_by(Products.product_id)  # type: ignore[arg-type]
    )
    return list(result.scalars().all())


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(product_id: ProductId, db: DbSession) -> Products:
    return await _get_product_or_404(db, product_id)


@router.post("", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
async def create_product(body: ProductCreate, db: DbSession) -> Products:
    await _ensure_category_exists(db, body.category_id)
    await _ensure_name_free(db, body.name)

    product = Products(
        name=body.name,
        description=body.description,
        price=body.price,
        image_url=str(body.image_url) if body.image_url else None,
        category_id=body.category_id,
    )
    db.add(product)
    await db.commit()
    await db.refresh(product)

    logger.info("product_created", product_id=product.product_id)
    return product


@router.put("/{product_id}", response_model=ProductResponse)
async def update_product(product_id: ProductId, body: ProductUpdate, db: DbSession) -> Products:
    product = await _get_product_or_404(db, product_id)
    changes = body.model_dump(exclude_unset=True, exclude_none=True)

    if "category_id" in changes:
        await _ensure_category_exists(db, changes["category_id"])
    if "name" in changes and changes["name"] != product.name:
        await _ensure_name_free(db, changes["name"])
    if "image_url" in changes:
        changes["image_url"] = str(changes["image_url"])

    for field, value in changes.items():
        setattr(product, field, value)
    await db.commit()
    await db.refresh(product)

    logger.info("product_updated", product_id=product_id, fields=sorted(changes))
    return product


@router.delete("/{product_id}", response_model=MessageResponse)
async def delete_product(product_id: ProductId, db: DbSession) -> MessageResponse:
    """Delete a product that no order references."""
    product = await _get_product_or_404(db, product_id)

    ordered = await db.execute(
        select(OrderItems.id).where(OrderItems.product_id == product_id).limit(1)  # type: ignore[arg-type]
    )
    if ordered.first() is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Product is referenced by existing orders",
        )

    await db.delete(product)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Product is referenced by existing orders",
        ) from None

    logger.info("product_deleted", product_id=product_id)
    return MessageResponse(message="Product deleted")
