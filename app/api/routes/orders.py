"""
Order endpoints.

An order's owner is its ``user_id``. Single-order routes authorize with
``can_access(identity, order.user_id)``; listing every order is admin-only.
Unit prices are copied from the products when items are set, and the total
is always computed here, never taken from the client.
"""

from collections import defaultdict
from decimal import Decimal
from typing import Annotated

from fastapi import APIRouter, HTTPException, Path, status
from sqlalchemy import delete, select

from app.api.dependencies import DbSession
from app.config import OrderStatus
from app.core.auth import CurrentIdentity
from app.core.exceptions import ForbiddenError
from app.core.logging import get_logger
from app.core.permissions import can_access, is_admin
from app.models.order import OrderItems, Orders
from app.models.product import Products
from app.models.user import Users
from app.schemas.auth import MessageResponse
from app.schemas.order import OrderCreate, OrderItemIn, OrderItemResponse, OrderResponse, OrderUpdate
from app.utils import utc_now

logger = get_logger(__name__)

router = APIRouter(prefix="/orders", tags=["orders"])

OrderId = Annotated[int, Path(gt=0, description="Order ID")]

CENTS = Decimal("0.01")


async def get_order_or_404(db: DbSession, order_id: int) -> Orders:
    result = await db.execute(
        select(Orders).where(Orders.order_id == order_id)  # type: ignore[arg-type]
    )
    order = result.scalar_one_or_none()
    if order is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    return order


async def _price_items(db: DbSession, items: list[OrderItemIn]) -> tuple[list[OrderItems], Decimal]:
    """
    Build line items priced from the current product rows.

    Repeated product ids are merged into one line.

    Raises:
        HTTPException: 404 if any product does not exist
    """
    quantities: dict[int, int] = defaultdict(int)
    for item in items:
        quantities[item.product_id] += item.quantity

    result = await db.execute(
        select(Products.product_id, Products.price).where(
            Products.product_id.in_(list(quantities))  # type: ignore[union-attr]
        )
    )
    prices = {row.product_id: row.price for row in result}

    missing = sorted(set(quantities) - set(prices))
    if missing:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Product not found: {', '.join(str(pid) for pid in missing)}",
        )

    lines: list[OrderItems] = []
    total = Decimal("0.00")
    for product_id, quantity in quantities.items():
        unit_price = Decimal(prices[product_id]).quantize(CENTS)
        lines.append(OrderItems(product_id=product_id, quantity=quantity, unit_price=unit_price))
        total += unit_price * quantity
    return lines, total.quantize(CENTS)


async def _to_response(db: DbSession, order: Orders) -> OrderResponse:
    result = await db.execute(
        select(OrderItems)
        .where(OrderItems.order_id == order.order_id)  # type: ignore[arg-type]
        .order_by(OrderItems.id)  # type: ignore[arg-type]
    )
    return OrderResponse(
        order_id=order.order_id,
        name=order.name,
        user_id=order.user_id,
        total_amount=order.total_amount,
        status=order.status,
        created_at=order.created_at,
        items=[OrderItemResponse.model_validate(i) for i in result.scalars()],
    )


@router.get("", response_model=list[OrderResponse])
async def list_orders(db: DbSession) -> list[OrderResponse]:
    """All orders (admin only)."""
    orders = (await db.execute(select(Orders).order_by(Orders.order_id))).scalars().all()  # type: ignore[arg-type]
    return [await _to_response(db, order) for order in orders]


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: OrderId, identity: CurrentIdentity, db: DbSession) -> OrderResponse:
    order = await get_order_or_404(db, order_id)
    can_access(identity, order.user_id)
    return await _to_response(db, order)


@router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def create_order(body: OrderCreate, identity: CurrentIdentity, db: DbSession) -> OrderResponse:
    """Place an order for ``body.user_id``. Users may only order for themselves."""
    can_access(identity, body.user_id)

    owner = await db.execute(
        select(Users.user_id).where(Users.user_id == body.user_id)  # type: ignore[arg-type]
    )
    if owner.first() is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    lines, total = await _price_items(db, body.items)

    order = Orders(name=body.name, user_id=body.user_id, total_amount=total)
    db.add(order)
    await db.flush()
    for line in lines:
        line.order_id = order.order_id  # type: ignore[assignment]
        db.add(line)
    await db.commit()
    await db.refresh(order)

    logger.info("order_created", order_id=order.order_id, total=str(total))
    return await _to_response(db, order)


@router.put("/{order_id}", response_model=OrderResponse)
async def update_order(
    order_id: OrderId, body: OrderUpdate, identity: CurrentIdentity, db: DbSession
) -> OrderResponse:
    """
    Rename an order, replace its items, or change its status.

    Status changes are admin-only. Items can only be replaced while the
    order is still pending.
    """
    order = await get_order_or_404(db, order_id)
    can_access(identity, order.user_id)

    if body.status is not None and body.status != order.status:
        if not is_admin(identity):
            raise ForbiddenError()
        order.status = body.status

    if body.items is not None:
        if order.status != OrderStatus.PENDING:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Only pending orders can be changed",
            )
        lines, total = await _price_items(db, body.items)
        await db.execute(
            delete(OrderItems).where(OrderItems.order_id == order_id)  # type: ignore[arg-type]
        )
        for line in lines:
            line.order_id = order_id
            db.add(line)
        order.total_amount = total

    if body.name is not None:
        order.name = body.name

    order.updated_at = utc_now()
    await db.commit()
    await db.refresh(order)

    logger.info("order_updated", order_id=order_id, status=order.status)
    return await _to_response(db, order)


@router.delete("/{order_id}", response_model=MessageResponse)
async def delete_order(order_id: OrderId, identity: CurrentIdentity, db: DbSession) -> MessageResponse:
    order = await get_order_or_404(db, order_id)
    can_access(identity, order.user_id)

    await db.execute(
        delete(OrderItems).where(OrderItems.order_id == order_id)  # type: ignore[arg-type]
    )
    await db.delete(order)
    await db.commit()

    logger.info("order_deleted", order_id=order_id)
    return MessageResponse(message="Order deleted")
