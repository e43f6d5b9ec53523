"""
Stripe checkout for pending orders.

``finalize`` turns a pending order into a hosted Stripe Checkout session,
priced from the unit prices captured on the order's items. The session
metadata carries the order id and the expected total in cents.

``handle_webhook`` verifies the ``Stripe-Signature`` header against the raw
body and, for a paid ``checkout.session.completed`` event, moves the order
from PENDING to COMPLETED after checking the amount Stripe charged.
"""

import asyncio
from decimal import Decimal

import stripe
from fastapi import HTTPException, status
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import OrderStatus, Settings
from app.core.logging import get_logger
from app.models.order import OrderItems, Orders
from app.models.product import Products
from app.models.user import Users
from app.schemas.checkout import (
    CHECKOUT_SESSION_COMPLETED,
    CompletedCheckoutSession,
    StripeEvent,
    WebhookResponse,
)
from app.utils import utc_now

logger = get_logger(__name__)

DEFAULT_CURRENCY = "USD"


class WebhookError(Exception):
    """A webhook delivery that must be answered with 400."""


def to_cents(amount: Decimal) -> int:
    return int((amount * 100).to_integral_value())


class CheckoutService:
    """Creates checkout sessions and applies Stripe webhook events to orders."""

    def __init__(self, db: AsyncSession, config: Settings) -> None:
        self._db = db
        self._config = config

    async def _line_items(self, order: Orders, currency: str) -> list[dict]:
        result = await self._db.execute(
            select(OrderItems.quantity, OrderItems.unit_price, Products.name)
            .join(Products, Products.product_id == OrderItems.product_id)  # type: ignore[arg-type]
            .where(OrderItems.order_id == order.order_id)  # type: ignore[arg-type]
            .order_by(OrderItems.id)  # type: ignore[arg-type]
        )
        return [
            {
                "price_data": {
                    "currency": currency,
                    "product_data": {"name": row.name},
                    "unit_amount": to_cents(Decimal(row.unit_price)),
                },
                "quantity": row.quantity,
            }
            for row in result
        ]

    async def finalize(self, order: Orders) -> str | None:
        """
        Create a Stripe Checkout session for ``order`` and return its URL.

        The caller has already authorized access to the order.

        Raises:
            HTTPException: 409 if the order is not pending, 400 if it has no
                items, 404 if its owner no longer exists, 503 if Stripe is
                not configured
        """
        if order.status != OrderStatus.PENDING:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Order is not payable")
        if not self._config.STRIPE_SECRET_KEY:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Payments are not configured",
            )

        owner = await self._db.get(Users, order.user_id)
        if owner is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
        currency = (owner.preferred_currency or DEFAULT_CURRENCY).lower()

        line_items = await self._line_items(order, currency)
        if not line_items:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Order has no items")
        expected_total_cents = sum(
            item["price_data"]["unit_amount"] * item["quantity"] for item in line_items
        )

        base_url = self._config.FRONTEND_URL.rstrip("/")
        # The Stripe client is synchronous
        session = await asyncio.to_thread(
            stripe.checkout.Session.create,
            api_key=self._config.STRIPE_SECRET_KEY,
            payment_method_types=["card"],
            line_items=line_items,
            mode="payment",
            success_url=f"{base_url}/success?orderId={order.order_id}",
            cancel_url=f"{base_url}/cart",
            metadata={
                "orderId": str(order.order_id),
                "userId": str(order.user_id),
                "expectedTotalCents": str(expected_total_cents),
                "currency": currency,
            },
        )

        logger.info(
            "checkout_session_created",
            order_id=order.order_id,
            user_id=order.user_id,
            session_id=session.id,
            expected_total_cents=expected_total_cents,
        )
        return session.url

    def _verify(self, payload: bytes, signature: str | None) -> StripeEvent:
        secret = self._config.STRIPE_WEBHOOK_SECRET
        if not secret:
            raise WebhookError("Webhook secret is not configured")
        if not signature:
            raise WebhookError("Missing Stripe-Signature header")

        try:
            body = payload.decode("utf-8")
            stripe.WebhookSignature.verify_header(
                body, signature, secret, self._config.STRIPE_WEBHOOK_TOLERANCE_SECONDS
            )
            return StripeEvent.model_validate_json(body)
        except UnicodeDecodeError as e:
            raise WebhookError("Payload is not UTF-8") from e
        except stripe.SignatureVerificationError as e:
            raise WebhookError(str(e)) from e
        except ValidationError as e:
            raise WebhookError("Invalid payload") from e

    async def handle_webhook(self, payload: bytes, signature: str | None) -> WebhookResponse:
        """
        Verify and apply one webhook delivery.

        Raises:
            WebhookError: Bad signature, malformed payload, amount mismatch,
                unknown order, or an order that can no longer be completed
        """
        event = self._verify(payload, signature)
        if event.type != CHECKOUT_SESSION_COMPLETED:
            return WebhookResponse()

        try:
            session = CompletedCheckoutSession.model_validate(event.data.object)
        except ValidationError as e:
            raise WebhookError("Invalid checkout session") from e

        if session.payment_status and session.payment_status != "paid":
            logger.info("webhook_unpaid_session", event_id=event.id, status=session.payment_status)
            return WebhookResponse(ignored=True)

        order_id = session.metadata_int("orderId")
        if order_id is None:
            return WebhookResponse()

        expected_cents = session.metadata_int("expectedTotalCents")
        if (
            expected_cents is not None
            and session.amount_total is not None
            and session.amount_total != expected_cents
        ):
            logger.warning(
                "webhook_amount_mismatch",
                order_id=order_id,
                expected_cents=expected_cents,
                amount_total=session.amount_total,
            )
            raise WebhookError("Webhook amount mismatch")

        await self.complete_order(order_id, expected_cents)
        return WebhookResponse()

    async def complete_order(self, order_id: int, expected_cents: int | None) -> None:
        """Mark a paid order COMPLETED. Repeated deliveries are no-ops."""
        order = await self._db.get(Orders, order_id)
        if order is None:
            raise WebhookError(f"Order {order_id} not found")
        if order.status == OrderStatus.COMPLETED:
            return
        if order.status != OrderStatus.PENDING:
            raise WebhookError(f"Order {order_id} is {order.status}")
        if expected_cents is not None and expected_cents != to_cents(order.total_amount):
            raise WebhookError("Webhook amount mismatch")

        order.status = OrderStatus.COMPLETED
        order.updated_at = utc_now()
        await self._db.commit()

        logger.info("order_paid", order_id=order_id)
