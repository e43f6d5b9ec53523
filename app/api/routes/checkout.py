"""
Checkout endpoints.

``/checkout/finalize`` requires a session and the usual ownership check on
the order. ``/checkout/webhook`` is public and CSRF-exempt: Stripe calls it
without cookies and authenticates with the ``Stripe-Signature`` header.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from app.api.dependencies import DbSession
from app.api.routes.orders import get_order_or_404
from app.config import settings
from app.core.auth import CurrentIdentity
from app.core.logging import get_logger
from app.core.permissions import can_access
from app.schemas.checkout import CheckoutRequest, CheckoutResponse, WebhookResponse
from app.services.checkout import CheckoutService, WebhookError

logger = get_logger(__name__)

router = APIRouter(prefix="/checkout", tags=["checkout"])


def get_checkout_service(db: DbSession) -> CheckoutService:
    return CheckoutService(db, settings)


Checkout = Annotated[CheckoutService, Depends(get_checkout_service)]


@router.post("/finalize", response_model=CheckoutResponse)
async def finalize_checkout(
    body: CheckoutRequest, identity: CurrentIdentity, db: DbSession, checkout: Checkout
) -> CheckoutResponse:
    """Start payment for a pending order and return the Stripe Checkout URL."""
    order = await get_order_or_404(db, body.order_id)
    can_access(identity, order.user_id)
    return CheckoutResponse(url=await checkout.finalize(order))


@router.post("/webhook", response_model=WebhookResponse)
async def stripe_webhook(
    request: Request,
    checkout: Checkout,
    stripe_signature: Annotated[str | None, Header()] = None,
) -> WebhookResponse:
    """Receive Stripe events. Signature failures and bad payloads return 400."""
    payload = await request.body()
    try:
        return await checkout.handle_webhook(payload, stripe_signature)
    except WebhookError as e:
        logger.warning("webhook_rejected", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=f"Webhook Error: {e}"
        ) from e
