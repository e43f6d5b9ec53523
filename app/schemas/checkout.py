"""
Pydantic schemas for checkout endpoints and the Stripe webhook payload.

Only the parts of a Stripe event the order flow reads are modelled; every
other field is ignored.
"""

from typing import Any

from pydantic import BaseModel, Field

CHECKOUT_SESSION_COMPLETED = "checkout.session.completed"


class CheckoutRequest(BaseModel):
    order_id: int = Field(..., gt=0, description="Pending order to pay for")


class CheckoutResponse(BaseModel):
    """Hosted payment page the client redirects to."""

    url: str | None


class WebhookResponse(BaseModel):
    received: bool = True
    ignored: bool = False


class StripeEventData(BaseModel):
    object: dict[str, Any] = Field(default_factory=dict)


class StripeEvent(BaseModel):
    id: str | None = None
    type: str
    data: StripeEventData = Field(default_factory=StripeEventData)


class CompletedCheckoutSession(BaseModel):
    """``data.object`` of a ``checkout.session.completed`` event."""

    payment_status: str | None = None
    amount_total: int | None = None
    metadata: dict[str, str] | None = None

    def metadata_int(self, key: str) -> int | None:
        """Positive integer metadata value, or None when absent or malformed."""
        raw = (self.metadata or {}).get(key)
        if raw is None or not raw.isdigit():
            return None
        value = int(raw)
        return value if value > 0 else None
