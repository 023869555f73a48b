"""
Domain models for Stripe webhook payloads.

Strongly-typed Pydantic models for the processor events this service reacts to.
Unknown event types still parse so they can be acknowledged as unhandled.
"""

from typing import Optional, Any
from enum import Enum
from pydantic import BaseModel, Field


class StripeWebhookType(str, Enum):
    """Stripe webhook event types we handle."""

    # Payment
    INVOICE_PAYMENT_SUCCEEDED = "invoice.payment_succeeded"
    INVOICE_PAYMENT_FAILED = "invoice.payment_failed"

    # Subscription
    SUBSCRIPTION_UPDATED = "customer.subscription.updated"
    SUBSCRIPTION_DELETED = "customer.subscription.deleted"
    SUBSCRIPTION_TRIAL_WILL_END = "customer.subscription.trial_will_end"


class StripeSubscriptionStatus(str, Enum):
    """Stripe subscription status values."""

    INCOMPLETE = "incomplete"
    INCOMPLETE_EXPIRED = "incomplete_expired"
    TRIALING = "trialing"
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"
    UNPAID = "unpaid"
    PAUSED = "paused"


class StripeMetadata(BaseModel):
    """Stripe metadata (we store order and subscription ids here)."""

    order_id: Optional[str] = None
    subscription_id: Optional[str] = None
    product_id: Optional[str] = None


class StripeSubscriptionData(BaseModel):
    """Stripe subscription object."""

    id: str
    customer: Optional[str] = None
    status: StripeSubscriptionStatus
    current_period_start: Optional[int] = None
    current_period_end: Optional[int] = None
    cancel_at_period_end: bool = False
    canceled_at: Optional[int] = None
    ended_at: Optional[int] = None
    trial_start: Optional[int] = None
    trial_end: Optional[int] = None
    metadata: StripeMetadata = Field(default_factory=StripeMetadata)


class StripeInvoiceData(BaseModel):
    """Stripe invoice object."""

    id: str
    customer: Optional[str] = None
    subscription: Optional[str] = None
    status: Optional[str] = None
    billing_reason: Optional[str] = None
    amount_due: int = 0
    amount_paid: int = 0
    currency: Optional[str] = None
    hosted_invoice_url: Optional[str] = None
    attempt_count: int = 0
    next_payment_attempt: Optional[int] = None


class StripeEventData(BaseModel):
    """Stripe event data wrapper."""

    object: dict[str, Any]  # The actual object (subscription, invoice, ...)


class StripeWebhookPayload(BaseModel):
    """Stripe webhook envelope. `type` stays a string so unknown events parse."""

    id: str
    type: str
    data: StripeEventData
    created: Optional[int] = None
    livemode: bool = False

    def known_type(self) -> Optional[StripeWebhookType]:
        try:
            return StripeWebhookType(self.type)
        except ValueError:
            return None
