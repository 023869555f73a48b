"""
API schemas for subscription operations.

Request and response models for the subscription endpoints.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field

from packages.subscriptions.models.domain.enums import (
    BillingPeriod,
    LicenseStatus,
    SubscriptionStatus,
)


# ============================================================================
# Subscription Schemas
# ============================================================================


class SubscriptionResponse(BaseModel):
    """Subscription as shown to admins."""

    id: int
    order_id: int
    order_item_id: int
    user_id: Optional[int] = None
    product_id: int
    product_name: Optional[str] = None
    customer_email: Optional[str] = None
    processor_subscription_id: Optional[str] = None
    processor_customer_id: Optional[str] = None
    license_key: Optional[str] = None
    billing_period: BillingPeriod
    billing_interval: int
    amount: Decimal
    currency: str
    status: SubscriptionStatus
    trial_end: Optional[datetime] = None
    next_payment: Optional[datetime] = None
    last_payment: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    has_access: bool = False

    class Config:
        from_attributes = True


class SubscriptionListResponse(BaseModel):
    """Page of subscriptions."""

    items: list[SubscriptionResponse]
    total: int
    page: int
    per_page: int


class CancelSubscriptionRequest(BaseModel):
    """Cancel now or at the end of the paid period."""

    immediate: bool = False
    user_id: Optional[int] = Field(
        default=None,
        description="Set for customer-initiated cancellation; enforces ownership.",
    )


class SetStatusRequest(BaseModel):
    """Administrative status override."""

    status: SubscriptionStatus


class TransitionResponse(BaseModel):
    """Outcome of a lifecycle action."""

    subscription: SubscriptionResponse
    previous_status: SubscriptionStatus
    changed: bool


# ============================================================================
# License Schemas
# ============================================================================


class ExtendLicenseRequest(BaseModel):
    """Days to add; defaults to the billing period's equivalent."""

    days: Optional[int] = Field(default=None, ge=1, le=3650)


class RevokeLicenseRequest(BaseModel):
    reason: str = ""


class LicenseActionResponse(BaseModel):
    success: bool


class LicenseStatusResponse(BaseModel):
    subscription_id: int
    license_key: Optional[str] = None
    status: LicenseStatus


# ============================================================================
# Order Schemas
# ============================================================================


class OrderProcessedResponse(BaseModel):
    """Subscriptions created for an order (empty when already processed)."""

    order_id: int
    subscriptions: list[SubscriptionResponse]


class PurchaseCheckResponse(BaseModel):
    can_purchase: bool


class OrderNoteResponse(BaseModel):
    id: int
    order_id: int
    note: str
    created_at: datetime

    class Config:
        from_attributes = True


# ============================================================================
# Sweep / Webhook Schemas
# ============================================================================


class SweepPassResponse(BaseModel):
    processed: int
    failed: int


class SweepResponse(BaseModel):
    started_at: datetime
    passes: dict[str, SweepPassResponse]


class WebhookResponse(BaseModel):
    received: bool = True
    handled: bool
