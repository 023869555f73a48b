"""
Domain models for subscriptions.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field, field_validator

from packages.subscriptions.models.domain.enums import (
    SubscriptionStatus,
    BillingPeriod,
)


class Subscription(BaseModel):
    """
    Subscription domain model.

    One row per subscription line item of an order:
    - Billing terms fixed at order time (period, interval, amount, currency)
    - Status and lifecycle dates driven by the lifecycle engine
    - Remote linkage to the processor and the license system
    """

    id: int

    # Order linkage
    order_id: int
    order_item_id: int
    user_id: Optional[int] = None
    product_id: int
    product_name: Optional[str] = None
    customer_email: Optional[str] = None
    customer_name: Optional[str] = None

    # Remote linkage
    processor_subscription_id: Optional[str] = None
    processor_customer_id: Optional[str] = None
    license_key: Optional[str] = None

    # Billing terms
    billing_period: BillingPeriod
    billing_interval: int = 1
    amount: Decimal
    currency: str
    trial_days: int = 0

    status: SubscriptionStatus

    # Lifecycle dates
    trial_end: Optional[datetime] = None
    next_payment: Optional[datetime] = None
    last_payment: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    # Optimistic concurrency counter
    version: int = 1

    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

    def has_remote(self) -> bool:
        """Check if a processor subscription backs this record."""
        return bool(self.processor_subscription_id)

    def has_access(self) -> bool:
        return self.status.has_access()


class SubscriptionCreateModel(BaseModel):
    """Model for creating a new subscription."""

    order_id: int
    order_item_id: int
    user_id: Optional[int] = None
    product_id: int
    product_name: Optional[str] = None
    customer_email: Optional[str] = None
    customer_name: Optional[str] = None

    billing_period: str
    billing_interval: int = Field(default=1, ge=1)
    amount: Decimal = Field(ge=0)
    currency: str
    trial_days: int = Field(default=0, ge=0)

    status: str
    trial_end: Optional[datetime] = None
    next_payment: Optional[datetime] = None
    last_payment: Optional[datetime] = None

    @field_validator("billing_period", mode="before")
    @classmethod
    def validate_billing_period(cls, v):
        if isinstance(v, BillingPeriod):
            return v.value
        return v

    @field_validator("status", mode="before")
    @classmethod
    def validate_status(cls, v):
        if isinstance(v, SubscriptionStatus):
            return v.value
        return v


class SubscriptionUpdateModel(BaseModel):
    """Model for updating a subscription."""

    status: Optional[str] = None

    processor_subscription_id: Optional[str] = None
    processor_customer_id: Optional[str] = None
    license_key: Optional[str] = None

    trial_end: Optional[datetime] = None
    next_payment: Optional[datetime] = None
    last_payment: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    @field_validator("status", mode="before")
    @classmethod
    def validate_status(cls, v):
        if isinstance(v, SubscriptionStatus):
            return v.value
        return v
