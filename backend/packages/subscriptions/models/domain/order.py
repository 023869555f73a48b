"""
Domain models for storefront orders and the records attached to them.

Orders are owned by the storefront; this service receives them as payloads
and only persists notes and meta keyed by order id.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field

from packages.subscriptions.models.domain.enums import BillingPeriod, OrderStatus


class BillingAddress(BaseModel):
    """Billing address as captured at checkout."""

    line1: Optional[str] = None
    line2: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None


class OrderLineItem(BaseModel):
    """
    An order line item.

    Subscription terms are the meta stored on the item at checkout, so a later
    catalog price change never alters an existing subscription.
    """

    id: int
    product_id: int
    name: str
    is_subscription: bool = False

    subscription_price: Optional[Decimal] = Field(default=None, ge=0)
    billing_period: BillingPeriod = BillingPeriod.MONTH
    billing_interval: int = Field(default=1, ge=1)
    trial_days: int = Field(default=0, ge=0)

    # License provisioning
    plugin_slug: Optional[str] = None
    license_type: str = "basic"
    staff_limit: Optional[int] = None


class Order(BaseModel):
    """Storefront order payload."""

    id: int
    status: OrderStatus
    user_id: Optional[int] = None
    currency: str = "GBP"

    customer_email: Optional[str] = None
    customer_name: Optional[str] = None
    billing_address: BillingAddress = Field(default_factory=BillingAddress)

    # Set by the storefront's card gateway when it already knows the customer
    processor_customer_id: Optional[str] = None
    payment_method_id: Optional[str] = None

    line_items: list[OrderLineItem] = Field(default_factory=list)

    def subscription_items(self) -> list[OrderLineItem]:
        return [item for item in self.line_items if item.is_subscription]


class OrderNote(BaseModel):
    """Human-readable note appended to an order."""

    id: int
    order_id: int
    note: str
    created_at: datetime

    class Config:
        from_attributes = True


class OrderMeta(BaseModel):
    """Key/value meta attached to an order."""

    id: int
    order_id: int
    meta_key: str
    meta_value: Optional[str] = None
    updated_at: datetime

    class Config:
        from_attributes = True


class ProcessorReference(BaseModel):
    """Cached processor id for a local customer, product or price."""

    id: int
    kind: str
    local_key: str
    remote_id: str
    created_at: datetime

    class Config:
        from_attributes = True
