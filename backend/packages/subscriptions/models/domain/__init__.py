"""Domain models for subscriptions."""

from packages.subscriptions.models.domain.enums import (
    SubscriptionStatus,
    BillingPeriod,
    OrderStatus,
    LicenseStatus,
    AddonAction,
)
from packages.subscriptions.models.domain.subscription import (
    Subscription,
    SubscriptionCreateModel,
    SubscriptionUpdateModel,
)
from packages.subscriptions.models.domain.order import (
    BillingAddress,
    Order,
    OrderLineItem,
    OrderNote,
    OrderMeta,
    ProcessorReference,
)
from packages.subscriptions.models.domain.license import (
    License,
    LicenseCreateRequest,
    LicenseUpdateResult,
)

__all__ = [
    # Enums
    "SubscriptionStatus",
    "BillingPeriod",
    "OrderStatus",
    "LicenseStatus",
    "AddonAction",
    # Subscription
    "Subscription",
    "SubscriptionCreateModel",
    "SubscriptionUpdateModel",
    # Orders
    "BillingAddress",
    "Order",
    "OrderLineItem",
    "OrderNote",
    "OrderMeta",
    "ProcessorReference",
    # License
    "License",
    "LicenseCreateRequest",
    "LicenseUpdateResult",
]
