"""
Subscription enums - strongly typed enumerations for subscription and order states.
"""

from enum import Enum


class SubscriptionStatus(str, Enum):
    """
    Subscription status lifecycle.

    Flow: (pending | trialing) -> active -> past_due -> pending-cancel -> cancelled
    Terminal: cancelled, expired
    """

    PENDING = "pending"  # No remote subscription could be created yet
    TRIALING = "trialing"  # Free trial running, first charge at trial_end
    ACTIVE = "active"  # Paid and current
    PAST_DUE = "past_due"  # Payment failed, grace period keeps entitlement
    PENDING_CANCEL = "pending-cancel"  # Cancelled, usable until expires_at
    CANCELLED = "cancelled"  # Ended by cancellation
    EXPIRED = "expired"  # Ended without renewal

    def is_terminal(self) -> bool:
        """Terminal statuses only change through an admin override or purge."""
        return self in (SubscriptionStatus.CANCELLED, SubscriptionStatus.EXPIRED)

    def blocks_purchase(self) -> bool:
        """Check if this status prevents buying the same product again."""
        # past_due deliberately absent
        return self in (
            SubscriptionStatus.ACTIVE,
            SubscriptionStatus.TRIALING,
            SubscriptionStatus.PENDING_CANCEL,
        )

    def has_access(self) -> bool:
        """Check if this status allows plugin access."""
        return self in (
            SubscriptionStatus.TRIALING,
            SubscriptionStatus.ACTIVE,
            SubscriptionStatus.PAST_DUE,
            SubscriptionStatus.PENDING_CANCEL,
        )


class BillingPeriod(str, Enum):
    """Billing period units."""

    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


class OrderStatus(str, Enum):
    """Storefront order statuses relevant to subscription creation."""

    PENDING = "pending"
    ON_HOLD = "on-hold"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"
    FAILED = "failed"

    def is_paid(self) -> bool:
        return self in (OrderStatus.PROCESSING, OrderStatus.COMPLETED)


class LicenseStatus(str, Enum):
    """License statuses understood by the license API."""

    ACTIVE = "active"
    SUSPENDED = "suspended"
    REVOKED = "revoked"
    EXPIRED = "expired"
    INACTIVE = "inactive"
    UNKNOWN = "unknown"


class AddonAction(str, Enum):
    """Actions accepted by the license addon endpoint."""

    SETUP_TRIAL = "setup_trial"
    ACTIVATE = "activate"
    CANCEL = "cancel"
