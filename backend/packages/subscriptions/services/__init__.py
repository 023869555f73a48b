"""Subscription services."""

from packages.subscriptions.services.admin_service import SubscriptionAdminService
from packages.subscriptions.services.license_sync import LicenseSyncService
from packages.subscriptions.services.lifecycle_service import (
    SubscriptionLifecycleService,
    TransitionResult,
)
from packages.subscriptions.services.notification_service import NotificationService
from packages.subscriptions.services.remote_subscription_service import (
    RemoteSubscriptionService,
)
from packages.subscriptions.services.sweep_service import SweepReport, SweepService

__all__ = [
    "SubscriptionAdminService",
    "LicenseSyncService",
    "SubscriptionLifecycleService",
    "TransitionResult",
    "NotificationService",
    "RemoteSubscriptionService",
    "SweepReport",
    "SweepService",
]
