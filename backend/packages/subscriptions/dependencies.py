"""
Service wiring and FastAPI dependencies for subscriptions.

One event bus per process with license sync and notifications subscribed.
"""

import secrets
from dataclasses import dataclass
from functools import lru_cache
from typing import Annotated, Optional

from fastapi import Depends, Header, HTTPException, status

from common.core.config import settings
from common.core.otel_axiom_exporter import get_logger
from packages.subscriptions.events import EventBus
from packages.subscriptions.providers import (
    get_license_gateway,
    get_processor_gateway,
)
from packages.subscriptions.services.admin_service import SubscriptionAdminService
from packages.subscriptions.services.license_sync import LicenseSyncService
from packages.subscriptions.services.lifecycle_service import (
    SubscriptionLifecycleService,
)
from packages.subscriptions.services.notification_service import NotificationService
from packages.subscriptions.services.sweep_service import SweepService
from packages.subscriptions.webhooks.stripe_webhook import StripeWebhookReconciler

logger = get_logger(__name__)


@dataclass
class SubscriptionServices:
    event_bus: EventBus
    lifecycle: SubscriptionLifecycleService
    license_sync: LicenseSyncService
    notifications: NotificationService
    admin: SubscriptionAdminService
    sweep: SweepService
    webhooks: StripeWebhookReconciler


def build_services(
    processor=None, license_gateway=None, email=None
) -> SubscriptionServices:
    """Construct the service graph; gateways default to the configured ones."""
    processor = processor or get_processor_gateway()
    license_gateway = license_gateway or get_license_gateway()

    event_bus = EventBus()
    lifecycle = SubscriptionLifecycleService(event_bus, processor)
    notifications = NotificationService(email=email)
    license_sync = LicenseSyncService(license_gateway, notifications=notifications)

    license_sync.register(event_bus)
    notifications.register(event_bus)

    return SubscriptionServices(
        event_bus=event_bus,
        lifecycle=lifecycle,
        license_sync=license_sync,
        notifications=notifications,
        admin=SubscriptionAdminService(lifecycle, license_gateway, license_sync),
        sweep=SweepService(lifecycle),
        webhooks=StripeWebhookReconciler(lifecycle),
    )


@lru_cache
def get_services() -> SubscriptionServices:
    return build_services()


def get_lifecycle_service(
    services: SubscriptionServices = Depends(get_services),
) -> SubscriptionLifecycleService:
    return services.lifecycle


def get_admin_service(
    services: SubscriptionServices = Depends(get_services),
) -> SubscriptionAdminService:
    return services.admin


def get_sweep_service(
    services: SubscriptionServices = Depends(get_services),
) -> SweepService:
    return services.sweep


def get_webhook_reconciler(
    services: SubscriptionServices = Depends(get_services),
) -> StripeWebhookReconciler:
    return services.webhooks


async def require_api_key(
    x_api_key: Annotated[Optional[str], Header()] = None,
) -> None:
    """Admin and storefront calls authenticate with the shared X-API-Key."""
    expected = settings.admin_api_key
    if not expected or not x_api_key or not secrets.compare_digest(
        x_api_key.encode("utf-8"), expected.encode("utf-8")
    ):
        logger.warning("Rejected request with invalid API key")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
        )
