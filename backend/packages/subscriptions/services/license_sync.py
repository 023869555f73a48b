"""
Keeps licenses in the license system in step with subscriptions.

Subscribes to the lifecycle event bus. Failures are written to the order's
notes and never raised back into the publishing transition.
"""

from typing import Optional

from common.core.config import settings
from common.core.otel_axiom_exporter import trace_span, get_logger
from packages.subscriptions.billing_periods import extension_days
from packages.subscriptions.events import Event, EventBus, SubscriptionEvent
from packages.subscriptions.exceptions import GatewayError
from packages.subscriptions.models.domain.enums import AddonAction, SubscriptionStatus
from packages.subscriptions.models.domain.license import LicenseCreateRequest
from packages.subscriptions.models.domain.order import Order, OrderLineItem
from packages.subscriptions.models.domain.subscription import (
    Subscription,
    SubscriptionUpdateModel,
)
from packages.subscriptions.providers.license.interface import LicenseGatewayInterface
from packages.subscriptions.repositories.order_repository import (
    OrderMetaRepository,
    OrderNoteRepository,
)
from packages.subscriptions.repositories.subscription_repository import (
    SubscriptionRepository,
)
from packages.subscriptions.services.notification_service import NotificationService

logger = get_logger(__name__)

LICENSE_KEY_META = "license_key_{subscription_id}"


class LicenseSyncService:
    """Event subscriber driving the license gateway."""

    def __init__(
        self,
        gateway: LicenseGatewayInterface,
        notifications: Optional[NotificationService] = None,
        subscription_repo: Optional[SubscriptionRepository] = None,
        note_repo: Optional[OrderNoteRepository] = None,
        meta_repo: Optional[OrderMetaRepository] = None,
    ):
        self.gateway = gateway
        self.subscription_repo = subscription_repo or SubscriptionRepository()
        self.notifications = notifications or NotificationService(
            subscription_repo=self.subscription_repo
        )
        self.note_repo = note_repo or OrderNoteRepository()
        self.meta_repo = meta_repo or OrderMetaRepository()

    def register(self, event_bus: EventBus) -> None:
        event_bus.subscribe(SubscriptionEvent.CREATED, self.on_created)
        event_bus.subscribe(SubscriptionEvent.RENEWED, self.on_renewed)
        event_bus.subscribe(SubscriptionEvent.CANCELLED, self.on_cancelled)
        event_bus.subscribe(SubscriptionEvent.ENDED, self.on_ended)
        event_bus.subscribe(SubscriptionEvent.EXPIRED, self.on_ended)
        event_bus.subscribe(SubscriptionEvent.TRIAL_EXPIRED, self.on_ended)
        event_bus.subscribe(SubscriptionEvent.STATUS_CHANGED, self.on_status_changed)

    async def resolve_license_key(self, subscription: Subscription) -> Optional[str]:
        """License key from the subscription, else the copy kept on the order."""
        if subscription.license_key:
            return subscription.license_key
        return await self.meta_repo.get_value(
            subscription.order_id,
            LICENSE_KEY_META.format(subscription_id=subscription.id),
        )

    # Handlers

    @trace_span
    async def on_created(self, event: Event) -> None:
        order: Order = event.payload["order"]
        item: OrderLineItem = event.payload["item"]
        await self.create_license(event.subscription_id, order, item)

    @trace_span
    async def on_renewed(self, event: Event) -> None:
        subscription = await self.subscription_repo.get(event.subscription_id)
        if subscription is None:
            return
        license_key = await self.resolve_license_key(subscription)
        if not license_key:
            return
        if not self.gateway.is_configured():
            await self.note_repo.add(
                subscription.order_id,
                "License renewal skipped: API key not configured.",
            )
            return

        if event.payload.get("was_trialing"):
            await self.activate_paid_addon(subscription, license_key)

        # A manual conversion is not a payment; the first charge extends
        if event.payload.get("trial_conversion"):
            await self.set_license_status(subscription.id, "active")
            return

        await self.extend_license(subscription, license_key)

    @trace_span
    async def on_cancelled(self, event: Event) -> None:
        # Non-immediate cancellations are suspended when they end
        if event.payload.get("immediate"):
            await self.set_license_status(event.subscription_id, "suspended")

    @trace_span
    async def on_ended(self, event: Event) -> None:
        await self.set_license_status(event.subscription_id, "suspended")

    @trace_span
    async def on_status_changed(self, event: Event) -> None:
        new_status = SubscriptionStatus(event.payload["new_status"])
        if new_status == SubscriptionStatus.ACTIVE:
            await self.set_license_status(event.subscription_id, "active")
        elif new_status in (SubscriptionStatus.CANCELLED, SubscriptionStatus.EXPIRED):
            await self.set_license_status(event.subscription_id, "suspended")
        # past_due keeps the license during the grace period

    # Operations

    @trace_span
    async def create_license(
        self, subscription_id: int, order: Order, item: OrderLineItem
    ) -> Optional[str]:
        """
        Create the license for a new subscription.

        Items without a plugin slug carry no license. Trials get a license that
        expires with the trial plus the capped trial addon.
        """
        if not item.plugin_slug:
            return None

        if not self.gateway.is_configured():
            await self.note_repo.add(
                order.id, "License creation skipped: API key not configured."
            )
            return None

        subscription = await self.subscription_repo.get(subscription_id)
        if subscription is None:
            return None
        on_trial = subscription.status == SubscriptionStatus.TRIALING

        request = LicenseCreateRequest(
            email=order.customer_email or "",
            customer_name=order.customer_name or "",
            plugin_slug=item.plugin_slug,
            license_type=item.license_type or "basic",
            order_id=order.id,
            subscription_id=subscription_id,
            trial_expires=subscription.trial_end if on_trial else None,
            max_staff=item.staff_limit,
        )
        try:
            created = await self.gateway.create_license(request)
        except GatewayError as e:
            await self.note_repo.add(
                order.id, f"License creation failed: {e.describe()}"
            )
            return None

        license_key = created.serial_key
        subscription = await self.subscription_repo.update(
            subscription_id, SubscriptionUpdateModel(license_key=license_key)
        )
        await self.meta_repo.set_value(
            order.id,
            LICENSE_KEY_META.format(subscription_id=subscription_id),
            license_key,
        )
        await self.note_repo.add(
            order.id,
            f"License created for subscription #{subscription_id}: {license_key}",
        )

        if on_trial:
            await self.setup_trial_addon(subscription, license_key)

        await self.notifications.send_license_email(
            subscription, license_key, download_url=created.download_url
        )
        return license_key

    @trace_span
    async def setup_trial_addon(
        self, subscription: Subscription, license_key: Optional[str] = None
    ) -> bool:
        license_key = license_key or await self.resolve_license_key(subscription)
        if not license_key:
            return False
        addon_type = settings.license_trial_addon_type
        try:
            await self.gateway.addon_subscription(
                AddonAction.SETUP_TRIAL,
                license_key,
                addon_type,
                tier=settings.license_trial_addon_tier,
            )
        except GatewayError as e:
            await self.note_repo.add(
                subscription.order_id,
                f"Trial addon setup failed for {license_key}: {e.describe()}",
            )
            return False

        await self.note_repo.add(
            subscription.order_id,
            f"Trial addon {addon_type} set up for license {license_key}.",
        )
        return True

    @trace_span
    async def activate_paid_addon(
        self, subscription: Subscription, license_key: str
    ) -> bool:
        addon_type = settings.license_trial_addon_type
        try:
            await self.gateway.addon_subscription(
                AddonAction.ACTIVATE,
                license_key,
                addon_type,
                tier=settings.license_paid_addon_tier,
            )
        except GatewayError as e:
            await self.note_repo.add(
                subscription.order_id,
                f"Addon activation failed for {license_key}: {e.describe()}",
            )
            return False

        await self.note_repo.add(
            subscription.order_id,
            f"Addon {addon_type} upgraded to {settings.license_paid_addon_tier} "
            f"for license {license_key}.",
        )
        return True

    @trace_span
    async def extend_license(
        self,
        subscription: Subscription,
        license_key: str,
        days: Optional[int] = None,
    ) -> bool:
        """Extend by the billing period's day-equivalent and mark active."""
        if days is None:
            days = extension_days(
                subscription.billing_period, subscription.billing_interval
            )
        try:
            result = await self.gateway.update_license(
                license_key, "active", extend_days=days
            )
        except GatewayError as e:
            await self.note_repo.add(
                subscription.order_id,
                f"License renewal failed for {license_key}: {e.describe()}",
            )
            return False

        await self.note_repo.add(
            subscription.order_id,
            f"License renewed: {license_key} (extended by {days} days, "
            f"new expiry: {result.expires_at or 'unknown'})",
        )
        return True

    @trace_span
    async def set_license_status(self, subscription_id: int, status: str) -> bool:
        subscription = await self.subscription_repo.get(subscription_id)
        if subscription is None:
            return False
        license_key = await self.resolve_license_key(subscription)
        if not license_key:
            return False
        if not self.gateway.is_configured():
            logger.info(
                "License API not configured, skipping status update",
                extra={"subscription_id": subscription_id, "status": status},
            )
            return False

        try:
            await self.gateway.update_license(license_key, status)
        except GatewayError as e:
            await self.note_repo.add(
                subscription.order_id,
                f"License {license_key} could not be set to {status}: {e.describe()}",
            )
            return False

        logger.info(
            f"License {status}",
            extra={
                "subscription_id": subscription_id,
                "order_id": subscription.order_id,
                "license_status": status,
            },
        )
        return True
