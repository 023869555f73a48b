"""
Administrative and account operations on subscriptions.

Everything the admin UI and the customer account page can trigger. Each
operation is safe to invoke more than once.
"""

from typing import Optional

from common.core.config import settings
from common.core.exceptions import ValidationError
from common.core.otel_axiom_exporter import trace_span, get_logger
from packages.subscriptions.exceptions import (
    GatewayError,
    GatewayNotConfiguredError,
    SubscriptionNotFoundError,
)
from packages.subscriptions.models.domain.enums import (
    AddonAction,
    LicenseStatus,
    SubscriptionStatus,
)
from packages.subscriptions.models.domain.order import OrderNote
from packages.subscriptions.models.domain.subscription import Subscription
from packages.subscriptions.providers.license.interface import LicenseGatewayInterface
from packages.subscriptions.services.license_sync import LicenseSyncService
from packages.subscriptions.services.lifecycle_service import (
    SubscriptionLifecycleService,
    TransitionResult,
)

logger = get_logger(__name__)


class SubscriptionAdminService:
    """Facade over the lifecycle engine and license sync for manual actions."""

    def __init__(
        self,
        lifecycle: SubscriptionLifecycleService,
        license_gateway: LicenseGatewayInterface,
        license_sync: LicenseSyncService,
    ):
        self.lifecycle = lifecycle
        self.license_gateway = license_gateway
        self.license_sync = license_sync

    async def _license_key(self, subscription: Subscription) -> str:
        license_key = await self.license_sync.resolve_license_key(subscription)
        if not license_key:
            raise ValidationError(
                f"Subscription {subscription.id} has no license key"
            )
        return license_key

    def _require_license_api(self) -> None:
        if not self.license_gateway.is_configured():
            raise GatewayNotConfiguredError("License API")

    # Listing

    @trace_span
    async def list_subscriptions(
        self,
        status: Optional[SubscriptionStatus] = None,
        user_id: Optional[int] = None,
        page: int = 1,
        per_page: int = 20,
    ) -> tuple[list[Subscription], int]:
        repo = self.lifecycle.subscription_repo
        items = await repo.list_paginated(
            status=status, user_id=user_id, page=page, per_page=per_page
        )
        total = await repo.count(status=status, user_id=user_id)
        return items, total

    async def get(self, subscription_id: int) -> Subscription:
        return await self.lifecycle.get(subscription_id)

    async def get_order_notes(self, order_id: int) -> list[OrderNote]:
        return await self.lifecycle.note_repo.list_for_order(order_id)

    # Lifecycle

    @trace_span
    async def cancel(
        self, subscription_id: int, immediate: bool = False
    ) -> TransitionResult:
        return await self.lifecycle.cancel(subscription_id, immediate=immediate)

    @trace_span
    async def customer_cancel(
        self, subscription_id: int, user_id: int
    ) -> TransitionResult:
        """Cancel at period end on behalf of the owning customer."""
        subscription = await self.lifecycle.get(subscription_id)
        if subscription.user_id != user_id:
            # Do not reveal other customers' subscriptions
            raise SubscriptionNotFoundError(subscription_id)
        return await self.lifecycle.cancel(subscription_id, immediate=False)

    @trace_span
    async def delete(self, subscription_id: int) -> bool:
        return await self.lifecycle.delete(subscription_id)

    @trace_span
    async def set_status(
        self, subscription_id: int, status: SubscriptionStatus
    ) -> TransitionResult:
        return await self.lifecycle.set_status(subscription_id, status)

    @trace_span
    async def convert_trial(self, subscription_id: int) -> TransitionResult:
        return await self.lifecycle.convert_trial(subscription_id)

    # License

    @trace_span
    async def setup_trial_addon(self, subscription_id: int) -> bool:
        self._require_license_api()
        subscription = await self.lifecycle.get(subscription_id)
        license_key = await self._license_key(subscription)
        return await self.license_sync.setup_trial_addon(subscription, license_key)

    @trace_span
    async def extend_license(
        self, subscription_id: int, days: Optional[int] = None
    ) -> bool:
        """Extend by `days`, or by the billing period's day-equivalent."""
        self._require_license_api()
        subscription = await self.lifecycle.get(subscription_id)
        license_key = await self._license_key(subscription)
        return await self.license_sync.extend_license(
            subscription, license_key, days=days
        )

    @trace_span
    async def revoke_license(self, subscription_id: int, reason: str = "") -> bool:
        """
        Revoke the license after cancelling every addon on it.

        Addon cancellation failures are logged and do not stop the revoke.
        """
        self._require_license_api()
        subscription = await self.lifecycle.get(subscription_id)
        license_key = await self._license_key(subscription)

        for addon_type in settings.license_addon_types:
            try:
                await self.license_gateway.addon_subscription(
                    AddonAction.CANCEL, license_key, addon_type
                )
            except GatewayError as e:
                logger.warning(
                    f"Addon cancel failed before revoke: {e.describe()}",
                    extra={
                        "subscription_id": subscription_id,
                        "license_key": license_key,
                        "addon_type": addon_type,
                    },
                )

        try:
            await self.license_gateway.update_license(
                license_key, LicenseStatus.REVOKED.value, reason=reason
            )
        except GatewayError as e:
            await self.lifecycle.add_note(
                subscription.order_id,
                f"License {license_key} revoke failed: {e.describe()}",
            )
            return False

        await self.lifecycle.add_note(
            subscription.order_id,
            f"License {license_key} revoked by admin. "
            f"Reason: {reason or 'No reason provided'}",
        )
        return True

    @trace_span
    async def reactivate_license(self, subscription_id: int) -> bool:
        """Set the license active, then the subscription."""
        self._require_license_api()
        subscription = await self.lifecycle.get(subscription_id)
        license_key = await self._license_key(subscription)

        try:
            await self.license_gateway.update_license(
                license_key, LicenseStatus.ACTIVE.value
            )
        except GatewayError as e:
            await self.lifecycle.add_note(
                subscription.order_id,
                f"License {license_key} reactivation failed: {e.describe()}",
            )
            return False

        # License already active, no need for the status-changed side effect
        await self.lifecycle.set_status(
            subscription_id, SubscriptionStatus.ACTIVE, notify=False
        )
        await self.lifecycle.add_note(
            subscription.order_id, f"License {license_key} reactivated by admin."
        )
        return True

    @trace_span
    async def license_status(self, subscription_id: int) -> LicenseStatus:
        subscription = await self.lifecycle.get(subscription_id)
        license_key = await self.license_sync.resolve_license_key(subscription)
        if not license_key:
            return LicenseStatus.UNKNOWN
        return await self.license_gateway.validate_license(license_key)
