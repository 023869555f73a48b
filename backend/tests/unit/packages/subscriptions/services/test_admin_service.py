"""
Unit tests for SubscriptionAdminService.

Tests manual license actions and customer cancellation with a mocked license
gateway.
"""

import pytest
from datetime import datetime, timezone
from unittest.mock import MagicMock, call

from common.core.config import settings
from common.core.exceptions import ValidationError
from packages.subscriptions.exceptions import (
    GatewayNotConfiguredError,
    LicenseGatewayError,
    SubscriptionNotFoundError,
)
from packages.subscriptions.models.domain.enums import (
    AddonAction,
    LicenseStatus,
    SubscriptionStatus,
)
from packages.subscriptions.models.domain.subscription import SubscriptionUpdateModel


@pytest.fixture
def with_license(services):
    """Create a subscription that already holds a license key."""

    async def _with_license(create_subscription, **overrides):
        subscription = await create_subscription(**overrides)
        return await services.lifecycle.subscription_repo.update(
            subscription.id, SubscriptionUpdateModel(license_key="KEY-1")
        )

    return _with_license


async def notes_for(services, order_id):
    notes = await services.admin.get_order_notes(order_id)
    return [note.note for note in notes]


@pytest.mark.asyncio
class TestSubscriptionAdminService:
    async def test_revoke_cancels_addons_then_revokes(
        self, services, create_subscription, with_license, license_gateway, monkeypatch
    ):
        monkeypatch.setattr(
            settings, "license_addon_types", ["route_optimization", "gpt4o"]
        )
        subscription = await with_license(create_subscription)

        revoked = await services.admin.revoke_license(
            subscription.id, reason="Chargeback"
        )

        assert revoked is True
        assert license_gateway.addon_subscription.await_args_list == [
            call(AddonAction.CANCEL, "KEY-1", "route_optimization"),
            call(AddonAction.CANCEL, "KEY-1", "gpt4o"),
        ]
        license_gateway.update_license.assert_awaited_once_with(
            "KEY-1", "revoked", reason="Chargeback"
        )
        assert "License KEY-1 revoked by admin. Reason: Chargeback" in await notes_for(
            services, subscription.order_id
        )

    async def test_revoke_continues_when_addon_cancel_fails(
        self, services, create_subscription, with_license, license_gateway
    ):
        license_gateway.addon_subscription.side_effect = LicenseGatewayError(
            "Addon not found", status_code=404
        )
        subscription = await with_license(create_subscription)

        revoked = await services.admin.revoke_license(subscription.id)

        assert revoked is True
        assert (
            "License KEY-1 revoked by admin. Reason: No reason provided"
            in await notes_for(services, subscription.order_id)
        )

    async def test_reactivate_sets_license_then_subscription(
        self, services, create_subscription, with_license, license_gateway
    ):
        subscription = await with_license(
            create_subscription, status=SubscriptionStatus.CANCELLED
        )

        reactivated = await services.admin.reactivate_license(subscription.id)

        assert reactivated is True
        # Only the explicit license call; no status-changed side effect
        license_gateway.update_license.assert_awaited_once_with("KEY-1", "active")
        assert (await services.admin.get(subscription.id)).status == (
            SubscriptionStatus.ACTIVE
        )
        assert "License KEY-1 reactivated by admin." in await notes_for(
            services, subscription.order_id
        )

    async def test_reactivate_failure_leaves_subscription(
        self, services, create_subscription, with_license, license_gateway
    ):
        license_gateway.update_license.side_effect = LicenseGatewayError(
            "License not found", status_code=404, remote_id="KEY-1"
        )
        subscription = await with_license(
            create_subscription, status=SubscriptionStatus.CANCELLED
        )

        assert await services.admin.reactivate_license(subscription.id) is False
        assert (await services.admin.get(subscription.id)).status == (
            SubscriptionStatus.CANCELLED
        )

    async def test_license_actions_require_key(self, services, create_subscription):
        subscription = await create_subscription()

        with pytest.raises(ValidationError):
            await services.admin.extend_license(subscription.id)

    async def test_license_actions_require_configured_api(
        self, services, create_subscription, with_license, license_gateway
    ):
        license_gateway.is_configured = MagicMock(return_value=False)
        subscription = await with_license(create_subscription)

        with pytest.raises(GatewayNotConfiguredError):
            await services.admin.setup_trial_addon(subscription.id)

    async def test_extend_license_with_explicit_days(
        self, services, create_subscription, with_license, license_gateway
    ):
        subscription = await with_license(create_subscription)

        assert await services.admin.extend_license(subscription.id, days=14) is True
        license_gateway.update_license.assert_awaited_once_with(
            "KEY-1", "active", extend_days=14
        )

    async def test_license_status(
        self, services, create_subscription, with_license, license_gateway
    ):
        licensed = await with_license(create_subscription)
        unlicensed = await create_subscription()
        license_gateway.validate_license.return_value = LicenseStatus.SUSPENDED

        assert await services.admin.license_status(licensed.id) == (
            LicenseStatus.SUSPENDED
        )
        assert await services.admin.license_status(unlicensed.id) == (
            LicenseStatus.UNKNOWN
        )

    async def test_customer_cancel_checks_ownership(
        self, services, create_subscription
    ):
        subscription = await create_subscription(
            user_id=7, next_payment=datetime(2024, 3, 1, tzinfo=timezone.utc)
        )

        with pytest.raises(SubscriptionNotFoundError):
            await services.admin.customer_cancel(subscription.id, user_id=8)

        result = await services.admin.customer_cancel(subscription.id, user_id=7)
        assert result.after.status == SubscriptionStatus.PENDING_CANCEL

    async def test_list_subscriptions(self, services, create_subscription):
        await create_subscription(user_id=7)
        await create_subscription(user_id=8)
        await create_subscription(user_id=8, status=SubscriptionStatus.CANCELLED)

        items, total = await services.admin.list_subscriptions(user_id=8)
        cancelled, cancelled_total = await services.admin.list_subscriptions(
            status=SubscriptionStatus.CANCELLED
        )

        assert total == 2
        assert {s.user_id for s in items} == {8}
        assert cancelled_total == 1
        assert cancelled[0].status == SubscriptionStatus.CANCELLED
