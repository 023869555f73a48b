"""
Unit tests for RemoteSubscriptionService.

Tests processor id caching and subscription parameters with a mocked
processor gateway.
"""

import pytest
from datetime import datetime, timezone
from decimal import Decimal

from packages.subscriptions.exceptions import ProcessorGatewayError
from packages.subscriptions.models.domain.processor import RemoteObject
from packages.subscriptions.models.domain.stripe_webhooks import (
    StripeSubscriptionData,
)
from packages.subscriptions.repositories.order_repository import (
    ProcessorReferenceRepository,
)
from packages.subscriptions.services.remote_subscription_service import (
    RemoteSubscriptionService,
    to_minor_units,
)


@pytest.fixture
def remote_service(processor):
    processor.is_configured.return_value = True
    processor.create_customer.return_value = "cus_new"
    processor.create_product.return_value = "prod_new"
    processor.create_price.return_value = "price_new"
    processor.get_customer.return_value = RemoteObject(id="cus_cached")
    processor.get_product.return_value = RemoteObject(id="prod_cached")
    processor.get_price.return_value = RemoteObject(id="price_cached")
    processor.create_subscription.return_value = StripeSubscriptionData(
        id="sub_new", customer="cus_new", status="active"
    )
    return RemoteSubscriptionService(processor)


def test_to_minor_units():
    assert to_minor_units(Decimal("20.00")) == 2000
    assert to_minor_units(Decimal("9.995")) == 1000
    assert to_minor_units(Decimal("0")) == 0


@pytest.mark.asyncio
class TestRemoteSubscriptionService:
    async def test_creates_and_remembers_customer(
        self, remote_service, processor, make_order
    ):
        order = make_order()

        customer_id = await remote_service.get_or_create_customer(order)

        assert customer_id == "cus_new"
        assert (
            await remote_service.references.get_remote_id(
                ProcessorReferenceRepository.CUSTOMER, "7"
            )
            == "cus_new"
        )
        kwargs = processor.create_customer.call_args.kwargs
        assert kwargs["email"] == "jo@example.com"
        assert kwargs["metadata"] == {"user_id": "7", "order_id": str(order.id)}

    async def test_reuses_cached_customer(self, remote_service, processor, make_order):
        await remote_service.references.remember(
            ProcessorReferenceRepository.CUSTOMER, "7", "cus_cached"
        )

        customer_id = await remote_service.get_or_create_customer(make_order())

        assert customer_id == "cus_cached"
        processor.create_customer.assert_not_called()

    async def test_stale_cached_customer_is_replaced(
        self, remote_service, processor, make_order
    ):
        """A cached id unknown to the processor (e.g. after a key switch) is dropped."""
        await remote_service.references.remember(
            ProcessorReferenceRepository.CUSTOMER, "7", "cus_test_mode"
        )
        processor.get_customer.side_effect = ProcessorGatewayError(
            "No such customer", status_code=404
        )

        customer_id = await remote_service.get_or_create_customer(make_order())

        assert customer_id == "cus_new"
        assert (
            await remote_service.references.get_remote_id(
                ProcessorReferenceRepository.CUSTOMER, "7"
            )
            == "cus_new"
        )

    async def test_deleted_product_is_recreated(self, remote_service, processor):
        await remote_service.references.remember(
            ProcessorReferenceRepository.PRODUCT, "42", "prod_cached"
        )
        processor.get_product.return_value = RemoteObject(id="prod_cached", deleted=True)

        product_id = await remote_service.get_or_create_product(42, "Route Planner Pro")

        assert product_id == "prod_new"

    async def test_price_is_keyed_by_terms(
        self, remote_service, processor, create_subscription
    ):
        subscription = await create_subscription(amount=Decimal("20.00"))

        first = await remote_service.get_or_create_price(subscription)
        second = await remote_service.get_or_create_price(subscription)

        assert first == second == "price_new"
        processor.create_price.assert_awaited_once_with(
            product_id="prod_new",
            unit_amount=2000,
            currency="gbp",
            interval="month",
            interval_count=1,
        )

    async def test_create_remote_subscription_without_payment_method(
        self, remote_service, processor, make_order, create_subscription
    ):
        order = make_order()
        subscription = await create_subscription(order_id=order.id, trial_days=14)
        now = datetime(2024, 1, 31, tzinfo=timezone.utc)

        remote = await remote_service.create_remote_subscription(
            order, subscription, now
        )

        assert remote.id == "sub_new"
        params = processor.create_subscription.call_args.args[0].to_params()
        assert params["customer"] == "cus_new"
        assert params["items"] == [{"price": "price_new"}]
        assert params["trial_period_days"] == 14
        assert params["collection_method"] == "send_invoice"
        assert params["payment_behavior"] == "allow_incomplete"
        assert params["billing_cycle_anchor"] == int(
            datetime(2024, 2, 29, tzinfo=timezone.utc).timestamp()
        )
        assert params["metadata"] == {
            "order_id": str(order.id),
            "subscription_id": str(subscription.id),
            "product_id": "42",
        }

    async def test_attaches_unattached_payment_method(
        self, remote_service, processor, make_order, create_subscription
    ):
        order = make_order().model_copy(update={"payment_method_id": "pm_1"})
        subscription = await create_subscription(order_id=order.id)
        processor.get_payment_method.return_value = RemoteObject(id="pm_1")

        await remote_service.create_remote_subscription(
            order, subscription, datetime(2024, 1, 1, tzinfo=timezone.utc)
        )

        processor.attach_payment_method.assert_awaited_once_with("pm_1", "cus_new")
        params = processor.create_subscription.call_args.args[0].to_params()
        assert params["default_payment_method"] == "pm_1"
        assert "collection_method" not in params

    async def test_foreign_payment_method_is_not_used(
        self, remote_service, processor, make_order, create_subscription
    ):
        order = make_order().model_copy(update={"payment_method_id": "pm_1"})
        subscription = await create_subscription(order_id=order.id)
        processor.get_payment_method.return_value = RemoteObject(
            id="pm_1", customer="cus_someone_else"
        )

        await remote_service.create_remote_subscription(
            order, subscription, datetime(2024, 1, 1, tzinfo=timezone.utc)
        )

        processor.attach_payment_method.assert_not_called()
        params = processor.create_subscription.call_args.args[0].to_params()
        assert "default_payment_method" not in params
