"""
Creates the processor-side subscription for a local subscription.

Customer, product and price ids are cached locally and revalidated before use,
so a key switch between test and live mode transparently recreates them.
"""

from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from common.core.otel_axiom_exporter import trace_span, get_logger
from packages.subscriptions.billing_periods import advance
from packages.subscriptions.exceptions import ProcessorGatewayError
from packages.subscriptions.models.domain.order import Order
from packages.subscriptions.models.domain.processor import RemoteSubscriptionRequest
from packages.subscriptions.models.domain.stripe_webhooks import (
    StripeSubscriptionData,
)
from packages.subscriptions.models.domain.subscription import Subscription
from packages.subscriptions.providers.processor.interface import (
    ProcessorGatewayInterface,
)
from packages.subscriptions.repositories.order_repository import (
    ProcessorReferenceRepository,
)

logger = get_logger(__name__)


def to_minor_units(amount: Decimal) -> int:
    """Convert a decimal amount to minor units (pence)."""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class RemoteSubscriptionService:
    """Builds and submits processor subscriptions."""

    def __init__(
        self,
        processor: ProcessorGatewayInterface,
        references: Optional[ProcessorReferenceRepository] = None,
    ):
        self.processor = processor
        self.references = references or ProcessorReferenceRepository()

    async def _exists(self, fetch, remote_id: str) -> bool:
        try:
            remote = await fetch(remote_id)
        except ProcessorGatewayError:
            return False
        return not remote.deleted

    @trace_span
    async def get_or_create_customer(self, order: Order) -> str:
        """
        Reuse the customer remembered for the user or carried on the order,
        dropping ids the processor no longer knows; otherwise create one.
        """
        user_key = str(order.user_id) if order.user_id else None
        kind = ProcessorReferenceRepository.CUSTOMER

        if user_key:
            cached = await self.references.get_remote_id(kind, user_key)
            if cached and await self._exists(self.processor.get_customer, cached):
                return cached
            if cached:
                logger.info(
                    "Discarding stale processor customer",
                    extra={"user_id": order.user_id, "customer_id": cached},
                )
                await self.references.forget(kind, user_key)

        if order.processor_customer_id and await self._exists(
            self.processor.get_customer, order.processor_customer_id
        ):
            if user_key:
                await self.references.remember(
                    kind, user_key, order.processor_customer_id
                )
            return order.processor_customer_id

        customer_id = await self.processor.create_customer(
            email=order.customer_email,
            name=order.customer_name,
            address=order.billing_address.model_dump(),
            metadata={
                "user_id": str(order.user_id or ""),
                "order_id": str(order.id),
            },
        )
        if user_key:
            await self.references.remember(kind, user_key, customer_id)
        return customer_id

    @trace_span
    async def get_or_create_product(self, product_id: int, name: str) -> str:
        kind = ProcessorReferenceRepository.PRODUCT
        local_key = str(product_id)

        cached = await self.references.get_remote_id(kind, local_key)
        if cached and await self._exists(self.processor.get_product, cached):
            return cached
        if cached:
            await self.references.forget(kind, local_key)

        remote_id = await self.processor.create_product(
            name=name, metadata={"product_id": local_key}
        )
        await self.references.remember(kind, local_key, remote_id)
        return remote_id

    @trace_span
    async def get_or_create_price(self, subscription: Subscription) -> str:
        """Recurring price for the subscription's terms, keyed by remote product."""
        remote_product_id = await self.get_or_create_product(
            subscription.product_id,
            subscription.product_name or f"Product {subscription.product_id}",
        )
        unit_amount = to_minor_units(subscription.amount)
        currency = subscription.currency.lower()
        period = subscription.billing_period.value
        interval = subscription.billing_interval

        kind = ProcessorReferenceRepository.PRICE
        local_key = f"{remote_product_id}:{unit_amount}:{currency}:{period}:{interval}"

        cached = await self.references.get_remote_id(kind, local_key)
        if cached and await self._exists(self.processor.get_price, cached):
            return cached
        if cached:
            await self.references.forget(kind, local_key)

        price_id = await self.processor.create_price(
            product_id=remote_product_id,
            unit_amount=unit_amount,
            currency=currency,
            interval=period,
            interval_count=interval,
        )
        await self.references.remember(kind, local_key, price_id)
        return price_id

    async def _usable_payment_method(
        self, payment_method_id: Optional[str], customer_id: str
    ) -> Optional[str]:
        """Payment method id if it is (or can be) attached to the customer."""
        if not payment_method_id:
            return None
        try:
            payment_method = await self.processor.get_payment_method(payment_method_id)
            if not payment_method.customer:
                await self.processor.attach_payment_method(
                    payment_method_id, customer_id
                )
                return payment_method_id
            if payment_method.customer == customer_id:
                return payment_method_id
        except ProcessorGatewayError as e:
            logger.warning(
                f"Payment method unusable: {e.message}",
                extra={"payment_method_id": payment_method_id},
            )
        return None

    @trace_span
    async def create_remote_subscription(
        self, order: Order, subscription: Subscription, now: datetime
    ) -> StripeSubscriptionData:
        """
        Create the processor subscription.

        Raises:
            ProcessorGatewayError: any step failed
        """
        customer_id = await self.get_or_create_customer(order)
        price_id = await self.get_or_create_price(subscription)
        payment_method = await self._usable_payment_method(
            order.payment_method_id, customer_id
        )

        request = RemoteSubscriptionRequest(
            customer_id=customer_id,
            price_id=price_id,
            metadata={
                "order_id": str(order.id),
                "subscription_id": str(subscription.id),
                "product_id": str(subscription.product_id),
            },
            trial_period_days=subscription.trial_days or None,
            billing_cycle_anchor=advance(
                now, subscription.billing_period, subscription.billing_interval
            ),
            default_payment_method=payment_method,
        )
        return await self.processor.create_subscription(request)
