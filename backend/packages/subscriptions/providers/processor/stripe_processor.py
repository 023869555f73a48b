"""
Stripe implementation of the processor gateway.
"""

from typing import Optional

import stripe

from common.core.config import settings
from common.core.otel_axiom_exporter import trace_span, get_logger
from packages.subscriptions.exceptions import (
    GatewayNotConfiguredError,
    ProcessorGatewayError,
)
from packages.subscriptions.models.domain.processor import (
    RemoteObject,
    RemoteSubscriptionRequest,
)
from packages.subscriptions.models.domain.stripe_webhooks import (
    StripeSubscriptionData,
)
from packages.subscriptions.providers.processor.interface import (
    ProcessorGatewayInterface,
)

logger = get_logger(__name__)

SUBSCRIPTION_FIELDS = (
    "customer",
    "current_period_start",
    "current_period_end",
    "canceled_at",
    "ended_at",
    "trial_start",
    "trial_end",
)


def _subscription_data(obj) -> StripeSubscriptionData:
    """Convert a Stripe subscription object to the domain model."""
    metadata = getattr(obj, "metadata", None) or {}
    return StripeSubscriptionData(
        id=obj.id,
        status=obj.status,
        cancel_at_period_end=bool(getattr(obj, "cancel_at_period_end", False)),
        metadata={key: metadata[key] for key in metadata},
        **{name: getattr(obj, name, None) for name in SUBSCRIPTION_FIELDS},
    )


def _remote_object(obj) -> RemoteObject:
    customer = getattr(obj, "customer", None)
    return RemoteObject(
        id=obj.id,
        deleted=bool(getattr(obj, "deleted", False)),
        customer=customer if isinstance(customer, str) else None,
    )


class StripeProcessorGateway(ProcessorGatewayInterface):
    """
    Stripe-based processor gateway.

    Two clients share the secret key: mutating calls get the long timeout,
    reads the short one. Network retries are disabled; a failed call is left
    to webhooks and the sweep to repair.
    """

    def __init__(
        self,
        secret_key: Optional[str] = None,
        mutation_client: Optional[stripe.StripeClient] = None,
        read_client: Optional[stripe.StripeClient] = None,
    ):
        self.secret_key = (
            settings.stripe_secret_key if secret_key is None else secret_key
        )
        self._mutation_client = mutation_client
        self._read_client = read_client

        if self.secret_key and self._mutation_client is None:
            self._mutation_client = self._build_client(
                settings.gateway_mutation_timeout_seconds
            )
        if self.secret_key and self._read_client is None:
            self._read_client = self._build_client(
                settings.gateway_read_timeout_seconds
            )

    def _build_client(self, timeout: float) -> stripe.StripeClient:
        return stripe.StripeClient(
            self.secret_key,
            stripe_version=settings.stripe_api_version,
            max_network_retries=0,
            http_client=stripe.HTTPXClient(timeout=timeout),
        )

    def is_configured(self) -> bool:
        return bool(self.secret_key)

    def _writer(self) -> stripe.StripeClient:
        if not self.is_configured():
            raise GatewayNotConfiguredError("Stripe")
        return self._mutation_client

    def _reader(self) -> stripe.StripeClient:
        if not self.is_configured():
            raise GatewayNotConfiguredError("Stripe")
        return self._read_client

    def _wrap_error(
        self, action: str, error: stripe.StripeError, remote_id: Optional[str] = None
    ) -> ProcessorGatewayError:
        message = error.user_message or str(error) or "Stripe API error"
        logger.error(
            f"Stripe {action} failed: {message}",
            extra={
                "action": action,
                "remote_id": remote_id,
                "http_status": error.http_status,
                "error": str(error),
            },
        )
        return ProcessorGatewayError(
            message, status_code=error.http_status, remote_id=remote_id
        )

    @trace_span
    async def create_customer(
        self,
        email: Optional[str],
        name: Optional[str],
        address: Optional[dict] = None,
        metadata: Optional[dict] = None,
    ) -> str:
        """Create a Stripe customer."""
        params = {
            "email": email,
            "name": name,
            "metadata": metadata or {},
        }
        if address:
            params["address"] = address
        try:
            customer = await self._writer().customers.create_async(params=params)
        except stripe.StripeError as e:
            raise self._wrap_error("create_customer", e) from e

        logger.info("Created Stripe customer", extra={"customer_id": customer.id})
        return customer.id

    @trace_span
    async def get_customer(self, customer_id: str) -> RemoteObject:
        try:
            customer = await self._reader().customers.retrieve_async(customer_id)
        except stripe.StripeError as e:
            raise self._wrap_error("get_customer", e, customer_id) from e
        return _remote_object(customer)

    @trace_span
    async def create_product(self, name: str, metadata: Optional[dict] = None) -> str:
        try:
            product = await self._writer().products.create_async(
                params={"name": name, "metadata": metadata or {}}
            )
        except stripe.StripeError as e:
            raise self._wrap_error("create_product", e) from e

        logger.info("Created Stripe product", extra={"product_id": product.id})
        return product.id

    @trace_span
    async def get_product(self, product_id: str) -> RemoteObject:
        try:
            product = await self._reader().products.retrieve_async(product_id)
        except stripe.StripeError as e:
            raise self._wrap_error("get_product", e, product_id) from e
        return _remote_object(product)

    @trace_span
    async def create_price(
        self,
        product_id: str,
        unit_amount: int,
        currency: str,
        interval: str,
        interval_count: int,
    ) -> str:
        try:
            price = await self._writer().prices.create_async(
                params={
                    "product": product_id,
                    "unit_amount": unit_amount,
                    "currency": currency.lower(),
                    "recurring": {
                        "interval": interval,
                        "interval_count": interval_count,
                    },
                }
            )
        except stripe.StripeError as e:
            raise self._wrap_error("create_price", e, product_id) from e

        logger.info(
            "Created Stripe price",
            extra={"price_id": price.id, "product_id": product_id},
        )
        return price.id

    @trace_span
    async def get_price(self, price_id: str) -> RemoteObject:
        try:
            price = await self._reader().prices.retrieve_async(price_id)
        except stripe.StripeError as e:
            raise self._wrap_error("get_price", e, price_id) from e
        return _remote_object(price)

    @trace_span
    async def get_payment_method(self, payment_method_id: str) -> RemoteObject:
        try:
            payment_method = await self._reader().payment_methods.retrieve_async(
                payment_method_id
            )
        except stripe.StripeError as e:
            raise self._wrap_error("get_payment_method", e, payment_method_id) from e
        return _remote_object(payment_method)

    @trace_span
    async def attach_payment_method(
        self, payment_method_id: str, customer_id: str
    ) -> None:
        try:
            await self._writer().payment_methods.attach_async(
                payment_method_id, params={"customer": customer_id}
            )
        except stripe.StripeError as e:
            raise self._wrap_error("attach_payment_method", e, payment_method_id) from e

    @trace_span
    async def create_subscription(
        self, request: RemoteSubscriptionRequest
    ) -> StripeSubscriptionData:
        try:
            subscription = await self._writer().subscriptions.create_async(
                params=request.to_params()
            )
        except stripe.StripeError as e:
            raise self._wrap_error("create_subscription", e, request.customer_id) from e

        logger.info(
            "Created Stripe subscription",
            extra={
                "processor_subscription_id": subscription.id,
                "customer_id": request.customer_id,
                "status": subscription.status,
            },
        )
        return _subscription_data(subscription)

    @trace_span
    async def cancel_subscription(
        self, subscription_id: str, immediately: bool = False
    ) -> StripeSubscriptionData:
        """Cancel now (DELETE) or flag cancel_at_period_end."""
        try:
            if immediately:
                subscription = await self._writer().subscriptions.cancel_async(
                    subscription_id
                )
            else:
                subscription = await self._writer().subscriptions.update_async(
                    subscription_id, params={"cancel_at_period_end": True}
                )
        except stripe.StripeError as e:
            raise self._wrap_error("cancel_subscription", e, subscription_id) from e

        logger.info(
            "Cancelled Stripe subscription",
            extra={
                "processor_subscription_id": subscription_id,
                "immediately": immediately,
            },
        )
        return _subscription_data(subscription)

    @trace_span
    async def get_subscription(self, subscription_id: str) -> StripeSubscriptionData:
        try:
            subscription = await self._reader().subscriptions.retrieve_async(
                subscription_id
            )
        except stripe.StripeError as e:
            raise self._wrap_error("get_subscription", e, subscription_id) from e
        return _subscription_data(subscription)
