"""
Interface for payment processor gateways.

Abstracts the processor's REST API (customers, products, prices, payment
methods, subscriptions) away from the lifecycle engine.
"""

from abc import ABC, abstractmethod
from typing import Optional

from packages.subscriptions.models.domain.processor import (
    RemoteObject,
    RemoteSubscriptionRequest,
)
from packages.subscriptions.models.domain.stripe_webhooks import (
    StripeSubscriptionData,
)


class ProcessorGatewayInterface(ABC):
    """
    Abstract interface for payment processors.

    Every method raises ProcessorGatewayError on network failure, timeout or a
    non-2xx response, and GatewayNotConfiguredError without credentials.
    """

    @abstractmethod
    def is_configured(self) -> bool:
        pass

    @abstractmethod
    async def create_customer(
        self,
        email: Optional[str],
        name: Optional[str],
        address: Optional[dict] = None,
        metadata: Optional[dict] = None,
    ) -> str:
        """
        Create a customer.

        Returns:
            customer_id: Processor customer ID
        """
        pass

    @abstractmethod
    async def get_customer(self, customer_id: str) -> RemoteObject:
        pass

    @abstractmethod
    async def create_product(self, name: str, metadata: Optional[dict] = None) -> str:
        pass

    @abstractmethod
    async def get_product(self, product_id: str) -> RemoteObject:
        pass

    @abstractmethod
    async def create_price(
        self,
        product_id: str,
        unit_amount: int,
        currency: str,
        interval: str,
        interval_count: int,
    ) -> str:
        """
        Create a recurring price.

        Args:
            product_id: Processor product ID
            unit_amount: Amount in minor units (pence)
            currency: Lower-case ISO 4217 code
            interval: day, week, month or year
            interval_count: Number of intervals per billing cycle
        """
        pass

    @abstractmethod
    async def get_price(self, price_id: str) -> RemoteObject:
        pass

    @abstractmethod
    async def get_payment_method(self, payment_method_id: str) -> RemoteObject:
        pass

    @abstractmethod
    async def attach_payment_method(
        self, payment_method_id: str, customer_id: str
    ) -> None:
        pass

    @abstractmethod
    async def create_subscription(
        self, request: RemoteSubscriptionRequest
    ) -> StripeSubscriptionData:
        pass

    @abstractmethod
    async def cancel_subscription(
        self, subscription_id: str, immediately: bool = False
    ) -> StripeSubscriptionData:
        """
        Cancel a subscription.

        Args:
            subscription_id: Processor subscription ID
            immediately: Delete now instead of cancelling at period end
        """
        pass

    @abstractmethod
    async def get_subscription(self, subscription_id: str) -> StripeSubscriptionData:
        pass
