"""
Factory for getting the processor gateway instance.
"""

from packages.subscriptions.providers.processor.interface import (
    ProcessorGatewayInterface,
)
from packages.subscriptions.providers.processor.stripe_processor import (
    StripeProcessorGateway,
)


def get_processor_gateway() -> ProcessorGatewayInterface:
    """
    Get processor gateway instance based on configuration.

    Stripe is the only processor. Without a secret key the gateway reports
    is_configured() == False and subscriptions are created locally only.
    """
    return StripeProcessorGateway()
