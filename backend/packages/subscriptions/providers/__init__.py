"""Subscription providers - abstracted external platform integrations."""

from packages.subscriptions.providers.processor.factory import get_processor_gateway
from packages.subscriptions.providers.license.factory import get_license_gateway

__all__ = [
    "get_processor_gateway",
    "get_license_gateway",
]
