"""Processor gateways - remote subscriptions, customers and prices."""

from packages.subscriptions.providers.processor.interface import (
    ProcessorGatewayInterface,
)
from packages.subscriptions.providers.processor.factory import get_processor_gateway

__all__ = [
    "ProcessorGatewayInterface",
    "get_processor_gateway",
]
