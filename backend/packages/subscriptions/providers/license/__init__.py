"""License gateways - license keys and addon entitlements."""

from packages.subscriptions.providers.license.interface import LicenseGatewayInterface
from packages.subscriptions.providers.license.factory import get_license_gateway

__all__ = [
    "LicenseGatewayInterface",
    "get_license_gateway",
]
