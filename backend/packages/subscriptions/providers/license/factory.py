"""
Factory for getting the license gateway instance.
"""

from packages.subscriptions.providers.license.interface import LicenseGatewayInterface
from packages.subscriptions.providers.license.license_api import LicenseApiGateway


def get_license_gateway() -> LicenseGatewayInterface:
    """Get the license gateway configured from settings."""
    return LicenseApiGateway()
