"""
Interface for license gateways.
"""

from abc import ABC, abstractmethod
from typing import Optional

from packages.subscriptions.models.domain.enums import AddonAction, LicenseStatus
from packages.subscriptions.models.domain.license import (
    License,
    LicenseCreateRequest,
    LicenseUpdateResult,
)


class LicenseGatewayInterface(ABC):
    """
    Abstract interface for the license management API.

    Mutating calls raise LicenseGatewayError on failure and
    GatewayNotConfiguredError when no API key is set.
    """

    @abstractmethod
    def is_configured(self) -> bool:
        pass

    @abstractmethod
    async def create_license(self, request: LicenseCreateRequest) -> License:
        pass

    @abstractmethod
    async def update_license(
        self,
        license_key: str,
        status: str,
        extend_days: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> LicenseUpdateResult:
        """
        Change a license's status, optionally extending its expiry.

        Args:
            license_key: License serial key
            status: active, suspended or revoked
            extend_days: Days to add to the current expiry
            reason: Free-text reason kept by the license system
        """
        pass

    @abstractmethod
    async def addon_subscription(
        self,
        action: AddonAction,
        license_key: str,
        addon_type: str,
        tier: Optional[str] = None,
    ) -> dict:
        pass

    @abstractmethod
    async def validate_license(self, license_key: str) -> LicenseStatus:
        """Return the license's status; never raises (UNKNOWN on failure)."""
        pass
