"""
HTTP implementation of the license gateway.
"""

from typing import Optional

import httpx

from common.core.config import settings
from common.core.constants import API_KEY_HEADER
from common.core.otel_axiom_exporter import trace_span, get_logger
from packages.subscriptions.exceptions import (
    GatewayNotConfiguredError,
    LicenseGatewayError,
)
from packages.subscriptions.models.domain.enums import AddonAction, LicenseStatus
from packages.subscriptions.models.domain.license import (
    License,
    LicenseCreateRequest,
    LicenseUpdateResult,
)
from packages.subscriptions.providers.license.interface import LicenseGatewayInterface

logger = get_logger(__name__)


class LicenseApiGateway(LicenseGatewayInterface):
    """License system client over JSON/HTTP with X-API-Key auth."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url or settings.license_api_base_url
        self.api_key = settings.license_api_key if api_key is None else api_key
        self.mutation_timeout = settings.gateway_mutation_timeout_seconds
        self.read_timeout = settings.gateway_read_timeout_seconds
        self._transport = transport

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url, timeout=timeout, transport=self._transport
        )

    async def _post(self, endpoint: str, body: dict, remote_id: Optional[str]) -> dict:
        if not self.is_configured():
            raise GatewayNotConfiguredError("License API")

        try:
            async with self._client(self.mutation_timeout) as client:
                response = await client.post(
                    endpoint,
                    json=body,
                    headers={API_KEY_HEADER: self.api_key},
                )
        except httpx.HTTPError as e:
            logger.error(
                f"License API {endpoint} request failed: {str(e)}",
                extra={"endpoint": endpoint, "remote_id": remote_id, "error": str(e)},
            )
            raise LicenseGatewayError(
                f"License API request failed: {str(e) or type(e).__name__}",
                remote_id=remote_id,
            ) from e

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.is_error or not data.get("success"):
            message = data.get("error") or data.get("message") or "Unknown error"
            logger.error(
                f"License API {endpoint} returned an error: {message}",
                extra={
                    "endpoint": endpoint,
                    "remote_id": remote_id,
                    "http_status": response.status_code,
                },
            )
            raise LicenseGatewayError(
                message, status_code=response.status_code, remote_id=remote_id
            )
        return data

    @trace_span
    async def create_license(self, request: LicenseCreateRequest) -> License:
        body = request.model_dump(mode="json", exclude_none=True)
        data = await self._post("create-license.php", body, None)

        license_data = data.get("license") or {}
        if not license_data.get("serial_key"):
            raise LicenseGatewayError(
                data.get("error") or "License API returned no serial key"
            )

        logger.info(
            "License created",
            extra={
                "subscription_id": request.subscription_id,
                "order_id": request.order_id,
                "plugin_slug": request.plugin_slug,
            },
        )
        return License.model_validate(
            {**license_data, "download_url": data.get("download_url")}
        )

    @trace_span
    async def update_license(
        self,
        license_key: str,
        status: str,
        extend_days: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> LicenseUpdateResult:
        body = {"license_key": license_key, "status": status}
        if extend_days is not None:
            body["extend_days"] = extend_days
        if reason is not None:
            body["reason"] = reason

        data = await self._post("update-license.php", body, license_key)
        license_data = data.get("license") or {}

        logger.info(
            "License updated",
            extra={
                "license_key": license_key,
                "status": status,
                "extend_days": extend_days,
            },
        )
        return LicenseUpdateResult(
            license_key=license_key,
            status=license_data.get("status") or status,
            expires_at=license_data.get("expires_at"),
        )

    @trace_span
    async def addon_subscription(
        self,
        action: AddonAction,
        license_key: str,
        addon_type: str,
        tier: Optional[str] = None,
    ) -> dict:
        body = {
            "action": AddonAction(action).value,
            "license_key": license_key,
            "addon_type": addon_type,
        }
        if tier is not None:
            body["tier"] = tier

        data = await self._post("addon-subscription.php", body, license_key)
        logger.info(
            "License addon updated",
            extra={
                "license_key": license_key,
                "addon_type": addon_type,
                "action": body["action"],
                "tier": tier,
            },
        )
        return data

    @trace_span
    async def validate_license(self, license_key: str) -> LicenseStatus:
        """
        Check a license through the public validate endpoint.

        The endpoint reports invalid licenses through its error text, which is
        mapped onto a status.
        """
        if not self.is_configured():
            return LicenseStatus.UNKNOWN

        try:
            async with self._client(self.read_timeout) as client:
                response = await client.post(
                    "validate.php", json={"license_key": license_key}
                )
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(
                f"License validation failed: {str(e)}",
                extra={"license_key": license_key, "error": str(e)},
            )
            return LicenseStatus.UNKNOWN

        if data.get("valid"):
            return LicenseStatus.ACTIVE

        error = str(data.get("error") or "")
        for status in (
            LicenseStatus.REVOKED,
            LicenseStatus.SUSPENDED,
            LicenseStatus.EXPIRED,
        ):
            if status.value in error:
                return status
        return LicenseStatus.INACTIVE
