"""
Unit tests for the HTTP license gateway.

Requests are served by httpx.MockTransport; no network access.
"""

import json
import httpx
import pytest

from packages.subscriptions.exceptions import (
    GatewayNotConfiguredError,
    LicenseGatewayError,
)
from packages.subscriptions.models.domain.enums import AddonAction, LicenseStatus
from packages.subscriptions.models.domain.license import LicenseCreateRequest

BASE_URL = "https://licenses.example.com/api/"


def gateway_for(handler, api_key="lic_key"):
    from packages.subscriptions.providers.license.license_api import LicenseApiGateway

    return LicenseApiGateway(
        base_url=BASE_URL, api_key=api_key, transport=httpx.MockTransport(handler)
    )


def create_request(**overrides):
    data = {
        "email": "jo@example.com",
        "customer_name": "Jo Bloggs",
        "plugin_slug": "route-planner",
        "order_id": 1001,
        "subscription_id": 5,
        "max_staff": 5,
    }
    data.update(overrides)
    return LicenseCreateRequest(**data)


@pytest.mark.asyncio
class TestLicenseApiGateway:
    async def test_create_license(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["api_key"] = request.headers.get("X-API-Key")
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={
                    "success": True,
                    "license": {"serial_key": "PRO-1", "status": "active"},
                    "download_url": "https://example.com/dl.zip",
                },
            )

        created = await gateway_for(handler).create_license(create_request())

        assert created.serial_key == "PRO-1"
        assert created.download_url == "https://example.com/dl.zip"
        assert seen["url"] == f"{BASE_URL}create-license.php"
        assert seen["api_key"] == "lic_key"
        assert seen["body"]["plugin_slug"] == "route-planner"
        assert seen["body"]["max_staff"] == 5
        assert "trial_expires" not in seen["body"]

    async def test_error_response_raises_with_status(self):
        def handler(request):
            return httpx.Response(
                403, json={"success": False, "error": "Invalid API key"}
            )

        with pytest.raises(LicenseGatewayError) as exc_info:
            await gateway_for(handler).update_license("PRO-1", "suspended")

        assert exc_info.value.status_code == 403
        assert exc_info.value.describe() == (
            "Invalid API key | HTTP 403 | remote id PRO-1"
        )

    async def test_success_false_on_200_raises(self):
        def handler(request):
            return httpx.Response(200, json={"success": False, "message": "Nope"})

        with pytest.raises(LicenseGatewayError, match="Nope"):
            await gateway_for(handler).addon_subscription(
                AddonAction.CANCEL, "PRO-1", "gpt4o"
            )

    async def test_network_failure_raises(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(LicenseGatewayError):
            await gateway_for(handler).update_license("PRO-1", "active", extend_days=30)

    async def test_missing_serial_key_raises(self):
        def handler(request):
            return httpx.Response(200, json={"success": True, "license": {}})

        with pytest.raises(LicenseGatewayError):
            await gateway_for(handler).create_license(create_request())

    async def test_update_license_body(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={
                    "success": True,
                    "license": {"status": "active", "expires_at": "2025-01-01"},
                },
            )

        result = await gateway_for(handler).update_license(
            "PRO-1", "active", extend_days=30
        )

        assert seen["body"] == {
            "license_key": "PRO-1",
            "status": "active",
            "extend_days": 30,
        }
        assert result.expires_at == "2025-01-01"

    async def test_addon_body_includes_tier(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"success": True})

        await gateway_for(handler).addon_subscription(
            AddonAction.SETUP_TRIAL, "PRO-1", "route_optimization", tier="trial"
        )

        assert seen["body"] == {
            "action": "setup_trial",
            "license_key": "PRO-1",
            "addon_type": "route_optimization",
            "tier": "trial",
        }

    async def test_unconfigured_gateway(self):
        gateway = gateway_for(lambda request: httpx.Response(200), api_key="")

        assert gateway.is_configured() is False
        with pytest.raises(GatewayNotConfiguredError):
            await gateway.update_license("PRO-1", "active")
        assert await gateway.validate_license("PRO-1") == LicenseStatus.UNKNOWN

    @pytest.mark.parametrize(
        "response, expected",
        [
            ({"valid": True}, LicenseStatus.ACTIVE),
            ({"valid": False, "error": "License is suspended"}, LicenseStatus.SUSPENDED),
            ({"valid": False, "error": "License has been revoked"}, LicenseStatus.REVOKED),
            ({"valid": False, "error": "License expired"}, LicenseStatus.EXPIRED),
            ({"valid": False, "error": "Unknown key"}, LicenseStatus.INACTIVE),
        ],
    )
    async def test_validate_license(self, response, expected):
        gateway = gateway_for(lambda request: httpx.Response(200, json=response))

        assert await gateway.validate_license("PRO-1") == expected

    async def test_validate_license_network_failure(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        assert await gateway_for(handler).validate_license("PRO-1") == (
            LicenseStatus.UNKNOWN
        )
