"""
Subscription domain exceptions.
"""

from typing import Optional

from common.core.exceptions import (
    AppException,
    ConflictError,
    NotFoundError,
    ValidationError,
)


class SubscriptionNotFoundError(NotFoundError):
    """Subscription does not exist."""

    def __init__(self, subscription_id: int):
        self.subscription_id = subscription_id
        super().__init__(f"Subscription {subscription_id} not found")


class InvalidTransitionError(ConflictError):
    """Transition not allowed from the subscription's current status."""

    def __init__(self, subscription_id: int, current_status: str, action: str):
        self.subscription_id = subscription_id
        self.current_status = current_status
        self.action = action
        super().__init__(
            f"Cannot {action} subscription {subscription_id} in status {current_status}"
        )


class ConcurrentModificationError(ConflictError):
    """Optimistic version check lost after all retries."""

    def __init__(self, subscription_id: int):
        self.subscription_id = subscription_id
        super().__init__(
            f"Subscription {subscription_id} was modified concurrently, giving up"
        )


class GatewayNotConfiguredError(AppException):
    """External gateway has no credentials configured."""

    def __init__(self, gateway: str):
        self.gateway = gateway
        super().__init__(f"{gateway} is not configured")


class GatewayError(AppException):
    """Remote call failed (network failure, timeout or non-2xx response)."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        remote_id: Optional[str] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.remote_id = remote_id
        super().__init__(message)

    def describe(self) -> str:
        """Support-facing narrative including HTTP status and remote id."""
        parts = [self.message]
        if self.status_code is not None:
            parts.append(f"HTTP {self.status_code}")
        if self.remote_id:
            parts.append(f"remote id {self.remote_id}")
        return " | ".join(parts)


class ProcessorGatewayError(GatewayError):
    """Payment processor call failed."""

    pass


class LicenseGatewayError(GatewayError):
    """License API call failed."""

    pass


class WebhookVerificationError(ValidationError):
    """Webhook signature or payload rejected."""

    pass
