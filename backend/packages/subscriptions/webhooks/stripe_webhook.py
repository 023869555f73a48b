"""
Stripe webhook handler for subscription events.

Handles events from the Stripe payment platform:
- Invoice payment succeeded / failed
- Subscription updated / deleted
- Trial will end

Unknown event types are acknowledged as unhandled so Stripe does not retry
them. Downstream failures are logged; the endpoint still acknowledges.
"""

import json
import time
from datetime import datetime, timezone
from typing import Optional

import stripe
from pydantic import ValidationError

from common.core.config import settings
from common.core.exceptions import ConflictError
from common.core.otel_axiom_exporter import trace_span, get_logger
from packages.subscriptions.exceptions import (
    SubscriptionNotFoundError,
    WebhookVerificationError,
)
from packages.subscriptions.models.domain.enums import SubscriptionStatus
from packages.subscriptions.models.domain.stripe_webhooks import (
    StripeInvoiceData,
    StripeSubscriptionData,
    StripeWebhookPayload,
    StripeWebhookType,
)
from packages.subscriptions.models.domain.subscription import Subscription
from packages.subscriptions.services.lifecycle_service import (
    SubscriptionLifecycleService,
)

logger = get_logger(__name__)


def _header_timestamp(sig_header: str) -> Optional[int]:
    for part in sig_header.split(","):
        key, _, value = part.strip().partition("=")
        if key == "t":
            try:
                return int(value)
            except ValueError:
                return None
    return None


def verify_signature(
    payload: bytes,
    sig_header: Optional[str],
    secret: str,
    tolerance: int,
    now: Optional[float] = None,
) -> None:
    """
    Verify a Stripe-Signature header.

    HMAC-SHA256 of "{t}.{payload}" against any v1 signature, constant-time.
    Timestamps further than `tolerance` seconds from now, in either
    direction, are rejected.

    Raises:
        WebhookVerificationError: header missing, malformed, stale or wrong
    """
    if not sig_header:
        raise WebhookVerificationError("Missing Stripe-Signature header")

    timestamp = _header_timestamp(sig_header)
    if timestamp is None:
        raise WebhookVerificationError("Malformed Stripe-Signature header")

    now = time.time() if now is None else now
    if abs(now - timestamp) > tolerance:
        raise WebhookVerificationError("Timestamp outside the tolerance zone")

    try:
        stripe.WebhookSignature.verify_header(
            payload.decode("utf-8"), sig_header, secret, tolerance=None
        )
    except (stripe.SignatureVerificationError, UnicodeDecodeError) as e:
        raise WebhookVerificationError(str(e)) from e


class StripeWebhookReconciler:
    """Dispatches verified Stripe events to the lifecycle engine."""

    def __init__(self, lifecycle: SubscriptionLifecycleService):
        self.lifecycle = lifecycle
        self.subscription_repo = lifecycle.subscription_repo

    def parse(self, payload_bytes: bytes, sig_header: Optional[str]) -> StripeWebhookPayload:
        """
        Parse and authenticate a webhook body.

        Verification is skipped when no signing secret is configured.

        Raises:
            WebhookVerificationError: bad JSON, bad envelope or bad signature
        """
        try:
            event = json.loads(payload_bytes)
        except ValueError as e:
            raise WebhookVerificationError("Invalid payload") from e
        if not isinstance(event, dict) or "type" not in event:
            raise WebhookVerificationError("Invalid payload")

        if settings.stripe_webhook_secret:
            verify_signature(
                payload_bytes,
                sig_header,
                settings.stripe_webhook_secret,
                settings.webhook_tolerance_seconds,
            )
        else:
            logger.warning("Stripe webhook secret not set, skipping verification")

        try:
            return StripeWebhookPayload(**event)
        except ValidationError as e:
            logger.error(
                "Invalid Stripe webhook payload",
                extra={"validation_errors": e.errors()},
            )
            raise WebhookVerificationError("Invalid payload") from e

    @trace_span
    async def handle(self, payload: StripeWebhookPayload) -> bool:
        """Route an event to its handler. Returns whether it was handled."""
        logger.info(
            f"Received Stripe webhook: {payload.type}",
            extra={
                "event_id": payload.id,
                "event_type": payload.type,
                "livemode": payload.livemode,
            },
        )

        event_type = payload.known_type()
        handlers = {
            StripeWebhookType.INVOICE_PAYMENT_SUCCEEDED: self._handle_payment_succeeded,
            StripeWebhookType.INVOICE_PAYMENT_FAILED: self._handle_payment_failed,
            StripeWebhookType.SUBSCRIPTION_UPDATED: self._handle_subscription_updated,
            StripeWebhookType.SUBSCRIPTION_DELETED: self._handle_subscription_deleted,
            StripeWebhookType.SUBSCRIPTION_TRIAL_WILL_END: self._handle_trial_will_end,
        }
        if event_type is None:
            logger.info(f"Unhandled Stripe webhook type: {payload.type}")
            return False

        try:
            return await handlers[event_type](payload.data.object)
        except ValidationError as e:
            logger.error(
                f"Invalid {payload.type} object",
                extra={"event_id": payload.id, "validation_errors": e.errors()},
            )
        except (ConflictError, SubscriptionNotFoundError) as e:
            logger.warning(
                f"Stripe webhook {payload.type} not applied: {str(e)}",
                extra={"event_id": payload.id, "error": str(e)},
            )
        return False

    async def _find(
        self, remote_id: Optional[str], metadata_id: Optional[str] = None
    ) -> Optional[Subscription]:
        """Local subscription by processor id, else by the id we put in metadata."""
        if remote_id:
            subscription = await self.subscription_repo.get_by_processor_id(remote_id)
            if subscription is not None:
                return subscription
        if metadata_id and metadata_id.isdigit():
            subscription = await self.subscription_repo.get(int(metadata_id))
            if subscription is not None and subscription.processor_subscription_id in (
                None,
                remote_id,
            ):
                return subscription
        logger.info(
            "No local subscription for Stripe subscription",
            extra={"processor_subscription_id": remote_id},
        )
        return None

    async def _handle_payment_succeeded(self, data: dict) -> bool:
        invoice = StripeInvoiceData(**data)
        if not invoice.subscription:
            return False
        subscription = await self._find(invoice.subscription)
        if subscription is None:
            return False

        # Zero-amount invoices open a trial or anchor the first period
        if invoice.amount_paid == 0 and (
            subscription.status == SubscriptionStatus.TRIALING
            or invoice.billing_reason == "subscription_create"
        ):
            logger.info(
                "Ignoring zero-amount invoice",
                extra={"subscription_id": subscription.id, "invoice_id": invoice.id},
            )
            return True

        result = await self.lifecycle.renew(subscription.id, invoice_id=invoice.id)
        if result.changed:
            await self.lifecycle.record_payment(
                subscription.id, invoice=invoice.model_dump()
            )
        return True

    async def _handle_payment_failed(self, data: dict) -> bool:
        invoice = StripeInvoiceData(**data)
        if not invoice.subscription:
            return False
        subscription = await self._find(invoice.subscription)
        if subscription is None:
            return False

        await self.lifecycle.mark_payment_failed(
            subscription.id, invoice=invoice.model_dump()
        )
        return True

    async def _handle_subscription_updated(self, data: dict) -> bool:
        remote = StripeSubscriptionData(**data)
        subscription = await self._find(remote.id, remote.metadata.subscription_id)
        if subscription is None:
            return False

        await self.lifecycle.handle_remote_status(subscription.id, remote)
        return True

    async def _handle_subscription_deleted(self, data: dict) -> bool:
        remote = StripeSubscriptionData(**data)
        subscription = await self._find(remote.id, remote.metadata.subscription_id)
        if subscription is None:
            return False

        await self.lifecycle.handle_remote_deleted(subscription.id)
        return True

    async def _handle_trial_will_end(self, data: dict) -> bool:
        remote = StripeSubscriptionData(**data)
        subscription = await self._find(remote.id, remote.metadata.subscription_id)
        if subscription is None:
            return False

        trial_end = (
            datetime.fromtimestamp(remote.trial_end, tz=timezone.utc)
            if remote.trial_end
            else subscription.trial_end
        )
        await self.lifecycle.notify_trial_ending(subscription.id, trial_end=trial_end)
        return True
