"""Customer emails for subscription events."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from common.core.config import settings
from common.core.otel_axiom_exporter import trace_span, get_logger
from common.providers.email.factory import get_email
from common.providers.email.interface import EmailInterface
from packages.subscriptions.billing_periods import advance
from packages.subscriptions.events import Event, EventBus, SubscriptionEvent
from packages.subscriptions.models.domain.subscription import Subscription
from packages.subscriptions.repositories.subscription_repository import (
    SubscriptionRepository,
)

logger = get_logger(__name__)

SIGNATURE = "\n\nPro-cess Systems & Solutions"


def _format_date(value: Optional[datetime]) -> str:
    return f"{value.day} {value:%B %Y}" if value else "unknown"


def _format_amount(subscription: Subscription) -> str:
    return f"{subscription.amount:.2f} {subscription.currency}"


class NotificationService:
    """Sends plain-text emails in response to lifecycle events."""

    def __init__(
        self,
        email: Optional[EmailInterface] = None,
        subscription_repo: Optional[SubscriptionRepository] = None,
    ):
        self.email = email or get_email()
        self.subscription_repo = subscription_repo or SubscriptionRepository()

    def register(self, event_bus: EventBus) -> None:
        event_bus.subscribe(SubscriptionEvent.PAYMENT_RECEIVED, self.on_payment_received)
        event_bus.subscribe(SubscriptionEvent.PAYMENT_FAILED, self.on_payment_failed)
        event_bus.subscribe(SubscriptionEvent.TRIAL_ENDING, self.on_trial_ending)
        event_bus.subscribe(
            SubscriptionEvent.RENEWAL_REMINDER, self.on_renewal_reminder
        )

    async def _recipient(self, subscription_id: int) -> Optional[Subscription]:
        subscription = await self.subscription_repo.get(subscription_id)
        if subscription is None or not subscription.customer_email:
            logger.info(
                "No recipient for subscription email",
                extra={"subscription_id": subscription_id},
            )
            return None
        return subscription

    async def _send(self, subscription: Subscription, subject: str, body: str) -> bool:
        greeting = f"Hi {subscription.customer_name or 'there'},\n\n"
        return await self.email.send(
            subscription.customer_email, subject, greeting + body + SIGNATURE
        )

    @trace_span
    async def on_payment_received(self, event: Event) -> None:
        subscription = await self._recipient(event.subscription_id)
        if subscription is None:
            return
        invoice = event.payload.get("invoice") or {}
        url = invoice.get("hosted_invoice_url")
        amount = _format_amount(subscription)
        if invoice.get("amount_paid"):
            amount = f"{Decimal(invoice['amount_paid']) / 100:.2f} {subscription.currency}"
        body = (
            f"We received your payment of {amount} for "
            f"{subscription.product_name}.\n"
            f"Next payment: {_format_date(subscription.next_payment)}."
        )
        if url:
            body += f"\nInvoice: {url}"
        await self._send(subscription, "Payment received - thank you", body)

    @trace_span
    async def on_payment_failed(self, event: Event) -> None:
        subscription = await self._recipient(event.subscription_id)
        if subscription is None:
            return
        body = (
            f"We could not take your payment for {subscription.product_name}.\n"
            "Your subscription stays active while we retry. Please check your "
            f"payment details at {settings.account_url}"
        )
        await self._send(subscription, "Payment failed for your subscription", body)

    @trace_span
    async def on_trial_ending(self, event: Event) -> None:
        subscription = await self._recipient(event.subscription_id)
        if subscription is None:
            return
        trial_end = event.payload.get("trial_end") or subscription.trial_end
        body = (
            f"Your free trial of {subscription.product_name} ends on "
            f"{_format_date(trial_end)}.\n"
            f"After that you will be charged {_format_amount(subscription)}. "
            f"Manage your subscription at {settings.account_url}"
        )
        await self._send(subscription, "Your trial is ending soon", body)

    @trace_span
    async def on_renewal_reminder(self, event: Event) -> None:
        subscription = await self._recipient(event.subscription_id)
        if subscription is None:
            return
        body = (
            f"Your subscription to {subscription.product_name} renews on "
            f"{_format_date(subscription.next_payment)} for "
            f"{_format_amount(subscription)}.\n"
            f"Manage or cancel it at {settings.account_url}"
        )
        await self._send(subscription, "Your subscription renews soon", body)

    @trace_span
    async def send_license_email(
        self,
        subscription: Subscription,
        license_key: str,
        download_url: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> bool:
        """Email a newly issued license key with the renewal date."""
        if not subscription.customer_email:
            return False

        renewal = subscription.next_payment
        if renewal is None and now is not None:
            renewal = advance(
                now, subscription.billing_period, subscription.billing_interval
            )

        body = (
            f"Thank you for subscribing to {subscription.product_name}. "
            "Your license key is ready:\n\n"
            f"    {license_key}\n\n"
        )
        if download_url:
            body += f"Download: {download_url}\n"
        body += (
            f"Your license will automatically renew on {_format_date(renewal)}.\n"
            f"You can manage or cancel your subscription at {settings.account_url}"
        )
        return await self._send(
            subscription, f"Your {subscription.product_name} License Key", body
        )
