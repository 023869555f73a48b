"""
Subscription lifecycle engine.

Owns every status transition. Each transition is a read-modify-write against
the persisted row guarded by the row's version, so a late webhook cannot
overwrite a newer sweep or admin decision (and vice versa). Side effects
(licenses, emails) are published as events after the write, never performed
inline.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Iterable, Optional

from common.core.otel_axiom_exporter import trace_span, get_logger
from common.db.scoped import transaction
from packages.subscriptions.billing_periods import advance
from packages.subscriptions.events import Event, EventBus, SubscriptionEvent
from packages.subscriptions.exceptions import (
    ConcurrentModificationError,
    GatewayError,
    InvalidTransitionError,
    SubscriptionNotFoundError,
)
from packages.subscriptions.models.domain.enums import SubscriptionStatus
from packages.subscriptions.models.domain.order import Order, OrderLineItem
from packages.subscriptions.models.domain.stripe_webhooks import (
    StripeSubscriptionData,
    StripeSubscriptionStatus,
)
from packages.subscriptions.models.domain.subscription import (
    Subscription,
    SubscriptionCreateModel,
    SubscriptionUpdateModel,
)
from packages.subscriptions.providers.processor.interface import (
    ProcessorGatewayInterface,
)
from packages.subscriptions.repositories.order_repository import (
    OrderMetaRepository,
    OrderNoteRepository,
)
from packages.subscriptions.repositories.subscription_repository import (
    SubscriptionRepository,
)
from packages.subscriptions.services.remote_subscription_service import (
    RemoteSubscriptionService,
)

logger = get_logger(__name__)

# Remote status -> local status
REMOTE_STATUS_MAP = {
    StripeSubscriptionStatus.ACTIVE: SubscriptionStatus.ACTIVE,
    StripeSubscriptionStatus.TRIALING: SubscriptionStatus.ACTIVE,
    StripeSubscriptionStatus.PAST_DUE: SubscriptionStatus.PAST_DUE,
    StripeSubscriptionStatus.UNPAID: SubscriptionStatus.PAST_DUE,
    StripeSubscriptionStatus.CANCELED: SubscriptionStatus.CANCELLED,
    StripeSubscriptionStatus.INCOMPLETE: SubscriptionStatus.PENDING,
    StripeSubscriptionStatus.INCOMPLETE_EXPIRED: SubscriptionStatus.EXPIRED,
}

SUBSCRIPTIONS_CREATED_META = "subscriptions_created"
RENEWAL_INVOICE_META = "renewal_invoice_{subscription_id}"

RENEWABLE = {
    SubscriptionStatus.PENDING,
    SubscriptionStatus.TRIALING,
    SubscriptionStatus.ACTIVE,
    SubscriptionStatus.PAST_DUE,
}
CANCELLABLE = {
    SubscriptionStatus.PENDING,
    SubscriptionStatus.TRIALING,
    SubscriptionStatus.ACTIVE,
    SubscriptionStatus.PAST_DUE,
    SubscriptionStatus.PENDING_CANCEL,
}
REMOTE_DELETABLE = {
    SubscriptionStatus.PENDING,
    SubscriptionStatus.TRIALING,
    SubscriptionStatus.ACTIVE,
    SubscriptionStatus.PAST_DUE,
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class TransitionResult:
    before: Subscription
    after: Subscription
    changed: bool


Decision = Callable[[Subscription], Optional[SubscriptionUpdateModel]]


class SubscriptionLifecycleService:
    """State machine for subscriptions."""

    MAX_TRANSITION_ATTEMPTS = 3

    def __init__(
        self,
        event_bus: EventBus,
        processor: ProcessorGatewayInterface,
        subscription_repo: Optional[SubscriptionRepository] = None,
        note_repo: Optional[OrderNoteRepository] = None,
        meta_repo: Optional[OrderMetaRepository] = None,
        remote_service: Optional[RemoteSubscriptionService] = None,
    ):
        self.event_bus = event_bus
        self.processor = processor
        self.subscription_repo = subscription_repo or SubscriptionRepository()
        self.note_repo = note_repo or OrderNoteRepository()
        self.meta_repo = meta_repo or OrderMetaRepository()
        self.remote_service = remote_service or RemoteSubscriptionService(processor)

    # Helpers

    async def get(self, subscription_id: int) -> Subscription:
        subscription = await self.subscription_repo.get(subscription_id)
        if subscription is None:
            raise SubscriptionNotFoundError(subscription_id)
        return subscription

    async def add_note(self, order_id: int, note: str) -> None:
        await self.note_repo.add(order_id, note)

    async def _publish(
        self, name: SubscriptionEvent, subscription_id: int, **payload
    ) -> None:
        await self.event_bus.publish(Event(name, subscription_id, payload))

    async def _apply(
        self, subscription_id: int, action: str, decide: Decision
    ) -> TransitionResult:
        """
        Apply a transition with compare-and-set.

        `decide` sees the freshly read row and returns the update to write,
        None for a no-op, or raises InvalidTransitionError. On a version
        conflict the row is re-read and `decide` runs again.
        """
        for attempt in range(1, self.MAX_TRANSITION_ATTEMPTS + 1):
            # Read and conditional write share one connection
            async with transaction():
                current = await self.get(subscription_id)
                update = decide(current)
                if update is None:
                    return TransitionResult(current, current, changed=False)

                updated = await self.subscription_repo.update_versioned(
                    subscription_id, current.version, update
                )
            if updated is not None:
                logger.info(
                    f"Subscription {subscription_id} {action}",
                    extra={
                        "subscription_id": subscription_id,
                        "order_id": current.order_id,
                        "action": action,
                        "status_before": current.status.value,
                        "status_after": updated.status.value,
                    },
                )
                return TransitionResult(current, updated, changed=True)

            logger.warning(
                f"Version conflict on subscription {subscription_id}, re-reading",
                extra={
                    "subscription_id": subscription_id,
                    "action": action,
                    "attempt": attempt,
                },
            )
        raise ConcurrentModificationError(subscription_id)

    @staticmethod
    def _first_paid_period(subscription: Subscription) -> bool:
        """
        A trial subscription that has never been paid.

        Holds through past_due, so a retried first charge still converts.
        """
        return subscription.trial_end is not None and subscription.last_payment is None

    @staticmethod
    def _require(
        subscription: Subscription,
        allowed: Iterable[SubscriptionStatus],
        action: str,
    ) -> None:
        if subscription.status not in allowed:
            raise InvalidTransitionError(
                subscription.id, subscription.status.value, action
            )

    # Purchase guard

    @trace_span
    async def can_purchase(self, user_id: Optional[int], product_id: int) -> bool:
        """
        Check if a user may buy a subscription product.

        Only active, trialing and pending-cancel subscriptions block; a
        past_due one does not.
        """
        if not user_id:
            return True
        blocked = await self.subscription_repo.has_blocking_subscription(
            user_id, product_id
        )
        return not blocked

    # Creation

    @trace_span
    async def process_order(
        self, order: Order, now: Optional[datetime] = None
    ) -> list[Subscription]:
        """
        Create subscriptions for a paid order, once.

        Orders that are not processing/completed, carry no subscription items,
        or were already processed are skipped.
        """
        if not order.status.is_paid() or not order.subscription_items():
            return []

        flag = await self.meta_repo.get_value(order.id, SUBSCRIPTIONS_CREATED_META)
        if flag == "yes":
            logger.info(
                "Order already processed for subscriptions",
                extra={"order_id": order.id},
            )
            return []

        created = await self.create_subscriptions_for_order(order, now=now)
        await self.meta_repo.set_value(order.id, SUBSCRIPTIONS_CREATED_META, "yes")
        return created

    @trace_span
    async def create_subscriptions_for_order(
        self, order: Order, now: Optional[datetime] = None
    ) -> list[Subscription]:
        """
        Create one subscription per subscription line item.

        A remote failure leaves the local subscription in place with a note;
        an existing (order, item) subscription is skipped.
        """
        now = now or utcnow()
        created = []

        for item in order.subscription_items():
            subscription = await self._create_local(order, item, now)
            if subscription is None:
                continue

            if self.processor.is_configured():
                subscription = await self._attach_remote(order, subscription, now)
            else:
                await self.add_note(
                    order.id,
                    "Stripe not configured - subscription created locally only "
                    "(will not auto-renew).",
                )

            await self._publish(
                SubscriptionEvent.CREATED,
                subscription.id,
                order=order,
                item=item,
            )
            await self.add_note(
                order.id, f"Subscription #{subscription.id} created for {item.name}"
            )
            created.append(subscription)

        return created

    async def _create_local(
        self, order: Order, item: OrderLineItem, now: datetime
    ) -> Optional[Subscription]:
        period = item.billing_period
        interval = item.billing_interval

        if item.trial_days > 0:
            trial_end = advance(now, "day", item.trial_days)
            status = SubscriptionStatus.TRIALING
            next_payment = trial_end
            last_payment = None
        else:
            trial_end = None
            status = SubscriptionStatus.ACTIVE
            next_payment = advance(now, period, interval)
            last_payment = now

        subscription = await self.subscription_repo.create(
            SubscriptionCreateModel(
                order_id=order.id,
                order_item_id=item.id,
                user_id=order.user_id,
                product_id=item.product_id,
                product_name=item.name,
                customer_email=order.customer_email,
                customer_name=order.customer_name,
                billing_period=period,
                billing_interval=interval,
                amount=item.subscription_price
                if item.subscription_price is not None
                else Decimal("0"),
                currency=order.currency,
                trial_days=item.trial_days,
                status=status,
                trial_end=trial_end,
                next_payment=next_payment,
                last_payment=last_payment,
            )
        )
        if subscription is None:
            logger.info(
                "Skipping existing subscription for order item",
                extra={"order_id": order.id, "order_item_id": item.id},
            )
            return None

        logger.info(
            f"Created subscription {subscription.id}",
            extra={
                "subscription_id": subscription.id,
                "order_id": order.id,
                "status": subscription.status.value,
            },
        )
        return subscription

    async def _attach_remote(
        self, order: Order, subscription: Subscription, now: datetime
    ) -> Subscription:
        try:
            remote = await self.remote_service.create_remote_subscription(
                order, subscription, now
            )
        except GatewayError as e:
            await self.add_note(
                order.id, f"Stripe subscription creation failed: {e.describe()}"
            )
            return subscription

        def decide(current: Subscription) -> SubscriptionUpdateModel:
            return SubscriptionUpdateModel(
                processor_subscription_id=remote.id,
                processor_customer_id=remote.customer,
            )

        result = await self._apply(subscription.id, "linked to remote", decide)

        next_billing = (
            datetime.fromtimestamp(remote.current_period_end, tz=timezone.utc)
            if remote.current_period_end
            else subscription.next_payment
        )
        await self.add_note(
            order.id,
            f"Stripe subscription created successfully (ID: {remote.id}). "
            f"Next billing: {next_billing:%Y-%m-%d}",
        )
        return result.after

    # Transitions

    @trace_span
    async def renew(
        self,
        subscription_id: int,
        invoice_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> TransitionResult:
        """
        Advance next_payment by one period from its previous value.

        Computing from the stored next_payment instead of the wall clock keeps
        late webhooks from drifting the schedule. An invoice already applied
        is not applied again.
        """
        now = now or utcnow()
        meta_key = RENEWAL_INVOICE_META.format(subscription_id=subscription_id)
        subscription = await self.get(subscription_id)

        if invoice_id:
            applied = await self.meta_repo.get_value(subscription.order_id, meta_key)
            if applied == invoice_id:
                logger.info(
                    "Invoice already applied",
                    extra={"subscription_id": subscription_id, "invoice_id": invoice_id},
                )
                return TransitionResult(subscription, subscription, changed=False)

        def decide(current: Subscription) -> SubscriptionUpdateModel:
            self._require(current, RENEWABLE, "renew")
            base = current.next_payment or now
            return SubscriptionUpdateModel(
                status=SubscriptionStatus.ACTIVE,
                next_payment=advance(
                    base, current.billing_period, current.billing_interval
                ),
                last_payment=now,
            )

        result = await self._apply(subscription_id, "renewed", decide)

        if invoice_id:
            await self.meta_repo.set_value(result.after.order_id, meta_key, invoice_id)

        await self._publish(
            SubscriptionEvent.RENEWED,
            subscription_id,
            was_trialing=self._first_paid_period(result.before),
            invoice_id=invoice_id,
        )
        return result

    @trace_span
    async def convert_trial(self, subscription_id: int) -> TransitionResult:
        """
        Manually convert a trial to paid.

        Publishes a trial_conversion renewal: the paid license tier is
        activated without extending the license. next_payment stays at
        trial_end so the first real charge advances it and extends the
        license exactly once.
        """

        def decide(current: Subscription) -> SubscriptionUpdateModel:
            self._require(current, {SubscriptionStatus.TRIALING}, "convert trial")
            return SubscriptionUpdateModel(status=SubscriptionStatus.ACTIVE)

        result = await self._apply(subscription_id, "converted from trial", decide)
        await self._publish(
            SubscriptionEvent.RENEWED,
            subscription_id,
            was_trialing=True,
            trial_conversion=True,
        )
        return result

    @trace_span
    async def mark_payment_failed(
        self, subscription_id: int, invoice: Optional[dict] = None
    ) -> TransitionResult:
        """Move to past_due. Entitlement is kept during the grace period."""

        def decide(current: Subscription) -> Optional[SubscriptionUpdateModel]:
            if current.status not in (
                SubscriptionStatus.ACTIVE,
                SubscriptionStatus.TRIALING,
            ):
                return None
            return SubscriptionUpdateModel(status=SubscriptionStatus.PAST_DUE)

        result = await self._apply(subscription_id, "payment failed", decide)
        # Repeated failures while past_due still notify
        if result.after.status == SubscriptionStatus.PAST_DUE:
            await self._publish(
                SubscriptionEvent.PAYMENT_FAILED, subscription_id, invoice=invoice or {}
            )
        return result

    @trace_span
    async def cancel(
        self,
        subscription_id: int,
        immediate: bool = False,
        now: Optional[datetime] = None,
    ) -> TransitionResult:
        """
        Cancel a subscription.

        Trials always cancel the remote subscription immediately; locally the
        trial still runs to trial_end unless `immediate`. Other subscriptions
        cancel remotely now or at period end, matching `immediate`.
        """
        now = now or utcnow()
        subscription = await self.get(subscription_id)
        self._require(subscription, CANCELLABLE, "cancel")

        if subscription.status == SubscriptionStatus.PENDING_CANCEL and not immediate:
            return TransitionResult(subscription, subscription, changed=False)

        if subscription.has_remote():
            remote_immediately = (
                immediate or subscription.status == SubscriptionStatus.TRIALING
            )
            await self._cancel_remote(subscription, remote_immediately)

        def decide(current: Subscription) -> Optional[SubscriptionUpdateModel]:
            self._require(current, CANCELLABLE, "cancel")
            if immediate:
                return SubscriptionUpdateModel(
                    status=SubscriptionStatus.CANCELLED,
                    cancelled_at=current.cancelled_at or now,
                    expires_at=now,
                )
            if current.status == SubscriptionStatus.PENDING_CANCEL:
                return None
            if current.status == SubscriptionStatus.TRIALING:
                expires_at = current.trial_end or current.next_payment
            else:
                expires_at = current.next_payment
            return SubscriptionUpdateModel(
                status=SubscriptionStatus.PENDING_CANCEL,
                cancelled_at=now,
                expires_at=expires_at or now,
            )

        result = await self._apply(subscription_id, "cancelled", decide)
        if result.changed:
            await self._publish(
                SubscriptionEvent.CANCELLED, subscription_id, immediate=immediate
            )
        return result

    async def _cancel_remote(self, subscription: Subscription, immediately: bool) -> None:
        remote_id = subscription.processor_subscription_id
        try:
            await self.processor.cancel_subscription(remote_id, immediately=immediately)
        except GatewayError as e:
            await self.add_note(
                subscription.order_id,
                f"Failed to cancel Stripe subscription {remote_id}: {e.describe()}",
            )
            return

        when = "immediately" if immediately else "at period end"
        await self.add_note(
            subscription.order_id,
            f"Stripe subscription {remote_id} cancelled {when}.",
        )

    @trace_span
    async def handle_remote_status(
        self,
        subscription_id: int,
        remote: StripeSubscriptionData,
        now: Optional[datetime] = None,
    ) -> TransitionResult:
        """
        Reconcile local status with the processor's subscription.

        Remote status wins while the local row is not terminal. A
        cancel-at-period-end flag maps to pending-cancel. past_due is mapped,
        never escalated: the grace period is intentional.
        """
        now = now or utcnow()
        period_end = (
            datetime.fromtimestamp(remote.current_period_end, tz=timezone.utc)
            if remote.current_period_end
            else None
        )

        def decide(current: Subscription) -> Optional[SubscriptionUpdateModel]:
            if current.status.is_terminal():
                return None

            if remote.cancel_at_period_end and remote.status not in (
                StripeSubscriptionStatus.CANCELED,
                StripeSubscriptionStatus.INCOMPLETE_EXPIRED,
            ):
                expires_at = period_end or current.next_payment or now
                if (
                    current.status == SubscriptionStatus.PENDING_CANCEL
                    and current.expires_at == expires_at
                ):
                    return None
                return SubscriptionUpdateModel(
                    status=SubscriptionStatus.PENDING_CANCEL,
                    cancelled_at=current.cancelled_at or now,
                    expires_at=expires_at,
                )

            target = REMOTE_STATUS_MAP.get(remote.status)
            if target is None or target == current.status:
                return None
            if (
                target == SubscriptionStatus.ACTIVE
                and current.status == SubscriptionStatus.TRIALING
            ):
                # Trial conversion is applied by the paid invoice
                return None

            update = SubscriptionUpdateModel(status=target)
            if target == SubscriptionStatus.CANCELLED:
                update.cancelled_at = current.cancelled_at or now
                update.expires_at = now
            elif current.status == SubscriptionStatus.PENDING_CANCEL:
                # Cancellation was undone remotely
                update.cancelled_at = None
                update.expires_at = None
            return update

        result = await self._apply(subscription_id, "status reconciled", decide)
        if result.changed:
            await self._publish(
                SubscriptionEvent.STATUS_CHANGED,
                subscription_id,
                old_status=result.before.status,
                new_status=result.after.status,
            )
        return result

    @trace_span
    async def handle_remote_deleted(
        self, subscription_id: int, now: Optional[datetime] = None
    ) -> TransitionResult:
        """
        The processor deleted the subscription: end it now.

        pending-cancel rows keep their window and mature through the sweep.
        """
        now = now or utcnow()

        def decide(current: Subscription) -> Optional[SubscriptionUpdateModel]:
            if current.status not in REMOTE_DELETABLE:
                return None
            return SubscriptionUpdateModel(
                status=SubscriptionStatus.CANCELLED,
                cancelled_at=current.cancelled_at or now,
                expires_at=now,
            )

        result = await self._apply(subscription_id, "deleted remotely", decide)
        if result.changed:
            await self._publish(SubscriptionEvent.ENDED, subscription_id)
        return result

    @trace_span
    async def expire_missed_renewal(
        self, subscription_id: int, now: Optional[datetime] = None
    ) -> TransitionResult:
        """Expire an active, locally-billed subscription past its payment date."""
        now = now or utcnow()

        def decide(current: Subscription) -> Optional[SubscriptionUpdateModel]:
            if (
                current.status != SubscriptionStatus.ACTIVE
                or current.has_remote()
                or current.next_payment is None
                or current.next_payment >= now
            ):
                return None
            return SubscriptionUpdateModel(status=SubscriptionStatus.EXPIRED)

        result = await self._apply(subscription_id, "expired", decide)
        if result.changed:
            await self._publish(SubscriptionEvent.EXPIRED, subscription_id)
        return result

    @trace_span
    async def expire_trial(
        self, subscription_id: int, now: Optional[datetime] = None
    ) -> TransitionResult:
        """Expire a trial that has no remote subscription to convert it."""
        now = now or utcnow()

        def decide(current: Subscription) -> Optional[SubscriptionUpdateModel]:
            if (
                current.status != SubscriptionStatus.TRIALING
                or current.has_remote()
                or current.trial_end is None
                or current.trial_end >= now
            ):
                return None
            return SubscriptionUpdateModel(status=SubscriptionStatus.EXPIRED)

        result = await self._apply(subscription_id, "trial expired", decide)
        if result.changed:
            await self._publish(SubscriptionEvent.TRIAL_EXPIRED, subscription_id)
        return result

    @trace_span
    async def end(
        self, subscription_id: int, now: Optional[datetime] = None
    ) -> TransitionResult:
        """Finish a pending cancellation whose window has elapsed."""
        now = now or utcnow()

        def decide(current: Subscription) -> Optional[SubscriptionUpdateModel]:
            if (
                current.status != SubscriptionStatus.PENDING_CANCEL
                or current.expires_at is None
                or current.expires_at >= now
            ):
                return None
            return SubscriptionUpdateModel(status=SubscriptionStatus.CANCELLED)

        result = await self._apply(subscription_id, "ended", decide)
        if result.changed:
            await self._publish(SubscriptionEvent.ENDED, subscription_id)
        return result

    @trace_span
    async def set_status(
        self,
        subscription_id: int,
        status: SubscriptionStatus,
        now: Optional[datetime] = None,
        notify: bool = True,
    ) -> TransitionResult:
        """
        Administrative override: any status to any status.

        Only a status-changed event is published (when `notify`).
        """
        now = now or utcnow()
        status = SubscriptionStatus(status)

        def decide(current: Subscription) -> Optional[SubscriptionUpdateModel]:
            if current.status == status:
                return None
            update = SubscriptionUpdateModel(status=status)
            if status == SubscriptionStatus.CANCELLED:
                update.cancelled_at = current.cancelled_at or now
                update.expires_at = now
            elif status == SubscriptionStatus.EXPIRED:
                update.expires_at = now
            elif status == SubscriptionStatus.PENDING_CANCEL:
                # Runs to the end of the currently paid period
                update.cancelled_at = now
                update.expires_at = current.next_payment or now
            else:
                update.cancelled_at = None
                update.expires_at = None
            return update

        result = await self._apply(subscription_id, "status overridden", decide)
        if result.changed:
            await self.add_note(
                result.after.order_id,
                f"Subscription #{subscription_id} status changed from "
                f"{result.before.status.value} to {result.after.status.value} by admin.",
            )
            if notify:
                await self._publish(
                    SubscriptionEvent.STATUS_CHANGED,
                    subscription_id,
                    old_status=result.before.status,
                    new_status=result.after.status,
                )
        return result

    @trace_span
    async def record_payment(
        self, subscription_id: int, invoice: Optional[dict] = None
    ) -> None:
        await self._publish(
            SubscriptionEvent.PAYMENT_RECEIVED, subscription_id, invoice=invoice or {}
        )

    @trace_span
    async def notify_trial_ending(
        self, subscription_id: int, trial_end: Optional[datetime] = None
    ) -> None:
        await self._publish(
            SubscriptionEvent.TRIAL_ENDING, subscription_id, trial_end=trial_end
        )

    @trace_span
    async def send_renewal_reminder(self, subscription: Subscription) -> bool:
        """
        Publish a renewal reminder once per next_payment value.

        The last reminded next_payment is stored in order meta.
        """
        if subscription.next_payment is None:
            return False
        marker = subscription.next_payment.isoformat()
        last = await self.meta_repo.get_value(
            subscription.order_id, "renewal_reminder_sent"
        )
        if last == marker:
            return False

        await self._publish(SubscriptionEvent.RENEWAL_REMINDER, subscription.id)
        await self.meta_repo.set_value(
            subscription.order_id, "renewal_reminder_sent", marker
        )
        return True

    @trace_span
    async def delete(self, subscription_id: int) -> bool:
        """Purge the row. Unconditional, bypasses the state machine."""
        subscription = await self.get(subscription_id)
        deleted = await self.subscription_repo.delete(subscription_id)
        if deleted:
            logger.info(
                f"Subscription {subscription_id} purged",
                extra={
                    "subscription_id": subscription_id,
                    "order_id": subscription.order_id,
                    "status": subscription.status.value,
                },
            )
            await self.add_note(
                subscription.order_id,
                f"Subscription #{subscription_id} deleted by admin.",
            )
        return deleted
