"""
In-process event bus for subscription lifecycle events.

The lifecycle engine publishes; license sync and notifications subscribe.
Handlers run in registration order, awaited one after another. Delivery is
best effort: no persistence, no replay.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List

from common.core.otel_axiom_exporter import trace_span, get_logger

logger = get_logger(__name__)


class SubscriptionEvent(str, Enum):
    """Lifecycle event names."""

    CREATED = "subscription_created"
    RENEWED = "subscription_renewed"
    CANCELLED = "subscription_cancelled"
    EXPIRED = "subscription_expired"
    TRIAL_EXPIRED = "subscription_trial_expired"
    ENDED = "subscription_ended"
    RENEWAL_REMINDER = "subscription_renewal_reminder"
    PAYMENT_FAILED = "subscription_payment_failed"
    PAYMENT_RECEIVED = "subscription_payment_received"
    STATUS_CHANGED = "subscription_status_changed"
    TRIAL_ENDING = "subscription_trial_ending"


@dataclass
class Event:
    name: SubscriptionEvent
    subscription_id: int
    payload: Dict[str, Any] = field(default_factory=dict)


EventHandler = Callable[[Event], Awaitable[None]]


class EventBus:
    """Registry of event name -> ordered handlers."""

    def __init__(self):
        self._handlers: Dict[SubscriptionEvent, List[EventHandler]] = {}

    def subscribe(self, name: SubscriptionEvent, handler: EventHandler) -> None:
        self._handlers.setdefault(SubscriptionEvent(name), []).append(handler)

    def handlers_for(self, name: SubscriptionEvent) -> List[EventHandler]:
        return list(self._handlers.get(SubscriptionEvent(name), []))

    @trace_span
    async def publish(self, event: Event) -> None:
        """
        Deliver an event to every handler.

        A failing handler is logged and skipped; it never reaches the
        publisher, so side effects cannot undo a committed transition.
        """
        handlers = self.handlers_for(event.name)
        logger.info(
            f"Publishing {event.name.value}",
            extra={
                "event": event.name.value,
                "subscription_id": event.subscription_id,
                "handlers": len(handlers),
            },
        )
        for handler in handlers:
            try:
                await handler(event)
            except Exception as e:
                logger.error(
                    f"Event handler failed for {event.name.value}: {str(e)}",
                    extra={
                        "event": event.name.value,
                        "subscription_id": event.subscription_id,
                        "handler": getattr(handler, "__qualname__", repr(handler)),
                        "error": str(e),
                    },
                    exc_info=True,
                )
