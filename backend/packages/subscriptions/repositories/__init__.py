"""Repositories for subscriptions."""

from packages.subscriptions.repositories.subscription_repository import (
    SubscriptionRepository,
)
from packages.subscriptions.repositories.order_repository import (
    OrderNoteRepository,
    OrderMetaRepository,
    ProcessorReferenceRepository,
)

__all__ = [
    "SubscriptionRepository",
    "OrderNoteRepository",
    "OrderMetaRepository",
    "ProcessorReferenceRepository",
]
