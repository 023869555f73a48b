"""Database models for subscriptions."""

from packages.subscriptions.models.database.subscription import SubscriptionEntity
from packages.subscriptions.models.database.order import (
    OrderNoteEntity,
    OrderMetaEntity,
    ProcessorReferenceEntity,
)

__all__ = [
    "SubscriptionEntity",
    "OrderNoteEntity",
    "OrderMetaEntity",
    "ProcessorReferenceEntity",
]
