"""
Repository for subscription management.
"""

from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError

from common.core.otel_axiom_exporter import trace_span, get_logger
from common.db.base import utcnow
from common.repositories.base import BaseRepository
from packages.subscriptions.models.database.subscription import SubscriptionEntity
from packages.subscriptions.models.domain.enums import SubscriptionStatus
from packages.subscriptions.models.domain.subscription import (
    Subscription,
    SubscriptionCreateModel,
    SubscriptionUpdateModel,
)

logger = get_logger(__name__)

BLOCKING_STATUSES = [
    status.value for status in SubscriptionStatus if status.blocks_purchase()
]


class SubscriptionRepository(BaseRepository[SubscriptionEntity, Subscription]):
    """Repository for subscriptions, including the sweep selectors."""

    def __init__(self, db_session=None):
        super().__init__(SubscriptionEntity, Subscription, db_session)

    @trace_span
    async def get_by_order_item(
        self, order_id: int, order_item_id: int
    ) -> Optional[Subscription]:
        """Get the subscription created for an order line item."""
        return await self._fetch_one(
            self._select().where(
                SubscriptionEntity.order_id == order_id,
                SubscriptionEntity.order_item_id == order_item_id,
            )
        )

    @trace_span
    async def get_by_processor_id(
        self, processor_subscription_id: str
    ) -> Optional[Subscription]:
        """Get subscription by remote processor subscription id."""
        return await self._fetch_one(
            self._select().where(
                SubscriptionEntity.processor_subscription_id
                == processor_subscription_id
            )
        )

    @trace_span
    async def list_for_order(self, order_id: int) -> list[Subscription]:
        return await self._fetch_all(
            self._select()
            .where(SubscriptionEntity.order_id == order_id)
            .order_by(SubscriptionEntity.id)
        )

    @trace_span
    async def list_paginated(
        self,
        status: Optional[SubscriptionStatus] = None,
        user_id: Optional[int] = None,
        page: int = 1,
        per_page: int = 20,
    ) -> list[Subscription]:
        """List subscriptions, newest first."""
        query = self._select()
        if status is not None:
            query = query.where(SubscriptionEntity.status == status.value)
        if user_id is not None:
            query = query.where(SubscriptionEntity.user_id == user_id)
        query = (
            query.order_by(
                SubscriptionEntity.created_at.desc(), SubscriptionEntity.id.desc()
            )
            .offset((max(page, 1) - 1) * per_page)
            .limit(per_page)
        )
        return await self._fetch_all(query)

    @trace_span
    async def count(
        self,
        status: Optional[SubscriptionStatus] = None,
        user_id: Optional[int] = None,
    ) -> int:
        query = select(func.count(SubscriptionEntity.id))
        if status is not None:
            query = query.where(SubscriptionEntity.status == status.value)
        if user_id is not None:
            query = query.where(SubscriptionEntity.user_id == user_id)
        async with self._get_session() as session:
            result = await session.execute(query)
            return result.scalar_one()

    @trace_span
    async def has_blocking_subscription(self, user_id: int, product_id: int) -> bool:
        """Check if the user already holds a subscription that blocks a repurchase."""
        query = select(func.count(SubscriptionEntity.id)).where(
            SubscriptionEntity.user_id == user_id,
            SubscriptionEntity.product_id == product_id,
            SubscriptionEntity.status.in_(BLOCKING_STATUSES),
        )
        async with self._get_session() as session:
            result = await session.execute(query)
            return result.scalar_one() > 0

    # Sweep selectors

    @trace_span
    async def find_missed_renewals(self, now: datetime) -> list[Subscription]:
        """Active, locally-renewed subscriptions whose payment date has passed."""
        return await self._fetch_all(
            self._select().where(
                SubscriptionEntity.status == SubscriptionStatus.ACTIVE.value,
                SubscriptionEntity.processor_subscription_id.is_(None),
                SubscriptionEntity.next_payment < now,
            )
        )

    @trace_span
    async def find_expired_trials(self, now: datetime) -> list[Subscription]:
        """Trials without a remote subscription whose trial has ended."""
        return await self._fetch_all(
            self._select().where(
                SubscriptionEntity.status == SubscriptionStatus.TRIALING.value,
                SubscriptionEntity.processor_subscription_id.is_(None),
                SubscriptionEntity.trial_end < now,
            )
        )

    @trace_span
    async def find_matured_cancellations(self, now: datetime) -> list[Subscription]:
        """Pending cancellations whose access window has elapsed."""
        return await self._fetch_all(
            self._select().where(
                SubscriptionEntity.status == SubscriptionStatus.PENDING_CANCEL.value,
                SubscriptionEntity.expires_at < now,
            )
        )

    @trace_span
    async def find_upcoming_renewals(
        self, now: datetime, days: int = 7
    ) -> list[Subscription]:
        """Active subscriptions renewing within the next `days` days."""
        return await self._fetch_all(
            self._select().where(
                SubscriptionEntity.status == SubscriptionStatus.ACTIVE.value,
                SubscriptionEntity.next_payment >= now,
                SubscriptionEntity.next_payment <= now + timedelta(days=days),
            )
        )

    # Writes

    @trace_span
    async def create(
        self, create_model: SubscriptionCreateModel
    ) -> Optional[Subscription]:
        """
        Insert a subscription.

        Returns None when a row already exists for the (order_id, order_item_id)
        pair, so repeated order processing is a no-op.
        """
        existing = await self.get_by_order_item(
            create_model.order_id, create_model.order_item_id
        )
        if existing is not None:
            return None

        data = create_model.model_dump(exclude_none=True)
        entity = SubscriptionEntity(**data, version=1)
        async with self._get_session() as session:
            # Unique (order_id, order_item_id) catches a concurrent insert
            try:
                async with session.begin_nested():
                    session.add(entity)
                    await session.flush()
            except IntegrityError:
                logger.info(
                    "Subscription already exists for order item",
                    extra={
                        "order_id": create_model.order_id,
                        "order_item_id": create_model.order_item_id,
                    },
                )
                return None
            await session.refresh(entity)
            return self._entity_to_domain(entity)

    @trace_span
    async def update_versioned(
        self,
        id: int,
        expected_version: int,
        update_model: SubscriptionUpdateModel,
    ) -> Optional[Subscription]:
        """
        Compare-and-set update.

        Writes only if the row still carries `expected_version`, then bumps the
        version. Returns the updated subscription, or None if another writer got
        there first.
        """
        values = update_model.model_dump(exclude_unset=True)
        values["version"] = expected_version + 1
        values["updated_at"] = utcnow()

        async with self._get_session() as session:
            result = await session.execute(
                update(SubscriptionEntity)
                .where(
                    SubscriptionEntity.id == id,
                    SubscriptionEntity.version == expected_version,
                )
                .values(values)
                .execution_options(synchronize_session=False)
            )
            await session.flush()
            if result.rowcount == 0:
                return None
        return await self.get(id)

