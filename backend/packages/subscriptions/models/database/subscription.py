"""
Database entity for subscriptions.
"""

from sqlalchemy import Column, String, Integer, Numeric, Index, UniqueConstraint

from common.db.base import Base, BigIntegerType, UTCDateTime, utcnow


class SubscriptionEntity(Base):
    """
    Subscription database entity.

    One row per subscription line item; (order_id, order_item_id) is unique.
    `version` is bumped on every write and checked by compare-and-set updates.
    """

    __tablename__ = "process_subscriptions"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)

    # Order linkage
    order_id = Column(BigIntegerType, nullable=False, index=True)
    order_item_id = Column(BigIntegerType, nullable=False)
    user_id = Column(BigIntegerType, nullable=True, index=True)
    product_id = Column(BigIntegerType, nullable=False, index=True)

    # Order-time snapshot
    product_name = Column(String(255), nullable=True)
    customer_email = Column(String(255), nullable=True)
    customer_name = Column(String(255), nullable=True)

    # External platform IDs
    processor_subscription_id = Column(String(255), nullable=True, index=True)
    processor_customer_id = Column(String(255), nullable=True)
    license_key = Column(String(255), nullable=True)

    # Billing terms
    billing_period = Column(String(20), nullable=False)  # day, week, month, year
    billing_interval = Column(Integer, nullable=False, default=1)
    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    trial_days = Column(Integer, nullable=False, default=0)

    status = Column(
        String(20), nullable=False, index=True
    )  # pending, trialing, active, past_due, pending-cancel, cancelled, expired

    # Lifecycle dates
    trial_end = Column(UTCDateTime, nullable=True)
    next_payment = Column(UTCDateTime, nullable=True)
    last_payment = Column(UTCDateTime, nullable=True)
    cancelled_at = Column(UTCDateTime, nullable=True)
    expires_at = Column(UTCDateTime, nullable=True)

    version = Column(Integer, nullable=False, default=1)

    # Standard timestamps
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("order_id", "order_item_id", name="uq_subscription_order_item"),
        Index("idx_subscription_status_next_payment", "status", "next_payment"),
        Index("idx_subscription_user_product", "user_id", "product_id"),
    )
