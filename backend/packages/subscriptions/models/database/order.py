"""
Database entities for order notes, order meta and cached processor ids.
"""

from sqlalchemy import Column, String, Text, UniqueConstraint

from common.db.base import Base, BigIntegerType, UTCDateTime, utcnow


class OrderNoteEntity(Base):
    """Append-only support notes for an order."""

    __tablename__ = "order_notes"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    order_id = Column(BigIntegerType, nullable=False, index=True)
    note = Column(Text, nullable=False)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)


class OrderMetaEntity(Base):
    """Key/value meta attached to an order."""

    __tablename__ = "order_meta"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    order_id = Column(BigIntegerType, nullable=False, index=True)
    meta_key = Column(String(255), nullable=False)
    meta_value = Column(Text, nullable=True)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("order_id", "meta_key", name="uq_order_meta_key"),
    )


class ProcessorReferenceEntity(Base):
    """
    Remote processor ids remembered for local customers, products and prices.

    kind: customer | product | price
    """

    __tablename__ = "processor_references"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    kind = Column(String(20), nullable=False)
    local_key = Column(String(255), nullable=False)
    remote_id = Column(String(255), nullable=False)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("kind", "local_key", name="uq_processor_reference"),
    )
