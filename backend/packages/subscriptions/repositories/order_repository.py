"""
Repositories for order notes, order meta and cached processor references.
"""

from typing import Optional

from sqlalchemy import select, update, delete

from common.core.otel_axiom_exporter import trace_span
from common.repositories.base import BaseRepository
from packages.subscriptions.models.database.order import (
    OrderNoteEntity,
    OrderMetaEntity,
    ProcessorReferenceEntity,
)
from packages.subscriptions.models.domain.order import (
    OrderNote,
    OrderMeta,
    ProcessorReference,
)


class OrderNoteRepository(BaseRepository[OrderNoteEntity, OrderNote]):
    """Append-only order notes."""

    def __init__(self, db_session=None):
        super().__init__(OrderNoteEntity, OrderNote, db_session)

    @trace_span
    async def add(self, order_id: int, note: str) -> OrderNote:
        entity = OrderNoteEntity(order_id=order_id, note=note)
        async with self._get_session() as session:
            session.add(entity)
            await session.flush()
            await session.refresh(entity)
            return self._entity_to_domain(entity)

    @trace_span
    async def list_for_order(self, order_id: int) -> list[OrderNote]:
        return await self._fetch_all(
            self._select()
            .where(OrderNoteEntity.order_id == order_id)
            .order_by(OrderNoteEntity.created_at, OrderNoteEntity.id)
        )


class OrderMetaRepository(BaseRepository[OrderMetaEntity, OrderMeta]):
    """Order meta key/value store."""

    def __init__(self, db_session=None):
        super().__init__(OrderMetaEntity, OrderMeta, db_session)

    @trace_span
    async def get_value(self, order_id: int, key: str) -> Optional[str]:
        async with self._get_session() as session:
            result = await session.execute(
                select(OrderMetaEntity.meta_value).where(
                    OrderMetaEntity.order_id == order_id,
                    OrderMetaEntity.meta_key == key,
                )
            )
            return result.scalar_one_or_none()

    @trace_span
    async def set_value(self, order_id: int, key: str, value: str) -> None:
        """Insert or overwrite a meta value."""
        async with self._get_session() as session:
            result = await session.execute(
                update(OrderMetaEntity)
                .where(
                    OrderMetaEntity.order_id == order_id,
                    OrderMetaEntity.meta_key == key,
                )
                .values(meta_value=value)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                session.add(
                    OrderMetaEntity(order_id=order_id, meta_key=key, meta_value=value)
                )
            await session.flush()


class ProcessorReferenceRepository(
    BaseRepository[ProcessorReferenceEntity, ProcessorReference]
):
    """Remembers processor customer/product/price ids by local key."""

    CUSTOMER = "customer"
    PRODUCT = "product"
    PRICE = "price"

    def __init__(self, db_session=None):
        super().__init__(ProcessorReferenceEntity, ProcessorReference, db_session)

    @trace_span
    async def get_remote_id(self, kind: str, local_key: str) -> Optional[str]:
        async with self._get_session() as session:
            result = await session.execute(
                select(ProcessorReferenceEntity.remote_id).where(
                    ProcessorReferenceEntity.kind == kind,
                    ProcessorReferenceEntity.local_key == local_key,
                )
            )
            return result.scalar_one_or_none()

    @trace_span
    async def remember(self, kind: str, local_key: str, remote_id: str) -> None:
        async with self._get_session() as session:
            result = await session.execute(
                update(ProcessorReferenceEntity)
                .where(
                    ProcessorReferenceEntity.kind == kind,
                    ProcessorReferenceEntity.local_key == local_key,
                )
                .values(remote_id=remote_id)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                session.add(
                    ProcessorReferenceEntity(
                        kind=kind, local_key=local_key, remote_id=remote_id
                    )
                )
            await session.flush()

    @trace_span
    async def forget(self, kind: str, local_key: str) -> None:
        async with self._get_session() as session:
            await session.execute(
                delete(ProcessorReferenceEntity).where(
                    ProcessorReferenceEntity.kind == kind,
                    ProcessorReferenceEntity.local_key == local_key,
                )
            )
            await session.flush()
