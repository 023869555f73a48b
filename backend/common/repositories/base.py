from contextlib import asynccontextmanager
from typing import Generic, TypeVar, Optional, List, Type, AsyncGenerator

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select
from pydantic import BaseModel

from common.core.otel_axiom_exporter import trace_span
from common.db.scoped import get_session

EntityType = TypeVar("EntityType")
DomainModelType = TypeVar("DomainModelType")
CreateModelType = TypeVar("CreateModelType", bound=BaseModel)
UpdateModelType = TypeVar("UpdateModelType", bound=BaseModel)


class BaseRepository(Generic[EntityType, DomainModelType]):
    """
    Base repository mapping entities to pydantic domain models.

    Sessions are acquired per operation through get_session(), which joins an
    enclosing transaction() block when there is one, so no connection is held
    while a service waits on the processor or the license API. Passing
    db_session pins the repository to one session instead.

    Reads always reload rows from the database: writes issued as bulk UPDATEs
    bypass the identity map.

    Example:
        repo = SubscriptionRepository()
        sub = await repo.get(123)  # Acquires and releases session
    """

    def __init__(
        self,
        entity_class: Type[EntityType],
        domain_class: Type[DomainModelType],
        db_session: Optional[AsyncSession] = None,
    ):
        self.entity_class = entity_class
        self.domain_class = domain_class
        self._explicit_session = db_session

    @asynccontextmanager
    async def _get_session(self) -> AsyncGenerator[AsyncSession, None]:
        if self._explicit_session is not None:
            yield self._explicit_session
        else:
            async with get_session() as session:
                yield session

    def _select(self) -> Select:
        return select(self.entity_class).execution_options(populate_existing=True)

    def _entity_to_domain(self, entity: EntityType) -> DomainModelType:
        return self.domain_class.model_validate(entity)

    def _entities_to_domain(self, entities: List[EntityType]) -> List[DomainModelType]:
        return [self._entity_to_domain(entity) for entity in entities]

    async def _fetch_one(self, query: Select) -> Optional[DomainModelType]:
        async with self._get_session() as session:
            result = await session.execute(query)
            entity = result.scalar_one_or_none()
            return self._entity_to_domain(entity) if entity else None

    async def _fetch_all(self, query: Select) -> List[DomainModelType]:
        async with self._get_session() as session:
            result = await session.execute(query)
            return self._entities_to_domain(result.scalars().all())

    @trace_span
    async def get(self, id: int) -> Optional[DomainModelType]:
        return await self._fetch_one(
            self._select().where(self.entity_class.id == id)
        )

    @trace_span
    async def create(self, create_model: CreateModelType) -> DomainModelType:
        """Insert a row from a typed create model."""
        entity = self.entity_class(**create_model.model_dump(exclude_none=True))
        async with self._get_session() as session:
            session.add(entity)
            await session.flush()
            await session.refresh(entity)
            return self._entity_to_domain(entity)

    @trace_span
    async def update(
        self, id: int, update_model: UpdateModelType
    ) -> Optional[DomainModelType]:
        """
        Unconditional update of the fields set on `update_model`.

        Returns the reloaded row, or None if it does not exist.
        """
        data = update_model.model_dump(exclude_unset=True)
        if data:
            async with self._get_session() as session:
                await session.execute(
                    update(self.entity_class)
                    .where(self.entity_class.id == id)
                    .values(data)
                    .execution_options(synchronize_session=False)
                )
                await session.flush()
        return await self.get(id)

    @trace_span
    async def delete(self, id: int) -> bool:
        async with self._get_session() as session:
            result = await session.execute(
                delete(self.entity_class).where(self.entity_class.id == id)
            )
            await session.flush()
            return result.rowcount > 0
