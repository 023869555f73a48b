"""
Operation-scoped database sessions.

Sessions are acquired per operation and released immediately afterwards, so
no connection is held while the lifecycle engine waits on the payment
processor or the license API.

    async with get_session() as session:      # one operation, own commit
        ...

    async with transaction():                  # several operations, one commit
        current = await repo.get(id)
        await repo.update_versioned(id, current.version, changes)
"""

from contextlib import asynccontextmanager
from contextvars import ContextVar
from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from common.core.otel_axiom_exporter import get_logger
from common.db.session import AsyncSessionLocal

logger = get_logger(__name__)

# Session of the enclosing transaction() block, if any
_current_session: ContextVar[Optional[AsyncSession]] = ContextVar(
    "db_current_session", default=None
)


@asynccontextmanager
async def _owned_session(label: str) -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception as e:
            logger.warning(f"{label} rolled back: {type(e).__name__}: {e}")
            await session.rollback()
            raise


@asynccontextmanager
async def transaction() -> AsyncGenerator[AsyncSession, None]:
    """
    Explicit transaction boundary.

    Repositories used inside the block share its session. Commits on success,
    rolls back and re-raises on exception. A nested block joins the outer one.
    """
    existing = _current_session.get()
    if existing is not None:
        yield existing
        return

    async with _owned_session("Transaction") as session:
        token = _current_session.set(session)
        try:
            yield session
        finally:
            _current_session.reset(token)


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Session for a single operation.

    Inside transaction() this is the transaction's session and the block owns
    the commit; otherwise a fresh session is committed and released here.
    """
    existing = _current_session.get()
    if existing is not None:
        yield existing
        return

    async with _owned_session("Operation") as session:
        yield session
