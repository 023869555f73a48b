from sqlalchemy import pool
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from common.core.config import settings
from common.core.otel_axiom_exporter import get_logger

logger = get_logger(__name__)


def _engine_kwargs() -> dict:
    """
    Pool configuration.

    The sweep worker runs sequentially and uses NullPool (DB_USE_NULLPOOL=true);
    the API keeps a small pool for concurrent order and webhook requests.
    """
    kwargs = {
        "echo": settings.debug,
        "pool_pre_ping": True,
    }
    if settings.db_use_nullpool:
        logger.info("Using NullPool - no connection pooling (worker mode)")
        kwargs["poolclass"] = pool.NullPool
    else:
        logger.info(
            f"Using connection pooling - pool_size={settings.db_pool_size}, "
            f"max_overflow={settings.db_pool_overflow}"
        )
        kwargs["pool_size"] = settings.db_pool_size
        kwargs["max_overflow"] = settings.db_pool_overflow
        kwargs["pool_recycle"] = 3600
    return kwargs


engine = create_async_engine(settings.database_url, **_engine_kwargs())
AsyncSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


async def get_db():
    """Request-scoped session, committed when the route returns."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception as e:
            logger.error(f"Rolling back request session: {e}")
            await session.rollback()
            raise


async def dispose_engine():
    """Close pooled connections on shutdown. Schema is owned by Alembic."""
    await engine.dispose()
    logger.info("Database engine disposed")
