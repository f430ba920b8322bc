"""
AsyncEngine factory and schema bootstrap.

NullPool because PgBouncer owns connection pooling, so SA does not
maintain its own pool on top.

Bootstrap a fresh database (idempotent, existing tables are left alone):
    python -m services.planner.db.engine
"""

import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import NullPool

from services.planner.config import settings
from services.planner.db.models import Base

logger = logging.getLogger(__name__)


def create_engine() -> AsyncEngine:
    """
    Create async engine for use with PgBouncer transaction-mode pooling.
    """
    url = settings.database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return create_async_engine(
        url,
        poolclass=NullPool,
        echo=settings.debug and settings.environment == "development",
    )


async def create_schema(engine: AsyncEngine) -> None:
    """Create every planner table, index and unique constraint if missing."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("db: schema ready tables=%s", sorted(Base.metadata.tables))


async def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    engine = create_engine()
    try:
        await create_schema(engine)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
