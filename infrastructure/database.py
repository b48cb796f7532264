"""Async SQLAlchemy engine and session factory.

One engine per process, created in the app lifespan. Request handlers get
a fresh AsyncSession per request from the session factory (see
dependencies.get_db_session).
"""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from config import DatabaseSettings
from schemas.models.base import Base
from shared.logging import get_logger

# Imported for their side effect of registering tables on Base.metadata
import schemas.models.one_time_code  # noqa: F401
import schemas.models.user  # noqa: F401

log = get_logger(__name__)


def create_engine(settings: DatabaseSettings) -> AsyncEngine:
    """Build the async engine; ``pool_pre_ping`` drops dead connections."""
    return create_async_engine(
        settings.database_url,
        echo=settings.database_echo,
        pool_pre_ping=True,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # expire_on_commit=False: services read attributes after committing
    return async_sessionmaker(engine, expire_on_commit=False)


async def create_tables(engine: AsyncEngine) -> None:
    """Create any missing tables. Local development and tests only."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    log.info("database_tables_created", tables=sorted(Base.metadata.tables))


async def ping(engine: AsyncEngine) -> None:
    """Raise if the database cannot answer ``SELECT 1``."""
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
