from typing import AsyncGenerator

from sqlalchemy import MetaData
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.schema import CreateSchema

from credgate.core.config import settings

# Deterministic constraint names, so repeated create_all runs agree
meta = MetaData(
    schema=settings.postgres_db_schema,
    naming_convention={
        "pk": "pk_%(table_name)s",
        "ix": "ix_%(table_name)s_%(column_0_N_name)s",
        "uq": "uq_%(table_name)s_%(column_0_N_name)s",
    },
)

engine: AsyncEngine = create_async_engine(
    settings.db_url.human_repr(),
    echo=settings.debug,
    pool_pre_ping=True,
)

async_session_factory = async_sessionmaker(
    bind=engine,
    autoflush=False,
    expire_on_commit=False,
)


async def create_tables(bind: AsyncEngine = engine) -> None:
    """Create the configured schema and any mapped table that is still missing."""
    async with bind.begin() as conn:
        await conn.execute(CreateSchema(settings.postgres_db_schema, if_not_exists=True))
        await conn.run_sync(meta.create_all)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session: committed when the handler succeeds, rolled back otherwise."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
