from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from marketplace_payments.core.config import settings
from marketplace_payments.db.base import Base
import marketplace_payments.models  # noqa: F401  registers tables on Base.metadata


def _engine_options(database_url: str) -> dict:
    if database_url.startswith("sqlite"):
        return {}
    return {
        # Pool settings
        "pool_size": 10,
        "max_overflow": 20,
        "pool_timeout": 30,
        # Recycle every hour (prevents stale connections)
        "pool_recycle": 3600,
        "pool_pre_ping": True,
    }


engine = create_async_engine(settings.DATABASE_URL,
                             echo=settings.DATABASE_ECHO,
                             **_engine_options(settings.DATABASE_URL))

async_session_factory = async_sessionmaker(
    bind=engine,
    autoflush=False,
    expire_on_commit=True)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides an async DB session
    and rolls back anything left uncommitted when the request ends.
    """
    async with async_session_factory() as session:
        yield session
        await session.rollback()


async def init_db():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
