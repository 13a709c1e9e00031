# tradeguard/src/common/db.py

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from src.common.config import settings
from src.models.base import Base


def build_engine(database_url: str | None = None, echo: bool | None = None) -> AsyncEngine:
    return create_async_engine(
        database_url or settings.DATABASE_URL,
        echo=settings.DATABASE_ECHO if echo is None else echo,
        future=True,
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    # One factory per process, handed to the services that need it
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


async def create_all(engine: AsyncEngine) -> None:
    """Create tables for local runs and tests. Production schemas go through Alembic."""
    import src.models  # noqa: F401  registers every mapped table on Base.metadata

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
