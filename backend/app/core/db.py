from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from app.core.config import settings


class Base(DeclarativeBase):
    pass


def build_engine(url: str | None = None) -> AsyncEngine:
    return create_async_engine(url or settings.DATABASE_URL, echo=False, pool_pre_ping=True)


def build_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


engine = build_engine()
AsyncSessionLocal = build_sessionmaker(engine)


async def init_models(bind: AsyncEngine) -> None:
    """Create missing tables. Safe to call on every startup."""
    from app import models  # noqa: F401  (import models for metadata)

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
