"""
SiteScout — Async SQLAlchemy setup for the durable audit cache.

Only touched when ``cache_backend`` is ``sql``; the memory backend never
opens a connection.
"""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from sitescout.config import settings


def engine_options(database_url: str) -> dict:
    """Per-dialect engine kwargs. SQLite gets a lock wait, servers get a pool."""
    if database_url.startswith("sqlite"):
        # concurrent cache writes from the sweeper and request handlers
        return {"connect_args": {"timeout": 30}}
    return {
        "pool_size": 5,
        "max_overflow": 10,
        "pool_pre_ping": True,
        "pool_recycle": 300,
    }


def build_engine(database_url: str) -> AsyncEngine:
    return create_async_engine(database_url, echo=False, **engine_options(database_url))


engine = build_engine(settings.database_url)
async_session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


async def init_db() -> None:
    """Create the ``audit_cache`` table if missing (lifespan startup)."""
    import sitescout.models  # noqa: F401  register tables on Base.metadata

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    await engine.dispose()
