"""Async database session and engine configuration."""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from partcatalog.config import settings

# SQLite doesn't support pool_size / max_overflow / pool_pre_ping
_is_sqlite = settings.DATABASE_URL.startswith("sqlite")

_engine_kwargs: dict = {"echo": settings.DEBUG}
if not _is_sqlite:
    _engine_kwargs.update(pool_size=20, max_overflow=10, pool_pre_ping=True)

engine = create_async_engine(settings.DATABASE_URL, **_engine_kwargs)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def init_db(target: Optional[AsyncEngine] = None) -> None:
    """Create all catalog tables that don't exist yet.

    Args:
        target: Engine to create tables on (defaults to the configured engine)
    """
    # Import models so they register with Base.metadata
    from partcatalog.models import Base

    async with (target or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
