"""
Database setup.
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from stemshop.db._models import Base


async def create_database(
    url: str = "sqlite+aiosqlite:///:memory:",
    *,
    create_tables: bool = True,
) -> tuple[async_sessionmaker[AsyncSession], AsyncEngine]:
    """Create database and return (session_factory, engine)."""
    engine = create_async_engine(url, echo=False)

    if create_tables:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    return async_sessionmaker(engine, expire_on_commit=False), engine


__all__ = ("create_database",)
