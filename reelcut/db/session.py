"""Async engine, session factory and the FastAPI ``get_db`` dependency.

``Settings`` has already put DATABASE_URL on an async driver (asyncpg for
PostgreSQL, aiosqlite for SQLite dev and test databases).
"""

from collections.abc import AsyncGenerator
from pathlib import Path

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from reelcut.config import get_settings


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    """Engine for ``url``; file-backed SQLite gets its parent directory created."""
    parsed = make_url(url)
    if parsed.get_backend_name() != "sqlite":
        return create_async_engine(url, echo=echo, pool_pre_ping=True)

    if parsed.database and parsed.database != ":memory:":
        Path(parsed.database).parent.mkdir(parents=True, exist_ok=True)
    return create_async_engine(url, echo=echo, connect_args={"check_same_thread": False})


settings = get_settings()
engine = build_engine(settings.database_url, echo=settings.debug)
async_session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield one session per request."""
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()
