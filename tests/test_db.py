"""Database URL normalisation and engine construction."""
import pytest
from sqlalchemy import text

from reelcut.config import Settings
from reelcut.db import session as db_session
from reelcut.db.session import build_engine


@pytest.mark.parametrize(
    "configured, expected",
    [
        ("sqlite:///./data/reelcut.db", "sqlite+aiosqlite:///./data/reelcut.db"),
        ("sqlite+aiosqlite:///./data/reelcut.db", "sqlite+aiosqlite:///./data/reelcut.db"),
        ("postgresql://u:p@db:5432/reelcut", "postgresql+asyncpg://u:p@db:5432/reelcut"),
        ("postgresql+asyncpg://u:p@db:5432/reelcut", "postgresql+asyncpg://u:p@db:5432/reelcut"),
    ],
)
def test_database_url_lands_on_async_driver(configured, expected):
    assert Settings(database_url=configured).database_url == expected


def test_configured_engine_uses_aiosqlite():
    assert db_session.engine.url.drivername == "sqlite+aiosqlite"


async def test_sqlite_engine_creates_data_directory(tmp_path):
    db_file = tmp_path / "nested" / "reelcut.db"
    engine = build_engine(f"sqlite+aiosqlite:///{db_file}")
    try:
        assert db_file.parent.is_dir()
        async with engine.connect() as conn:
            assert await conn.scalar(text("select 1")) == 1
    finally:
        await engine.dispose()
