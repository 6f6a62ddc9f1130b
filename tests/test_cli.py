"""Operator CLI commands against a throwaway SQLite database."""
import asyncio

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool
from typer.testing import CliRunner

from reelcut.cli import app
from reelcut.db import session as db_session
from reelcut.models import Account, Base, Plan

runner = CliRunner()


@pytest.fixture
def cli_db(tmp_path, monkeypatch):
    # NullPool: every asyncio.run() below gets fresh connections on its own loop
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}", poolclass=NullPool)

    async def _create():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(_create())
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    monkeypatch.setattr(db_session, "engine", engine)
    monkeypatch.setattr(db_session, "async_session_factory", factory)
    return factory


def _scalar(factory, stmt):
    async def _run():
        async with factory() as db:
            return await db.scalar(stmt)

    return asyncio.run(_run())


def test_seed_plans_command(cli_db):
    result = runner.invoke(app, ["seed-plans"])

    assert result.exit_code == 0, result.output
    assert _scalar(cli_db, select(func.count()).select_from(Plan)) == 5


def test_promote_admin_command(cli_db):
    async def _add():
        async with cli_db() as db:
            db.add(Account(name="Ops", email="ops@example.com"))
            await db.commit()

    asyncio.run(_add())

    result = runner.invoke(app, ["promote-admin", "ops@example.com"])

    assert result.exit_code == 0, result.output
    assert _scalar(cli_db, select(Account.role).where(Account.email == "ops@example.com")) == "admin"


def test_promote_unknown_account_fails(cli_db):
    result = runner.invoke(app, ["promote-admin", "ghost@example.com"])

    assert result.exit_code == 1


def test_stats_command_on_empty_ledger(cli_db):
    result = runner.invoke(app, ["stats"])

    assert result.exit_code == 0, result.output
    assert "Active subscriptions: 0" in result.output
