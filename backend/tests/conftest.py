"""Shared fixtures."""
import pytest_asyncio

from cliphunter.db.database import create_engine, create_session_maker, init_db, close_db
from cliphunter.services.job_store import JobStore


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'jobs.db'}")
    await init_db(engine)
    yield engine
    await close_db(engine)


@pytest_asyncio.fixture
async def job_store(engine):
    return JobStore(create_session_maker(engine))
