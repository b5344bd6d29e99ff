"""
Pytest configuration and shared fixtures.
"""

import os
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio

from queuectl.config import Settings
from queuectl.db import Base, Store
from queuectl.db.repository import ConfigRepository, JobRepository, WorkerRepository

# Point TEST_DATABASE_URL at PostgreSQL to run the suite against it;
# otherwise every test gets its own SQLite file.
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL")


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    """Get the test database URL."""
    if TEST_DATABASE_URL:
        return TEST_DATABASE_URL
    return f"sqlite+aiosqlite:///{tmp_path / 'queuectl-test.db'}"


@pytest.fixture
def test_settings(database_url: str) -> Settings:
    """Create test settings with short worker intervals."""
    return Settings(
        database_url=database_url,
        database_auto_create=True,
        log_level="DEBUG",
        log_format="console",
        worker_poll_interval_seconds=0.05,
        worker_heartbeat_interval_seconds=0.1,
        worker_stop_poll_interval_seconds=0.05,
        job_timeout_seconds=10,
        default_max_retries=3,
        default_backoff_base=2,
    )


@pytest_asyncio.fixture
async def store(test_settings: Settings) -> AsyncGenerator[Store]:
    """Create a store with a fresh schema, dropped again afterwards."""
    store = Store.from_settings(test_settings)
    await store.create_schema()

    yield store

    async with store.engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await store.close()


@pytest.fixture
def job_repo(store: Store) -> JobRepository:
    return JobRepository(store)


@pytest.fixture
def worker_repo(store: Store) -> WorkerRepository:
    return WorkerRepository(store)


@pytest.fixture
def config_repo(store: Store) -> ConfigRepository:
    return ConfigRepository(store)
