"""
Database connection management.
Handles async SQLAlchemy engine and session creation.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from queuectl.config import Settings, get_settings
from queuectl.constants import CONFIG_BACKOFF_BASE, CONFIG_MAX_RETRIES
from queuectl.db.models import Base, ConfigEntry
from queuectl.errors import StoreError

logger = logging.getLogger(__name__)


class Store:
    """
    Handle on the persistent store.

    Owns the engine and session factory. One instance is created per process
    and passed to every repository and worker that needs the database.
    """

    def __init__(self, engine: AsyncEngine, settings: Settings | None = None):
        """
        Initialize the store around an engine.

        Args:
            engine: The SQLAlchemy async engine.
            settings: Settings used for default config values.
        """
        self.engine = engine
        self.settings = settings or get_settings()
        self._session_factory = async_sessionmaker(
            bind=engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "Store":
        """
        Create a store from application settings.

        Args:
            settings: Settings to read the database URL from.

        Returns:
            Store: A store with a fresh engine.
        """
        settings = settings or get_settings()
        engine = create_async_engine(
            settings.database_url,
            echo=settings.database_echo,
            pool_pre_ping=True,
        )
        logger.info("Database connection initialized")
        return cls(engine, settings)

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession]:
        """
        Context manager for a transactional session.

        Commits on success and rolls back on error. Database failures are
        re-raised as StoreError.

        Yields:
            AsyncSession: An async database session.
        """
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                raise StoreError(f"Database error: {e}") from e
            except Exception:
                await session.rollback()
                raise

    async def create_schema(self) -> None:
        """
        Create all tables and seed the default config rows.

        Used for SQLite and tests; PostgreSQL deployments run the Alembic
        migrations instead.
        """
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except SQLAlchemyError as e:
            raise StoreError(f"Could not create schema: {e}") from e

        defaults = {
            CONFIG_MAX_RETRIES: str(self.settings.default_max_retries),
            CONFIG_BACKOFF_BASE: str(self.settings.default_backoff_base),
        }
        async with self.session() as session:
            for key, value in defaults.items():
                if await session.get(ConfigEntry, key) is None:
                    session.add(ConfigEntry(key=key, value=value))

    async def close(self) -> None:
        """Dispose of the engine and its pooled connections."""
        await self.engine.dispose()
        logger.info("Database connection closed")
