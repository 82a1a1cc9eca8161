"""
Database Connection Module

Wraps the SQLAlchemy async engine in an explicitly constructed store handle.
One ``Database`` is built at startup and handed to every service; nothing
in the package reaches for a module-level engine.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy import event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from restaurant_pos.core.config import Settings
from restaurant_pos.core.errors import PersistenceError

logger = logging.getLogger(__name__)


# Base class for all our models
class Base(DeclarativeBase):
    pass


class Database:
    """
    Store handle owning the engine and session factory.

    Usage:
        database = Database.from_settings(settings)
        async with database.transaction() as session:
            session.add(...)
        # committed here; any exception inside rolled everything back
    """

    def __init__(self, url: str, echo: bool = False, **engine_kwargs):
        self.url = url
        self.engine = create_async_engine(url, echo=echo, **engine_kwargs)
        self.session_maker = async_sessionmaker(
            bind=self.engine,
            class_=AsyncSession,
            expire_on_commit=False,  # Objects remain accessible after commit
        )

        if url.startswith("sqlite"):
            # SQLite only enforces foreign keys when asked to, per connection
            @event.listens_for(self.engine.sync_engine, "connect")
            def _enable_sqlite_fks(dbapi_connection, connection_record):
                cursor = dbapi_connection.cursor()
                cursor.execute("PRAGMA foreign_keys=ON")
                cursor.close()

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        """Build the store handle with pool options suited to the driver."""
        if settings.is_sqlite:
            return cls(
                settings.database_url,
                echo=settings.db_echo,
                connect_args={"timeout": 30},
            )
        return cls(
            settings.database_url,
            echo=settings.db_echo,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=True,
        )

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        """
        Open a session inside a single transaction.

        Commits when the block exits normally and rolls back on any
        exception. Driver and ORM failures leave as PersistenceError;
        domain errors raised inside the block pass through unchanged.
        """
        try:
            async with self.session_maker() as session:
                async with session.begin():
                    yield session
        except SQLAlchemyError as exc:
            logger.error(f"Transaction rolled back: {exc.__class__.__name__}: {exc}")
            raise PersistenceError("The database rejected the operation") from exc

    async def ping(self) -> bool:
        """Run a trivial query to verify connectivity."""
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True

    async def create_all(self) -> None:
        """
        Create all tables in database.
        Called once at application startup.
        """
        # Import models so every table is registered on Base.metadata
        from restaurant_pos import models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("✅ Database tables created")

    async def drop_all(self) -> None:
        """Drop every table. Used by tests and local resets."""
        from restaurant_pos import models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def dispose(self) -> None:
        """Close every pooled connection."""
        await self.engine.dispose()
