"""SQLAlchemy base configuration and session management."""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

from hubauth.core.exceptions import AlreadyExistsError, StorageFailureError
from hubauth.core.logging import get_logger

logger = get_logger(__name__)

Base = declarative_base()


class DatabaseSessionManager:
    """Manages database engine and session lifecycle."""

    def __init__(self):
        self._engine: AsyncEngine | None = None
        self._session_maker: async_sessionmaker[AsyncSession] | None = None

    @property
    def initialized(self) -> bool:
        return self._engine is not None

    def init(
        self,
        database_url: str,
        pool_size: int = 10,
        max_overflow: int = 20,
        pool_timeout: int = 30,
        echo: bool = False,
    ):
        """Initialize database engine and session maker."""
        engine_kwargs = {"echo": echo, "future": True}
        # SQLite uses a single-connection pool that rejects sizing arguments
        if not database_url.startswith("sqlite"):
            engine_kwargs.update(
                pool_size=pool_size,
                max_overflow=max_overflow,
                pool_timeout=pool_timeout,
            )
        self._engine = create_async_engine(database_url, **engine_kwargs)

        self._session_maker = async_sessionmaker(
            self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autocommit=False,
            autoflush=False,
        )

    async def close(self):
        """Close database engine."""
        if self._engine:
            await self._engine.dispose()
            self._engine = None
            self._session_maker = None

    async def create_all(self):
        """Create every mapped table that does not exist yet."""
        if self._engine is None:
            raise RuntimeError("Database not initialized")
        # Register mapped classes on Base.metadata
        from hubauth.db import models  # noqa: F401

        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("database_schema_ready")

    async def ping(self) -> None:
        """Round-trip a trivial query; raises when the database is unreachable."""
        async with self.transaction() as session:
            result = await session.execute(text("SELECT 1"))
            result.scalar_one()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        """Unit of work for DAO operations.

        Commits on success and rolls back on error. Driver errors surface as
        AlreadyExistsError (unique constraint) or StorageFailureError.
        """
        if self._session_maker is None:
            raise StorageFailureError("Database not initialized")

        async with self._session_maker() as session:
            try:
                yield session
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                logger.warning("db_integrity_error", error=str(e.orig))
                raise AlreadyExistsError("Item with the same key already exists") from e
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error("db_error", error=str(e))
                raise StorageFailureError(f"Database operation failed: {type(e).__name__}") from e
            except Exception:
                await session.rollback()
                raise


# Global database session manager
db_manager = DatabaseSessionManager()
