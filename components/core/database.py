"""Async engine and session handling for the debt store."""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from components.core import config

Base = declarative_base()


def engine_options(url: str, echo: bool = False) -> dict:
    """Keyword arguments for create_async_engine; SQLite has no connection pool to size."""
    options = {"echo": echo}
    if make_url(url).get_backend_name() != "sqlite":
        options.update(pool_pre_ping=True, pool_size=5, max_overflow=10)
    return options


class DatabaseManager:
    """Owns the engine and hands out sessions.

    Sessions keep attributes loaded after commit, so repositories can return
    committed rows without another round trip.
    """

    def __init__(self, engine: Optional[AsyncEngine] = None) -> None:
        self.engine = engine or self._create_engine()
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    @staticmethod
    def _create_engine() -> AsyncEngine:
        settings = config.get_settings()
        url = settings.async_db_url
        return create_async_engine(url, **engine_options(url, echo=settings.DEBUG))

    @asynccontextmanager
    async def get_db(self) -> AsyncIterator[AsyncSession]:
        """Get database session context manager."""
        async with self.session_factory() as session:
            yield session

    async def create_all(self) -> None:
        """Create the debt tables if they do not exist."""
        async with self.engine.begin() as connection:
            await connection.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        """Close pooled connections."""
        await self.engine.dispose()
