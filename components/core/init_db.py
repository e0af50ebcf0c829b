"""Database initialization and dependency injection."""

from typing import AsyncGenerator, Optional

import fastapi
from sqlalchemy.ext.asyncio import AsyncSession

from components.core.database import DatabaseManager
# Import all models to ensure they're registered
import components.debt.models  # noqa: F401


def init_db(app: fastapi.FastAPI, db_manager: Optional[DatabaseManager] = None) -> DatabaseManager:
    """Attach a DatabaseManager to the application."""
    manager = db_manager or DatabaseManager()
    app.state.db_manager = manager
    return manager


async def get_db(request: fastapi.Request) -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency for getting database sessions."""
    async with request.app.state.db_manager.get_db() as session:
        yield session
