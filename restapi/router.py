"""Application configuration and router setup."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import fastapi
from fastapi.middleware import cors
from fastapi.openapi.utils import get_openapi
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from components.core import init_db
from components.core.config import get_settings
from components.core.database import DatabaseManager
from components.core.exceptions import DebtError
from components.core.logging import setup_logging
from restapi.endpoints import debts, health_check

logger = logging.getLogger(__name__)

TITLE = "Household Debts"
DESCRIPTION = "Household debt tracking, payment recording and amortization schedules"


def create_app(
    db_manager: Optional[DatabaseManager] = None,
    create_tables: Optional[bool] = None,
) -> fastapi.FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)
    if create_tables is None:
        create_tables = settings.DB_AUTO_CREATE

    @asynccontextmanager
    async def lifespan(app: fastapi.FastAPI):
        if create_tables:
            await app.state.db_manager.create_all()
        yield
        await app.state.db_manager.dispose()

    app = fastapi.FastAPI(
        title=TITLE,
        description=DESCRIPTION,
        version="1.0.0",
        lifespan=lifespan,
    )

    # Initialize database
    init_db.init_db(app, db_manager)

    # Add CORS middleware
    app.add_middleware(
        cors.CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(DebtError)
    async def debt_error_handler(request: fastapi.Request, exc: DebtError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(SQLAlchemyError)
    async def database_error_handler(request: fastapi.Request, exc: SQLAlchemyError) -> JSONResponse:
        logger.error("Database error on %s %s", request.method, request.url.path, exc_info=exc)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error", "code": "internal_error", "context": {}},
        )

    # Include routers
    app.include_router(health_check.router)
    app.include_router(debts.router)

    def custom_openapi():
        if app.openapi_schema:
            return app.openapi_schema
        openapi_schema = get_openapi(
            title=TITLE,
            version="1.0.0",
            description=DESCRIPTION,
            routes=app.routes,
        )
        app.openapi_schema = openapi_schema
        return app.openapi_schema

    app.openapi = custom_openapi

    return app
