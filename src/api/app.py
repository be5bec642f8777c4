"""FastAPI application entry point with global error handling."""
from __future__ import annotations

import os
import sys

# Add src/ to Python path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from core.config import get_settings
from core.exceptions import (
    ConfigurationError,
    NotFoundError,
    ProspectingError,
    StorageError,
    ValidationError,
)
from core.logging_config import get_logger, setup_logging
from api.routes import contacts, dashboard, favorites, health, opportunities, sales, settings

LOGGER = get_logger(__name__)
SETTINGS = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan handler.

    Sets up logging, validates the database and creates missing tables.
    Startup is non-blocking: the app comes up even if the database is not
    ready, so health checks can report it.
    """
    setup_logging(level=SETTINGS.log_level, json_format=SETTINGS.log_format == "json")

    LOGGER.info(
        "API application starting",
        extra={"extra_data": {
            "environment": SETTINGS.environment,
            "database_url": SETTINGS.database_url,
            "default_cooldown_days": SETTINGS.default_cooldown_days,
        }},
    )

    from core.db import init_db, validate_database

    db_status = validate_database()
    if db_status["status"] == "error":
        LOGGER.error(
            "Database validation failed - app will start without database",
            extra={"extra_data": {"errors": db_status["errors"]}},
        )
    elif db_status["status"] == "missing_tables":
        LOGGER.warning(
            "Missing database tables detected - attempting to create",
            extra={"extra_data": {"missing": db_status["tables_missing"]}},
        )
        init_result = init_db(create_missing_only=True)
        if init_result["status"] == "error":
            LOGGER.error(
                "Failed to create missing tables",
                extra={"extra_data": {"error": init_result.get("error")}},
            )
        else:
            LOGGER.info(
                "Database tables created",
                extra={"extra_data": {"created": init_result["tables_created"]}},
            )
    else:
        LOGGER.info(
            "Database validation passed",
            extra={"extra_data": {"tables_found": len(db_status["tables_found"])}},
        )

    yield
    LOGGER.info("API application shutting down")


def _error_response(status_code: int, error: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, "message": message})


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance with:
        - CORS middleware
        - Global exception handlers
        - All API routes
    """
    application = FastAPI(
        title="Nearby-Sale Prospecting Engine",
        description="Turns nearby property sales into prioritized SMS outreach opportunities",
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # -------------------------------------------------------------------------
    # CORS Middleware
    # -------------------------------------------------------------------------
    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -------------------------------------------------------------------------
    # Global Exception Handlers
    # -------------------------------------------------------------------------

    @application.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
        LOGGER.info(f"Not found: {exc}", extra={"extra_data": {"path": request.url.path}})
        return _error_response(404, "not_found", str(exc))

    @application.exception_handler(ValidationError)
    async def validation_handler(request: Request, exc: ValidationError) -> JSONResponse:
        """Handle validation errors."""
        LOGGER.warning(f"Validation error: {exc}", extra={"extra_data": {"path": request.url.path}})
        return _error_response(400, "validation_error", str(exc))

    @application.exception_handler(StorageError)
    async def storage_handler(request: Request, exc: StorageError) -> JSONResponse:
        """Persistence failures surface as temporarily unavailable."""
        LOGGER.error(f"Storage error: {exc}", extra={"extra_data": {"path": request.url.path}})
        return _error_response(503, "storage_unavailable", str(exc))

    @application.exception_handler(ConfigurationError)
    async def configuration_handler(request: Request, exc: ConfigurationError) -> JSONResponse:
        """Handle configuration errors."""
        LOGGER.error(f"Configuration error: {exc}")
        return _error_response(500, "configuration_error", "Service misconfiguration")

    @application.exception_handler(ProspectingError)
    async def app_error_handler(request: Request, exc: ProspectingError) -> JSONResponse:
        """Handle all other application errors."""
        LOGGER.error(f"Application error: {exc}", exc_info=True)
        return _error_response(500, "application_error", str(exc))

    # -------------------------------------------------------------------------
    # Include Routers
    # -------------------------------------------------------------------------
    application.include_router(health.router, prefix="/health", tags=["Health"])
    application.include_router(sales.router, prefix="/sales", tags=["Sales"])
    application.include_router(opportunities.router, prefix="/sales", tags=["Opportunities"])
    application.include_router(favorites.router, prefix="/favorites", tags=["Favorites"])
    application.include_router(settings.router, prefix="/settings", tags=["Settings"])
    application.include_router(contacts.router, prefix="/contacts", tags=["Contacts"])
    application.include_router(dashboard.router, prefix="/dashboard", tags=["Dashboard"])

    return application


# Create the application instance
app = create_app()

LOGGER.info("API application initialized")
