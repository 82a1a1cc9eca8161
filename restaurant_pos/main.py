"""
FastAPI Application Entry Point

Restaurant POS backend: catalog, ordering with atomic stock reservation,
billing with split bills and payments, table transfers and reservations.

Endpoints (under API_PREFIX, default /api):
    - /orders: place, add item, update, void, list
    - /bills: create, split, pay, list, delete
    - /table-transfer: move orders between tables
    - /menu, /ingredients, /menu-ingredients: catalog
    - /outlets, /tables, /staff, /customers, /visits, /reservations
    - GET /health: System health check

Run with:
    uvicorn restaurant_pos.main:app --host 0.0.0.0 --port 8080
"""

import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

import redis.asyncio as redis
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Windows-specific event loop policy
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Internal imports
from restaurant_pos.core.config import Settings, get_settings, setup_logging
from restaurant_pos.core.errors import PersistenceError, POSError
from restaurant_pos.database import Database
from restaurant_pos.routers import ROUTERS
from restaurant_pos.schemas import HealthResponse
from restaurant_pos.services import build_services

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, database: Optional[Database] = None) -> FastAPI:
    """
    Build the application around an explicit settings object and store handle.

    Args:
        settings: Configuration; defaults to environment settings
        database: Store handle; defaults to one built from settings

    Returns:
        Configured FastAPI application
    """
    settings = settings or get_settings()
    database = database or Database.from_settings(settings)

    # =========================================================================
    # APPLICATION LIFECYCLE
    # =========================================================================

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Manage application startup and shutdown events.
        """
        # Startup
        logger.info("=" * 60)
        logger.info(f"🚀 Starting {settings.app_name}")
        logger.info(f"   Version: {settings.app_version}")
        logger.info(f"   Environment: {settings.env_mode.value}")
        logger.info(f"   Debug: {settings.debug}")
        logger.info(f"   Restock on void: {settings.restock_on_void}")
        logger.info("=" * 60)

        if settings.auto_create_tables:
            await database.create_all()

        problems = settings.validate_production_config()
        if problems:
            logger.warning(f"⚠️ Unsafe settings for {settings.env_mode.value}: {problems}")

        logger.info("✅ Application ready!")

        yield  # Application runs

        # Shutdown
        logger.info("Shutting down...")
        await database.dispose()
        logger.info("✅ Cleanup complete")

    app = FastAPI(
        title=settings.app_name,
        description=(
            "Restaurant point-of-sale backend. Orders reserve ingredient stock "
            "atomically; bills can be split by item and settled with several payments."
        ),
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.state.settings = settings
    app.state.database = database
    app.state.services = build_services(database, settings)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    for router in ROUTERS:
        app.include_router(router, prefix=settings.api_prefix)

    # =========================================================================
    # ROOT & HEALTH ENDPOINTS
    # =========================================================================

    @app.get("/", tags=["Root"])
    async def root() -> dict[str, str]:
        """API root with navigation links."""
        return {
            "message": f"🍽️ Welcome to {settings.app_name}",
            "version": settings.app_version,
            "environment": settings.env_mode.value,
            "documentation": "/docs",
            "health": "/health",
            "api": settings.api_prefix or "/",
        }

    @app.get(
        "/health",
        response_model=HealthResponse,
        tags=["Health"],
        summary="System Health Check",
    )
    async def health_check() -> HealthResponse:
        """Verify the database and the Celery broker are reachable."""

        # Check database
        db_status = "healthy"
        try:
            await database.ping()
        except Exception as e:
            db_status = f"unhealthy: {str(e)}"
            logger.error(f"Database health check failed: {e}")

        # Check Redis
        redis_status = "healthy"
        try:
            client = redis.from_url(settings.redis_url, socket_timeout=2)
            try:
                await client.ping()
            finally:
                await client.aclose()
        except Exception as e:
            redis_status = f"unhealthy: {str(e)}"
            logger.error(f"Redis health check failed: {e}")

        overall = "operational" if all(
            s == "healthy" for s in [db_status, redis_status]
        ) else "degraded"

        return HealthResponse(
            status=overall,
            database=db_status,
            redis=redis_status,
            timestamp=datetime.now(timezone.utc),
        )

    # =========================================================================
    # ERROR HANDLERS
    # =========================================================================

    @app.exception_handler(POSError)
    async def pos_error_handler(request: Request, exc: POSError) -> JSONResponse:
        """Render domain errors with their stable kind."""
        if isinstance(exc, PersistenceError):
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        else:
            logger.warning(f"{request.method} {request.url.path} rejected ({exc.kind}): {exc.message}")

        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all exception handler."""
        logger.exception(f"Unhandled exception: {exc}")

        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": "Internal Server Error",
                "detail": str(exc) if settings.debug else "An unexpected error occurred",
            },
        )

    return app


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

setup_logging()
app = create_app()
