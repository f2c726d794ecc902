"""Main FastAPI application for the Notes Service."""

import logging
from contextlib import asynccontextmanager
from typing import Dict, Any, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .config import Settings, get_settings
from .db.connection import DatabaseManager
from .db.notes import NoteRepository
from .errors import register_exception_handlers
from .errors.problem_details import ServiceUnavailableError
from .routes import notes_router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format=get_settings().log_format
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    settings = app.state.settings
    logger.info(f"Starting {settings.app_name}")

    # Configure logging level from settings
    logging.getLogger().setLevel(getattr(logging, settings.log_level))

    db_manager: DatabaseManager = app.state.db
    try:
        await db_manager.initialize()
        logger.info("Database connection pool initialized")

        await db_manager.ping()
        logger.info("Database connectivity verified")

    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.app_name}")
    try:
        await db_manager.close()
        logger.info("Database connections closed")
    except Exception as e:
        logger.error(f"Error during shutdown: {e}")


def create_app(
    settings: Optional[Settings] = None,
    db_manager: Optional[DatabaseManager] = None
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Settings to use; defaults to the environment-derived settings
        db_manager: Database manager to use; one is created from settings
            when omitted

    Returns:
        The configured application
    """
    settings = settings or get_settings()
    db_manager = db_manager or DatabaseManager(settings)

    app = FastAPI(
        title=settings.app_name,
        description="Note records with authors, tags, attachments and revisions, listed with keyset pagination",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan
    )

    app.state.settings = settings
    app.state.db = db_manager
    app.state.note_repository = NoteRepository(db_manager)

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )

    # Register exception handlers
    register_exception_handlers(app)

    # Register API routes with version prefix
    app.include_router(notes_router, prefix="/v1")

    # Health check endpoint
    @app.get("/health", tags=["Health"])
    async def health_check(request: Request) -> Dict[str, Any]:
        """Health check endpoint with database connectivity test."""
        try:
            await request.app.state.db.ping()

            return {
                "status": "healthy",
                "service": settings.service_name,
                "version": __version__,
                "database": "connected"
            }
        except Exception as e:
            logger.error(f"Health check failed: {e}")
            raise ServiceUnavailableError(
                detail="Database connection failed",
                database_error=str(e)
            )

    # Ready check endpoint (Kubernetes style)
    @app.get("/ready", tags=["Health"])
    async def ready_check(request: Request) -> Dict[str, Any]:
        """Readiness check endpoint."""
        try:
            pool = await request.app.state.db.get_pool()
            async with pool.acquire() as conn:
                result = await conn.fetchval("SELECT COUNT(*) FROM pg_stat_activity")

            return {
                "status": "ready",
                "service": settings.service_name,
                "database_connections": result
            }
        except Exception as e:
            logger.error(f"Readiness check failed: {e}")
            raise ServiceUnavailableError(
                detail="Service not ready",
                database_error=str(e)
            )

    # Live check endpoint (Kubernetes style)
    @app.get("/live", tags=["Health"])
    async def liveness_check() -> Dict[str, str]:
        """Liveness check endpoint."""
        return {
            "status": "alive",
            "service": settings.service_name
        }

    # Root endpoint
    @app.get("/", tags=["Root"])
    async def root() -> Dict[str, str]:
        """Root endpoint with API information."""
        return {
            "service": settings.app_name,
            "version": __version__,
            "docs": "/docs",
            "health": "/health"
        }

    return app


# Create the application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn
    settings = get_settings()

    uvicorn.run(
        "notes_service.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
