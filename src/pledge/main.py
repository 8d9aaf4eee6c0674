"""FastAPI application factory and main entry point."""

from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from pledge import __version__
from pledge.api.v1 import api_router
from pledge.core.config import get_settings
from pledge.core.logging import configure_logging
from pledge.infrastructure.database.session import async_engine
from pledge.services.notifications import close_notification_sender
from pledge.services.ownership import close_ownership_aggregator


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan context manager for startup/shutdown events."""
    # Startup
    settings = get_settings()
    configure_logging(settings)
    app.state.settings = settings

    yield

    # Shutdown
    await close_notification_sender()
    await close_ownership_aggregator()
    await async_engine.dispose()


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=__version__,
        description="Pledge Editions Backend API",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register routes
    register_routes(app)

    return app


def register_routes(app: FastAPI) -> None:
    """Register all application routes."""
    settings = get_settings()

    # Include API router
    app.include_router(api_router, prefix=settings.api_v1_prefix)

    @app.get("/health", tags=["System"])
    async def health_check():
        """Health check endpoint for load balancers and monitoring."""
        return {
            "status": "healthy",
            "version": __version__,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @app.get(f"{settings.api_v1_prefix}/", tags=["API"])
    async def api_root():
        """API root endpoint with application info."""
        return {
            "name": settings.app_name,
            "version": __version__,
            "environment": settings.environment,
            "default_chain_id": settings.default_chain_id,
        }


# Create application instance
app = create_app()
