from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from typing import Optional
import logging
import uvicorn

from schema_sync.core.config import Settings, get_settings
from schema_sync.api.routers import database, sync


def setup_logging(settings: Optional[Settings] = None) -> None:
    """Configure root logging from settings"""
    settings = settings or get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format=settings.LOG_FORMAT
    )


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle"""
    # Startup
    logger.info("Starting Schema Sync...")

    yield

    # Shutdown
    logger.info("Shutting down Schema Sync...")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings)

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        lifespan=lifespan
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(sync.router, prefix=f"{settings.API_V1_STR}/sync", tags=["sync"])
    app.include_router(database.router, prefix=f"{settings.API_V1_STR}/database", tags=["database"])

    @app.get("/")
    async def root():
        """Root endpoint"""
        return {
            "name": settings.PROJECT_NAME,
            "version": settings.VERSION,
            "status": "operational"
        }

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "version": settings.VERSION
        }

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "schema_sync.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )
