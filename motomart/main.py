"""
MotoMart API - main application.

Builds the FastAPI app, wires the storage collaborator and image store into
app.state, and mounts the routers.
"""
import logging
import os
import sys
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from . import repository
from .config import Config, config as default_config
from .database import Database
from .errors import register_exception_handlers
from .routes import admin_router, listings_router, motorcycles_router, users_router
from .security import hash_password
from .uploads import ImageStore

logger = logging.getLogger(__name__)


def configure_logging(settings: Config) -> None:
    """Configure root logging: stdout plus an optional log file.

    Handlers from an earlier app are replaced, so the latest settings win.
    """
    handlers = [logging.StreamHandler(sys.stdout)]
    if settings.LOG_FILE:
        handlers.append(logging.FileHandler(settings.LOG_FILE, delay=True))
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers,
        force=True
    )


def create_app(settings: Optional[Config] = None, database: Optional[Database] = None) -> FastAPI:
    settings = settings or default_config
    configure_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan management."""
        # Startup
        logger.info("Starting MotoMart API...")
        try:
            settings.validate()
            app.state.db.init_schema()
            app.state.images.ensure_dirs()
            if settings.ADMIN_PASSWORD:
                repository.ensure_admin(app.state.db, settings.ADMIN_USERNAME,
                                        settings.ADMIN_EMAIL, hash_password(settings.ADMIN_PASSWORD))
            logger.info(f"Database path: {app.state.db.path}")
            logger.info("API startup complete")
            yield
        except Exception as e:
            logger.error(f"Startup failed: {e}")
            raise
        finally:
            # Shutdown
            logger.info("Shutting down MotoMart API...")

    app = FastAPI(
        title=settings.API_TITLE,
        version=settings.API_VERSION,
        description=settings.API_DESCRIPTION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )

    app.state.config = settings
    app.state.db = database or Database(settings.DB_PATH)
    app.state.images = ImageStore(
        settings.UPLOAD_DIR,
        url_prefix="/uploads",
        max_bytes=settings.MAX_UPLOAD_BYTES,
        max_files=settings.MAX_LISTING_IMAGES,
    )

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
        allow_methods=settings.CORS_ALLOW_METHODS,
        allow_headers=settings.CORS_ALLOW_HEADERS,
    )

    register_exception_handlers(app)

    # Health check endpoint
    @app.get("/health")
    async def health_check(request: Request):
        """Health check endpoint."""
        try:
            request.app.state.db.ping()
            return {
                "status": "healthy",
                "version": settings.API_VERSION,
                "database": "connected"
            }
        except Exception as e:
            logger.error(f"Health check failed: {e}")
            raise HTTPException(status_code=503, detail="Service unavailable")

    # Include routers
    app.include_router(users_router)
    app.include_router(listings_router)
    app.include_router(motorcycles_router)
    app.include_router(admin_router)

    app.mount(
        "/uploads",
        StaticFiles(directory=os.path.abspath(settings.UPLOAD_DIR), check_dir=False),
        name="uploads",
    )
    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "motomart.main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "5000")),
        reload=True,
        log_level=default_config.LOG_LEVEL.lower()
    )
