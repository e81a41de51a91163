"""
FastAPI web application exposing the episode catalog.

Run with:
    uvicorn podcatalog.web.app:create_app --factory
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from podcatalog import __version__
from podcatalog.config import Config
from podcatalog.db.factory import create_store_from_config
from podcatalog.db.store import EpisodeStoreInterface
from podcatalog.errors import CatalogError
from podcatalog.podcast.episode_sync import EpisodeSyncService
from podcatalog.web.episode_routes import catalog_error_handler
from podcatalog.web.episode_routes import router as episode_router

logger = logging.getLogger(__name__)


def _validate_jwt_config(config: Config) -> None:
    """
    Validate JWT configuration at startup.

    In DEV_MODE, allows running without JWT_SECRET_KEY by using an insecure key.
    In production, requires JWT_SECRET_KEY to be set.
    """
    is_dev_mode = os.getenv("DEV_MODE", "").lower() == "true"
    if not config.JWT_SECRET_KEY:
        if is_dev_mode:
            logger.warning(
                "JWT_SECRET_KEY not set - using insecure dev key. "
                "DO NOT use in production!"
            )
            config.JWT_SECRET_KEY = "dev-secret-key-insecure-do-not-use-in-prod"
        else:
            raise RuntimeError(
                "JWT_SECRET_KEY environment variable must be set. "
                "Set DEV_MODE=true to use an insecure dev key for local testing."
            )


def create_app(
    config: Optional[Config] = None,
    store: Optional[EpisodeStoreInterface] = None,
    episode_service: Optional[EpisodeSyncService] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Parameters:
        config (Optional[Config]): Application configuration; loaded from the environment if omitted.
        store (Optional[EpisodeStoreInterface]): Episode store; created from `config` if omitted.
        episode_service (Optional[EpisodeSyncService]): Service behind the episode routes; built from `store` if omitted.

    Returns:
        FastAPI: The configured application.
    """
    config = config or Config()

    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL, logging.INFO),
        format="%(asctime)s - %(levelname)s - %(message)s"
    )

    _validate_jwt_config(config)

    store = store or create_store_from_config(config)
    episode_service = episode_service or EpisodeSyncService.from_config(store, config)

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        """
        FastAPI lifespan context manager.

        Handles startup logging and closes the store on shutdown.
        """
        logger.info("Application started")

        yield

        store.close()
        logger.info("Application shutdown")

    app = FastAPI(
        title="Podcatalog",
        description="Podcast episode catalog with feed sync",
        version=__version__,
        lifespan=lifespan
    )

    # CORS middleware (configurable via environment variable)
    allowed_origins = config.WEB_ALLOWED_ORIGINS.split(",") if config.WEB_ALLOWED_ORIGINS != "*" else ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Store config and services in app state for access in routes
    app.state.config = config
    app.state.store = store
    app.state.episode_service = episode_service

    app.add_exception_handler(CatalogError, catalog_error_handler)
    app.include_router(episode_router)

    @app.get("/health")
    async def health():
        """Liveness check."""
        return {"status": "healthy"}

    return app
