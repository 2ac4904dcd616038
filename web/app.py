"""
FastAPI application for the land matching engine.

Production deployment configuration via environment variables.
"""

import logging
import os
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.land import __version__ as ENGINE_VERSION
from utils.config import Config
from web.land_routes import router as land_router


logger = logging.getLogger(__name__)

# =============================================================================
# Environment Configuration
# =============================================================================

IS_PRODUCTION = os.getenv("PRODUCTION", "").lower() == "true"


def create_app(config: Optional[Config] = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    config = config or Config.load()

    app = FastAPI(
        title="Land Matching Engine",
        description="Matches customers' land search conditions against listed land",
        version=ENGINE_VERSION,
        # Disable docs for private deployment
        docs_url=None if IS_PRODUCTION else "/docs",
        redoc_url=None if IS_PRODUCTION else "/redoc",
        openapi_url=None if IS_PRODUCTION else "/openapi.json",
        debug=config.debug and not IS_PRODUCTION,
    )

    @app.get("/health", include_in_schema=False)
    def health():
        """Health endpoint. No dependencies, no IO."""
        return {
            "status": "healthy",
            "version": ENGINE_VERSION,
            "environment": "production" if IS_PRODUCTION else "development",
        }

    if config.allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.allowed_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
            allow_headers=["*"],
        )

    app.include_router(land_router)

    logger.debug("Configuration: %s", config.to_dict())
    logger.info("Land matching API configured (data dir: %s)", config.data_dir)
    return app


# Create app instance for uvicorn
app = create_app()
