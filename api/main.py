"""
nb2prod model server - FastAPI Application

Serves the trained model bundle. Configuration is read from settings (.env file).
"""

import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from nb2prod import __version__
from nb2prod.settings import get_settings
from nb2prod import logging_setup
from api.dependencies import lifespan_handler
from api.routers import health, invocations

cfg = get_settings()

logging_setup.setup_logging(cfg.log_level)
logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """
    Application factory for creating FastAPI app.

    Returns:
        Configured FastAPI application instance
    """
    app = FastAPI(
        title="nb2prod model server",
        description="Serves models trained by the nb2prod pipeline",
        version=__version__,
        lifespan=lifespan_handler
    )

    logger.info(f"Configuring CORS with origins: {cfg.cors_origins}")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(invocations.router, tags=["invocations"])
    app.include_router(health.router, prefix="/api/v1/health", tags=["health"])

    @app.get("/")
    async def root():
        """Root endpoint - API info"""
        return {
            "name": "nb2prod model server",
            "version": __version__,
            "environment": cfg.env,
            "ping": "/ping",
            "invocations": "/invocations",
            "docs": "/docs",
        }

    logger.info(f"FastAPI application created (env={cfg.env})")
    return app


app = create_app()
