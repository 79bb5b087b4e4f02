"""
procflow API

Builds the FastAPI application: JSON logging, correlation ids, the domain
error envelope, the /api/v1 routers and a /health endpoint. Storage is MongoDB
unless REPOSITORY_BACKEND=memory.
"""

from contextlib import asynccontextmanager
from typing import Any, Dict

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pymongo.errors import PyMongoError

from . import __version__
from .config.settings import settings
from .api.routes import api_router
from .api.middleware import CorrelationIdMiddleware, register_error_handlers
from .repositories.mongo_client import create_indexes, close_connection, health_check
from .utils.logger import setup_logging, get_logger

setup_logging()
logger = get_logger(__name__)

APP_VERSION = __version__


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Ensure Mongo indexes on startup and close the client on shutdown"""
    logger.info(f"Starting procflow {APP_VERSION} ({settings.repository_backend} backend, {settings.environment})")

    if not settings.uses_memory_backend:
        try:
            create_indexes()
        except PyMongoError as e:
            # The API still serves; requests will surface storage errors themselves
            logger.error(f"Failed to create indexes: {e}")

    yield

    if not settings.uses_memory_backend:
        close_connection()
    logger.info("procflow stopped")


def storage_health() -> Dict[str, Any]:
    if settings.uses_memory_backend:
        return {"status": "healthy", "backend": "memory"}
    return {**health_check(), "backend": "mongo"}


def create_app() -> FastAPI:
    application = FastAPI(
        title="procflow",
        description="Versioned workflow templates and role-gated process execution",
        version=APP_VERSION,
        lifespan=lifespan,
        docs_url="/api/docs" if settings.debug else None,
        redoc_url="/api/redoc" if settings.debug else None,
        openapi_url="/api/openapi.json" if settings.debug else None,
    )

    allow_all = settings.cors_origins.strip() == "*"
    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else settings.cors_origins_list,
        # Browsers refuse credentials with a wildcard origin
        allow_credentials=not allow_all,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Correlation-Id"],
    )
    application.add_middleware(CorrelationIdMiddleware)

    register_error_handlers(application)
    application.include_router(api_router, prefix="/api/v1")

    @application.get("/health", tags=["Health"])
    def health():
        """Liveness plus storage reachability; no actor headers needed"""
        storage = storage_health()
        return {
            "status": "healthy" if storage.get("status") == "healthy" else "degraded",
            "version": APP_VERSION,
            "environment": settings.environment,
            "storage": storage
        }

    return application


app = create_app()
