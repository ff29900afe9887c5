"""Main FastAPI application."""

from collections.abc import AsyncGenerator, Mapping
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from search_sync.api.v1.router import api_router
from search_sync.config import Settings, get_settings
from search_sync.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    unhandled_exception_handler,
)
from search_sync.core.logging import get_logger, setup_logging
from search_sync.core.security import security_headers_middleware
from search_sync.services.index_service import SearchIndexService
from search_sync.transform.transformers import FieldTransformer, TransformerRegistry

# Setup logging
setup_logging()
logger = get_logger(__name__)


async def configure_index(settings: Settings) -> None:
    """Create the index and declare the searchable attributes.

    The union of every collection's index fields is both searchable and
    highlighted. Failures are logged; startup continues.
    """
    index_service = SearchIndexService(settings)
    try:
        await index_service.ensure_index()
        await index_service.configure_settings(
            settings.all_index_fields,
            settings.all_index_fields,
        )
        logger.info("Index '%s' configured", settings.index_name)
    except Exception as exc:
        logger.error("Failed to configure index '%s': %s", settings.index_name, exc)
    finally:
        await index_service.aclose()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan events.

    Args:
        app: The FastAPI application instance.

    Yields:
        None
    """
    # Startup
    settings = get_settings()
    logger.info("Starting up Search Sync API")
    if settings.disabled:
        logger.info("Search sync is disabled")
    elif settings.configure_index_on_init:
        await configure_index(settings)
    yield
    # Shutdown
    logger.info("Shutting down Search Sync API")


def create_app(transformers: Mapping[str, FieldTransformer] | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        transformers: Field transformers overriding the defaults per type tag.

    Returns:
        FastAPI: Configured FastAPI application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Keeps a hosted search index in sync with a content repository",
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.transformer_registry = TransformerRegistry(transformers)

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_credentials,
        allow_methods=settings.cors_methods,
        allow_headers=settings.cors_headers,
    )

    # Add security headers middleware
    app.middleware("http")(security_headers_middleware)

    # Register exception handlers
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # Include API router with versioning
    app.include_router(api_router, prefix=settings.api_v1_prefix)

    return app


app = create_app()
