"""FastAPI dependency injection utilities."""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Request

from search_sync.config import Settings, get_settings
from search_sync.core.exceptions import ServiceUnavailableException
from search_sync.core.models import AccessMode
from search_sync.repositories.content_repository import ContentRepository, RestContentRepository
from search_sync.services.enrichment_service import EnrichmentResolver
from search_sync.services.index_service import SearchIndexService
from search_sync.services.reindex_service import ReindexOrchestrator
from search_sync.services.search_service import SearchService
from search_sync.transform.transformers import TransformerRegistry

# Common dependencies that can be injected into route handlers
SettingsDep = Annotated[Settings, Depends(get_settings)]


def require_enabled(settings: SettingsDep) -> None:
    """Reject requests while sync is disabled by configuration."""
    if settings.disabled:
        raise ServiceUnavailableException()


def get_transformer_registry(request: Request) -> TransformerRegistry:
    """Registry composed once when the app was created."""
    registry = getattr(request.app.state, "transformer_registry", None)
    return registry if registry is not None else TransformerRegistry()


async def get_index_service(settings: SettingsDep) -> AsyncGenerator[SearchIndexService, None]:
    """Index client scoped to a single request."""
    service = SearchIndexService(settings)
    try:
        yield service
    finally:
        await service.aclose()


def get_repository(settings: SettingsDep) -> ContentRepository:
    """Repository client scoped to a single request."""
    return RestContentRepository(settings)


IndexServiceDep = Annotated[SearchIndexService, Depends(get_index_service)]
RepositoryDep = Annotated[ContentRepository, Depends(get_repository)]
TransformerRegistryDep = Annotated[TransformerRegistry, Depends(get_transformer_registry)]


def get_search_service(
    settings: SettingsDep,
    index_service: IndexServiceDep,
    repository: RepositoryDep,
) -> SearchService:
    """Get a SearchService instance.

    Returns:
        SearchService instance.
    """
    access_mode = AccessMode.BYPASS if settings.override_access else AccessMode.ENFORCE
    return SearchService(settings, index_service, EnrichmentResolver(repository, access_mode))


def get_reindex_orchestrator(
    settings: SettingsDep,
    index_service: IndexServiceDep,
    repository: RepositoryDep,
    registry: TransformerRegistryDep,
) -> ReindexOrchestrator:
    """Get a ReindexOrchestrator instance.

    Returns:
        ReindexOrchestrator instance.
    """
    return ReindexOrchestrator(settings, repository, index_service, registry)


# Type aliases for dependency injection
SearchServiceDep = Annotated[SearchService, Depends(get_search_service)]
ReindexOrchestratorDep = Annotated[ReindexOrchestrator, Depends(get_reindex_orchestrator)]
