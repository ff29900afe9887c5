"""Bulk reindex endpoint."""

from fastapi import APIRouter, Depends, Request, status

from search_sync.core.logging import get_logger
from search_sync.core.security import reindex_access_predicate
from search_sync.dependencies import (
    ReindexOrchestratorDep,
    RepositoryDep,
    SettingsDep,
    require_enabled,
)
from search_sync.schemas.search import ReindexResponse

logger = get_logger(__name__)

router = APIRouter(tags=["reindex"], dependencies=[Depends(require_enabled)])


@router.post(
    "/reindex/{collection}",
    response_model=ReindexResponse,
    summary="Reindex Collection",
    description="Re-reads every document of a collection and refreshes it in the index",
    status_code=status.HTTP_200_OK,
)
async def reindex_collection(
    collection: str,
    request: Request,
    settings: SettingsDep,
    repository: RepositoryDep,
    orchestrator: ReindexOrchestratorDep,
) -> ReindexResponse:
    """Reindex a single collection.

    Args:
        collection: Slug of the collection to reindex.
        request: Incoming request, used for the access check.
        settings: Injected application settings.
        repository: Injected repository, used to resolve the caller.
        orchestrator: Injected reindex orchestrator.

    Returns:
        ReindexResponse: Number of documents sent to the index.
    """
    result = await orchestrator.reindex(
        collection.strip(),
        reindex_access_predicate(request, settings, repository),
    )
    return ReindexResponse(
        indexed=result.indexed_count,
        message=f"Successfully indexed {result.indexed_count} documents from {collection}",
    )
