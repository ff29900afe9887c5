"""Search endpoint with optional enrichment from the content repository."""

from fastapi import APIRouter, Depends, Query, Request, status

from search_sync.core.logging import get_logger
from search_sync.dependencies import SearchServiceDep, require_enabled
from search_sync.schemas.search import SearchResponse
from search_sync.services.search_service import parse_select

logger = get_logger(__name__)

router = APIRouter(tags=["search"], dependencies=[Depends(require_enabled)])


@router.get(
    "/search",
    response_model=SearchResponse,
    response_model_by_alias=True,
    summary="Search",
    description="Queries the search index; optionally attaches the source documents",
    status_code=status.HTTP_200_OK,
)
async def search(
    request: Request,
    search_service: SearchServiceDep,
    query: str | None = Query(None, description="Search text"),
    page: int = Query(0, description="Zero-based page number"),
    hits_per_page: int | None = Query(None, alias="hitsPerPage", description="Page size"),
    collection: str | None = Query(None, description="Restrict hits to one collection"),
    enrich_results: bool = Query(
        False,
        alias="enrichResults",
        description="Fetch the source documents for the hits",
    ),
) -> SearchResponse:
    """Search the index.

    Field projections for enrichment are passed as
    ``select[<collection>][<field>]=true|false`` query parameters. The caller's
    Authorization header is forwarded to the repository for enrichment lookups.
    """
    selection = parse_select(request.query_params.multi_items())

    response = await search_service.search(
        query,
        page=page,
        hits_per_page=hits_per_page,
        collection=collection,
        enrich=enrich_results,
        selection_by_collection=selection,
        auth=request.headers.get("authorization"),
    )

    logger.info("Search completed: %d hits across %d pages", response.nb_hits, response.nb_pages)
    return response
