"""Search over the index with optional enrichment from the repository."""

import re
from collections.abc import Iterable

from search_sync.config import Settings
from search_sync.core.exceptions import UpstreamException, ValidationException
from search_sync.core.logging import get_logger
from search_sync.schemas.search import SearchResponse
from search_sync.services.enrichment_service import EnrichmentResolver, SelectionByCollection
from search_sync.services.index_service import SearchIndexService

logger = get_logger(__name__)

_SELECT_PARAM = re.compile(r"^select\[([^\[\]]+)\]\[([^\[\]]+)\]$")


def parse_select(params: Iterable[tuple[str, str]]) -> dict[str, dict[str, bool]] | None:
    """Turn ``select[collection][field]=true|false`` query params into projections.

    Values other than "true"/"false" are ignored. Returns None when no select
    parameter is present.
    """
    selection: dict[str, dict[str, bool]] = {}
    for key, value in params:
        match = _SELECT_PARAM.match(key)
        if not match:
            continue
        collection, field_name = match.groups()
        fields = selection.setdefault(collection, {})
        if value == "true":
            fields[field_name] = True
        elif value == "false":
            fields[field_name] = False
    return selection or None


class SearchService:
    """Service for index search and hit enrichment."""

    def __init__(
        self,
        settings: Settings,
        index_service: SearchIndexService,
        enrichment: EnrichmentResolver,
    ):
        self.settings = settings
        self.index_service = index_service
        self.enrichment = enrichment

    async def search(
        self,
        query: str | None,
        *,
        page: int = 0,
        hits_per_page: int | None = None,
        collection: str | None = None,
        enrich: bool = False,
        selection_by_collection: SelectionByCollection | None = None,
        auth: str | None = None,
    ) -> SearchResponse:
        """Run a query and optionally attach source documents to the hits.

        Raises:
            ValidationException: If the query is missing or paging is out of range.
            UpstreamException: If the index fails.
        """
        if query is None or not query.strip():
            raise ValidationException("Search query is required")

        per_page = (
            hits_per_page
            if hits_per_page is not None
            else self.settings.search_default_hits_per_page
        )
        if page < 0:
            raise ValidationException("page must be >= 0")
        if not 1 <= per_page <= self.settings.search_max_hits_per_page:
            raise ValidationException(
                f"hitsPerPage must be between 1 and {self.settings.search_max_hits_per_page}"
            )

        logger.info(
            "Search: query='%s', page=%s, hits_per_page=%s, collection=%s, enrich=%s",
            query,
            page,
            per_page,
            collection,
            enrich,
        )

        try:
            result = await self.index_service.search(
                query,
                page=page,
                hits_per_page=per_page,
                collection=collection,
            )
        except Exception as exc:
            logger.error("Error performing search: %s", exc, exc_info=True)
            raise UpstreamException("Search failed", detail=str(exc)) from exc

        enriched = None
        if enrich:
            enriched = await self.enrichment.enrich(
                result.hits,
                selection_by_collection,
                auth=auth,
            )

        return SearchResponse(
            query=query,
            hits=result.hits,
            page=result.page,
            nb_hits=result.total_hits,
            nb_pages=result.total_pages,
            hits_per_page=result.hits_per_page,
            enriched_hits=enriched,
        )
