"""Attach live repository documents to search hits."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping, Sequence
from typing import Any

from search_sync.core.constants import K_COLLECTION, K_OBJECT_ID
from search_sync.core.logging import get_logger
from search_sync.core.models import AccessMode, EnrichedMap
from search_sync.repositories.content_repository import ContentRepository

logger = get_logger(__name__)

SelectionByCollection = Mapping[str, Mapping[str, bool]]


def group_hits_by_collection(hits: Sequence[Mapping[str, Any]]) -> dict[str, list[str]]:
    """Partition hit identities by their origin collection.

    Hits without a string collection tag or without an objectID are skipped.
    Identities are de-duplicated per collection, keeping first-seen order.
    """
    grouped: dict[str, list[str]] = {}
    for hit in hits:
        collection = hit.get(K_COLLECTION)
        object_id = hit.get(K_OBJECT_ID)
        if not isinstance(collection, str) or not collection:
            continue
        if object_id is None or object_id == "":
            continue
        ids = grouped.setdefault(collection, [])
        identity = str(object_id)
        if identity not in ids:
            ids.append(identity)
    return grouped


class EnrichmentResolver:
    """Resolves search hits to their source documents, one lookup per collection."""

    def __init__(self, repository: ContentRepository, access_mode: AccessMode):
        """Initialize the resolver.

        Args:
            repository: Content repository to read documents from.
            access_mode: Fixed access policy for every lookup this resolver makes.
        """
        self.repository = repository
        self.access_mode = access_mode

    async def _lookup(
        self,
        collection: str,
        ids: list[str],
        selection: Mapping[str, bool] | None,
        auth: str | None,
    ) -> list[dict[str, Any]]:
        try:
            result = await self.repository.find(
                collection,
                filter={"id": {"in": ids}},
                page=1,
                page_size=len(ids),
                field_selection=selection,
                access_mode=self.access_mode,
                auth=auth,
            )
        except Exception as exc:
            logger.error(
                "Enrichment lookup failed for collection %s (%d ids): %s",
                collection,
                len(ids),
                exc,
            )
            return []
        return list(result.documents)

    async def enrich(
        self,
        hits: Sequence[Mapping[str, Any]],
        selection_by_collection: SelectionByCollection | None = None,
        *,
        auth: str | None = None,
    ) -> EnrichedMap:
        """Fetch the documents behind a set of hits.

        Args:
            hits: Raw index hits carrying ``collection`` and ``objectID``.
            selection_by_collection: Optional field projection per collection.
            auth: Caller credentials forwarded when access rules are enforced.

        Returns:
            EnrichedMap: Document id (stringified) to document. A collection whose
            lookup fails contributes nothing.
        """
        grouped = group_hits_by_collection(hits)
        if not grouped:
            return {}

        logger.info(
            "Enriching %d hits across %d collections",
            sum(len(ids) for ids in grouped.values()),
            len(grouped),
        )

        selections = selection_by_collection or {}
        results = await asyncio.gather(
            *(
                self._lookup(collection, ids, selections.get(collection), auth)
                for collection, ids in grouped.items()
            )
        )

        enriched: EnrichedMap = {}
        for documents in results:
            for doc in documents:
                identity = doc.get("id")
                if identity is None:
                    continue
                enriched[str(identity)] = doc

        logger.info("Enriched %d documents for search results", len(enriched))
        return enriched


__all__ = ["EnrichmentResolver", "group_hits_by_collection"]
