"""Search index service backed by a payload-only Qdrant collection."""

from __future__ import annotations

import math
from collections.abc import Awaitable, Sequence
from typing import Any, TypeVar

import grpc
from qdrant_client import AsyncQdrantClient
from qdrant_client import models as q
from qdrant_client.http.exceptions import UnexpectedResponse

from search_sync.adapters import index_mapper
from search_sync.config import Settings
from search_sync.core.constants import (
    HTTP_TOO_MANY_REQUESTS,
    INDEX_SPARSE_VEC,
    K_COLLECTION,
    K_OBJECT_ID,
)
from search_sync.core.exceptions import RateLimitError
from search_sync.core.logging import get_logger
from search_sync.core.models import IndexObject, IndexSearchResult

logger = get_logger(__name__)

T = TypeVar("T")


def _retry_after(exc: UnexpectedResponse) -> float | None:
    value = exc.headers.get("retry-after") if exc.headers is not None else None
    try:
        return float(value) if value is not None else None
    except ValueError:
        return None


class SearchIndexService:
    """Thin wrapper around the Qdrant client exposing the hosted-index operations."""

    def __init__(
        self,
        settings: Settings,
        aclient: AsyncQdrantClient | None = None,
        searchable_fields: Sequence[str] | None = None,
    ):
        self.settings = settings
        self.col = settings.index_name
        self.searchable_fields: list[str] = list(
            searchable_fields if searchable_fields is not None else settings.all_index_fields
        )
        self.highlight_fields: list[str] = list(self.searchable_fields)

        self.aclient = aclient or AsyncQdrantClient(
            url=settings.qdrant_url,
            api_key=settings.qdrant_api_key,
            prefer_grpc=settings.qdrant_prefer_grpc,
            timeout=settings.qdrant_timeout,
        )

        logger.debug("SearchIndexService initialized for index '%s'", self.col)

    async def aclose(self) -> None:
        """Close the client."""
        await self.aclient.close()

    async def _guard(self, operation: str, call: Awaitable[T]) -> T:
        """Await a client call, translating rate-limit errors into RateLimitError.

        Covers REST 429 responses and gRPC RESOURCE_EXHAUSTED.
        """
        try:
            return await call
        except UnexpectedResponse as exc:
            if exc.status_code == HTTP_TOO_MANY_REQUESTS:
                logger.warning("Index rate limit hit during %s on '%s'", operation, self.col)
                raise RateLimitError(
                    f"Rate limit exceeded during {operation}",
                    retry_after=_retry_after(exc),
                ) from exc
            raise
        except grpc.aio.AioRpcError as exc:
            if exc.code() == grpc.StatusCode.RESOURCE_EXHAUSTED:
                logger.warning("Index rate limit hit during %s on '%s'", operation, self.col)
                raise RateLimitError(f"Rate limit exceeded during {operation}") from exc
            raise

    async def index_exists(self) -> bool:
        """Return True if the index collection already exists."""
        return await self.aclient.collection_exists(self.col)

    async def ensure_index(self) -> None:
        """Ensure the index collection exists with identity indexes."""
        if await self.index_exists():
            logger.info("Index '%s' already exists", self.col)
            return

        logger.info("Creating index '%s'", self.col)
        await self.aclient.create_collection(
            collection_name=self.col,
            vectors_config={},
            sparse_vectors_config={
                INDEX_SPARSE_VEC: q.SparseVectorParams(index=q.SparseIndexParams(on_disk=True)),
            },
            on_disk_payload=True,
        )
        await self._create_payload_index(K_OBJECT_ID, q.PayloadSchemaType.KEYWORD)
        await self._create_payload_index(K_COLLECTION, q.PayloadSchemaType.KEYWORD)
        logger.info("Created index '%s'", self.col)

    async def _create_payload_index(
        self,
        field_name: str,
        schema: q.PayloadSchemaType | q.TextIndexParams,
    ) -> None:
        try:
            await self.aclient.create_payload_index(
                collection_name=self.col,
                field_name=field_name,
                field_schema=schema,
            )
        except Exception as exc:  # pragma: no cover
            # Only ignore already-exists errors; otherwise warn
            if "exists" in str(exc).lower():
                logger.debug("Index '%s' already exists", field_name)
            else:
                logger.warning("Failed to create index '%s': %s", field_name, exc)

    async def configure_settings(
        self,
        searchable_fields: Sequence[str],
        highlight_fields: Sequence[str] | None = None,
    ) -> None:
        """Declare searchable and highlighted attributes.

        Searchable attributes get a text payload index so text matching is served
        by the index rather than a full scan.
        """
        self.searchable_fields = list(dict.fromkeys(searchable_fields))
        self.highlight_fields = list(
            dict.fromkeys(highlight_fields if highlight_fields is not None else searchable_fields)
        )

        for field_name in self.searchable_fields:
            await self._create_payload_index(
                field_name,
                q.TextIndexParams(
                    type=q.TextIndexType.TEXT,
                    tokenizer=q.TokenizerType.WORD,
                    lowercase=True,
                ),
            )
        logger.info(
            "Configured index '%s': searchable=%s highlight=%s",
            self.col,
            self.searchable_fields,
            self.highlight_fields,
        )

    async def upsert_if_exists(self, objects: Sequence[IndexObject]) -> int:
        """Refresh attributes of objects already in the index; never creates new ones.

        Returns:
            int: Number of objects that existed and were updated.
        """
        if not objects:
            return 0

        point_ids = [index_mapper.object_point_id(obj.object_id) for obj in objects]
        existing = await self._guard(
            "existence check",
            self.aclient.retrieve(
                collection_name=self.col,
                ids=point_ids,
                with_payload=False,
                with_vectors=False,
            ),
        )
        existing_ids = {str(record.id) for record in existing}

        operations = [
            index_mapper.index_object_to_set_payload(obj)
            for obj, point_id in zip(objects, point_ids)
            if point_id in existing_ids
        ]
        skipped = len(objects) - len(operations)
        if skipped:
            logger.debug("Skipping %d objects not yet present in '%s'", skipped, self.col)

        if operations:
            await self._guard(
                "batch update",
                self.aclient.batch_update_points(
                    collection_name=self.col,
                    update_operations=operations,
                    wait=True,
                ),
            )
        logger.debug("Updated %d existing objects in '%s'", len(operations), self.col)
        return len(operations)

    async def upsert_or_create(self, obj: IndexObject) -> None:
        """Create or fully replace one object."""
        await self._guard(
            "upsert",
            self.aclient.upsert(
                collection_name=self.col,
                points=[index_mapper.index_object_to_point(obj)],
                wait=True,
            ),
        )

    async def delete_by_id(self, object_id: str) -> None:
        """Delete one object by its objectID."""
        await self._guard(
            "delete",
            self.aclient.delete(
                collection_name=self.col,
                points_selector=q.PointIdsList(points=[index_mapper.object_point_id(object_id)]),
                wait=True,
            ),
        )

    async def get_object(self, object_id: str) -> dict[str, Any] | None:
        """Fetch one stored object by objectID."""
        records = await self._guard(
            "retrieve",
            self.aclient.retrieve(
                collection_name=self.col,
                ids=[index_mapper.object_point_id(object_id)],
                with_payload=True,
                with_vectors=False,
            ),
        )
        return index_mapper.record_to_hit(records[0]) if records else None

    async def search(
        self,
        query: str,
        *,
        page: int = 0,
        hits_per_page: int = 20,
        collection: str | None = None,
    ) -> IndexSearchResult:
        """Text search over the searchable attributes.

        A hit matches when any searchable attribute contains every query token.
        Pages are zero-based.
        """
        should: list[q.Condition] = [
            q.FieldCondition(key=field_name, match=q.MatchText(text=query))
            for field_name in self.searchable_fields
        ]
        if not should:
            logger.warning("No searchable attributes configured for '%s'", self.col)

        must: list[q.Condition] = []
        if collection:
            must.append(q.FieldCondition(key=K_COLLECTION, match=q.MatchValue(value=collection)))

        query_filter = q.Filter(should=should or None, must=must or None)

        counted = await self._guard(
            "count",
            self.aclient.count(collection_name=self.col, count_filter=query_filter, exact=True),
        )
        response = await self._guard(
            "search",
            self.aclient.query_points(
                collection_name=self.col,
                query_filter=query_filter,
                limit=hits_per_page,
                offset=page * hits_per_page,
                with_payload=True,
                with_vectors=False,
            ),
        )

        hits = [
            index_mapper.with_highlights(
                index_mapper.record_to_hit(point), self.highlight_fields, query
            )
            for point in response.points
        ]
        total_pages = math.ceil(counted.count / hits_per_page) if hits_per_page else 0

        logger.info(
            "Index search '%s' on '%s': %d hits (page %d/%d)",
            query,
            self.col,
            counted.count,
            page,
            total_pages,
        )
        return IndexSearchResult(
            hits=hits,
            page=page,
            total_hits=counted.count,
            total_pages=total_pages,
            hits_per_page=hits_per_page,
        )


__all__ = ["SearchIndexService"]
