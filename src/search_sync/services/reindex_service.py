"""Bulk reindex of a collection into the search index."""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any

from search_sync.config import Settings
from search_sync.core.exceptions import (
    ForbiddenException,
    NotFoundException,
    RateLimitError,
    ReindexCancelled,
    UpstreamException,
    ValidationException,
)
from search_sync.core.logging import get_logger
from search_sync.core.models import AccessMode, CollectionSchema, IndexObject
from search_sync.repositories.content_repository import ContentRepository
from search_sync.services.index_service import SearchIndexService
from search_sync.transform.flatten import build_index_object, document_identity
from search_sync.transform.transformers import TransformerRegistry

logger = get_logger(__name__)

AccessPredicate = Callable[[], bool | Awaitable[bool]]
ProgressCallback = Callable[[int, int], Any]


@dataclass(slots=True)
class ReindexResult:
    """Outcome of a completed reindex run."""

    collection: str
    indexed_count: int
    pages: int
    total_count: int


def backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    """Exponential backoff: base doubled per attempt, capped at max_delay."""
    return min(base_delay * (2**attempt), max_delay)


class ReindexOrchestrator:
    """Paginates a collection, flattens each page and refreshes it in the index.

    Pages are processed strictly one after another. Pages already submitted stay
    in the index when a later page fails; since objectIDs are stable, re-running
    the reindex is the recovery path.
    """

    def __init__(
        self,
        settings: Settings,
        repository: ContentRepository,
        index_service: SearchIndexService,
        registry: TransformerRegistry,
        *,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.settings = settings
        self.repository = repository
        self.index_service = index_service
        self.registry = registry
        self.batch_size = settings.reindex_batch_size
        self.max_retries = settings.reindex_max_retries
        self._sleep = sleep

    async def reindex(
        self,
        collection: str,
        authorize: AccessPredicate,
        *,
        cancel_event: asyncio.Event | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> ReindexResult:
        """Reindex every document of a collection.

        Args:
            collection: Collection slug.
            authorize: Access predicate; evaluated before anything is read.
            cancel_event: When set, the run stops before the next page fetch.
            on_progress: Called with (indexed_so_far, total) after every page.

        Returns:
            ReindexResult: Counts for the finished run.

        Raises:
            ForbiddenException: If the access predicate rejects the caller.
            ValidationException: If no collection slug was given.
            NotFoundException: If the collection is not configured for sync.
            ReindexCancelled: If cancel_event was set before the run finished.
            UpstreamException: On repository failures or exhausted index retries.
        """
        allowed = authorize()
        if inspect.isawaitable(allowed):
            allowed = await allowed
        if not allowed:
            raise ForbiddenException()

        if not collection:
            raise ValidationException("Collection slug is required")

        collection_settings = self.settings.get_collection(collection)
        if collection_settings is None:
            raise NotFoundException(f"Collection '{collection}' not found in sync configuration")

        schema = self.repository.get_schema(collection)
        field_paths = collection_settings.index_fields

        page = 1
        pages = 0
        indexed = 0
        total = 0

        while True:
            if cancel_event is not None and cancel_event.is_set():
                logger.info("Reindex of %s cancelled after %d documents", collection, indexed)
                raise ReindexCancelled(collection, indexed)

            try:
                result = await self.repository.find(
                    collection,
                    page=page,
                    page_size=self.batch_size,
                    access_mode=AccessMode.BYPASS,
                )
            except Exception as exc:
                logger.error("Failed to fetch page %d of %s: %s", page, collection, exc)
                raise UpstreamException("Reindexing failed", detail=str(exc)) from exc

            if not result.documents:
                break

            total = result.total_count
            objects = await self._build_batch(result.documents, collection, field_paths, schema)
            await self._submit_with_retry(objects)

            pages += 1
            indexed += len(objects)
            logger.info("Indexed %d/%d documents from %s", indexed, total, collection)
            if on_progress is not None:
                outcome = on_progress(indexed, total)
                if inspect.isawaitable(outcome):
                    await outcome

            if not result.has_next_page:
                break
            page += 1

        logger.info("Reindex of %s finished: %d documents in %d pages", collection, indexed, pages)
        return ReindexResult(
            collection=collection,
            indexed_count=indexed,
            pages=pages,
            total_count=total,
        )

    async def _build_batch(
        self,
        documents: Sequence[dict[str, Any]],
        collection: str,
        field_paths: Sequence[str],
        schema: CollectionSchema,
    ) -> list[IndexObject]:
        """Flatten a page of documents concurrently, keeping page order."""
        with_ids = [doc for doc in documents if document_identity(doc) is not None]
        if len(with_ids) != len(documents):
            logger.warning(
                "Skipping %d documents without id in %s",
                len(documents) - len(with_ids),
                collection,
            )

        return list(
            await asyncio.gather(
                *(
                    asyncio.to_thread(
                        build_index_object, doc, collection, field_paths, schema, self.registry
                    )
                    for doc in with_ids
                )
            )
        )

    async def _submit_with_retry(self, objects: Sequence[IndexObject]) -> int:
        """Submit one batch, backing off on rate limits up to max_retries times."""
        attempt = 0
        while True:
            try:
                return await self.index_service.upsert_if_exists(objects)
            except RateLimitError as exc:
                if attempt >= self.max_retries:
                    logger.error("Rate limit persisted after %d retries", self.max_retries)
                    raise UpstreamException(
                        "Reindexing failed",
                        detail=f"Rate limit persisted after {self.max_retries} retries",
                    ) from exc

                wait = backoff_delay(
                    attempt,
                    self.settings.reindex_retry_base_delay,
                    self.settings.reindex_retry_max_delay,
                )
                if exc.retry_after is not None:
                    wait = min(max(wait, exc.retry_after), self.settings.reindex_retry_max_delay)
                logger.warning(
                    "Rate limit hit. Retrying in %.1fs (attempt %d/%d)",
                    wait,
                    attempt + 1,
                    self.max_retries,
                )
                await self._sleep(wait)
                attempt += 1
            except Exception as exc:
                logger.error("Index batch submission failed: %s", exc)
                raise UpstreamException("Reindexing failed", detail=str(exc)) from exc


__all__ = ["ReindexOrchestrator", "ReindexResult", "backoff_delay"]
