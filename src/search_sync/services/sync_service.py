"""Write path: mirror single document changes into the search index."""

from collections.abc import Mapping
from typing import Any

from search_sync.config import Settings
from search_sync.core.logging import get_logger
from search_sync.core.models import CollectionSchema
from search_sync.repositories.content_repository import ContentRepository
from search_sync.services.index_service import SearchIndexService
from search_sync.transform.flatten import build_index_object, document_identity
from search_sync.transform.transformers import TransformerRegistry

logger = get_logger(__name__)


class SyncService:
    """Indexes written documents and removes deleted ones.

    Failures are logged and reported as False; they never propagate, so a
    content change is never blocked by the index.
    """

    def __init__(
        self,
        settings: Settings,
        repository: ContentRepository,
        index_service: SearchIndexService,
        registry: TransformerRegistry,
    ):
        self.settings = settings
        self.repository = repository
        self.index_service = index_service
        self.registry = registry

    async def on_document_written(
        self,
        collection: str,
        document: Mapping[str, Any],
        schema: CollectionSchema | None = None,
    ) -> bool:
        """Create or replace the index object for a written document.

        Args:
            collection: Origin collection slug.
            document: The document as stored after the write.
            schema: Collection schema; looked up from the repository when omitted.

        Returns:
            bool: True if the document was indexed.
        """
        object_id = document_identity(document)
        if object_id is None:
            logger.warning("Document missing ID, skipping indexing for %s", collection)
            return False

        collection_settings = self.settings.get_collection(collection)
        if collection_settings is None:
            logger.debug("Collection %s is not synced, skipping document %s", collection, object_id)
            return False

        try:
            resolved_schema = schema or self.repository.get_schema(collection)
            index_object = build_index_object(
                document,
                collection,
                collection_settings.index_fields,
                resolved_schema,
                self.registry,
            )
            await self.index_service.upsert_or_create(index_object)
        except Exception as exc:
            logger.error("Failed to index document %s from %s: %s", object_id, collection, exc)
            return False

        logger.info("Document %s from %s indexed", object_id, collection)
        return True

    async def on_document_deleted(self, collection: str, identity: Any) -> bool:
        """Remove a deleted document from the index.

        Returns:
            bool: True if the delete request succeeded.
        """
        if identity is None or identity == "":
            logger.warning("Deleted document in %s has no ID, nothing to remove", collection)
            return False

        try:
            await self.index_service.delete_by_id(str(identity))
        except Exception as exc:
            logger.error("Failed to remove document %s from index: %s", identity, exc)
            return False

        logger.info("Document %s from %s removed from index", identity, collection)
        return True
