"""Event handlers for processing SQS messages."""

from typing import Protocol

from search_sync.config import Settings
from search_sync.core.constants import MSG_DOCUMENT_LIFECYCLE
from search_sync.core.logging import get_logger
from search_sync.schemas.events import (
    DocumentAction,
    DocumentEvent,
    DocumentLifecycleMessage,
    SQSMessage,
)
from search_sync.services.sync_service import SyncService

logger = get_logger(__name__)


class MessageHandler(Protocol):
    """Protocol for message handlers."""

    async def handle(self, message: SQSMessage) -> bool:
        """Handle a message.

        Args:
            message: The message to handle.

        Returns:
            bool: True if handled successfully, False otherwise.
        """
        ...


class DocumentLifecycleHandler:
    """Handler for document lifecycle events."""

    def __init__(self, settings: Settings, sync_service: SyncService):
        self.settings = settings
        self.sync_service = sync_service

    async def handle(self, message: SQSMessage) -> bool:
        """Handle document lifecycle message.

        Events for collections that are not synced are acknowledged without
        touching the index.

        Returns:
            bool: True if the message can be removed from the queue.
        """
        if not isinstance(message, DocumentLifecycleMessage):
            logger.error("Invalid message type for DocumentLifecycleHandler: %s", type(message))
            return False

        event = message.data
        logger.info(
            "Processing document lifecycle event: %s for %s/%s",
            event.action.value,
            event.collection,
            event.id,
        )

        if self.settings.get_collection(event.collection) is None:
            logger.debug("Collection %s is not synced, ignoring event", event.collection)
            return True

        if event.action in (DocumentAction.CREATED, DocumentAction.UPDATED):
            return await self._handle_written(event)
        if event.action == DocumentAction.DELETED:
            return await self.sync_service.on_document_deleted(event.collection, event.id)

        logger.warning("Unknown action: %s", event.action)
        return False

    async def _handle_written(self, event: DocumentEvent) -> bool:
        if event.document is None:
            logger.error(
                "Missing document body for %s event on %s/%s",
                event.action.value,
                event.collection,
                event.id,
            )
            return False

        document = dict(event.document)
        document.setdefault("id", event.id)
        return await self.sync_service.on_document_written(event.collection, document)


class MessageHandlerRegistry:
    """Registry for message handlers."""

    def __init__(self, settings: Settings, sync_service: SyncService):
        """Initialize handler registry.

        Args:
            settings: Application settings.
            sync_service: Write-path service the lifecycle handler delegates to.
        """
        self._handlers: dict[str, MessageHandler] = {
            MSG_DOCUMENT_LIFECYCLE: DocumentLifecycleHandler(settings, sync_service),
        }

    def get_handler(self, message_type: str) -> MessageHandler | None:
        """Get handler for a message type.

        Args:
            message_type: The message type (e.g., "document:lifecycle").

        Returns:
            MessageHandler | None: The handler or None if not found.
        """
        return self._handlers.get(message_type)
