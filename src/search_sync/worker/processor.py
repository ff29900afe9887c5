"""Message processor for handling SQS messages."""

import asyncio
import json
from typing import Any

from pydantic import BaseModel, ValidationError

from search_sync.config import Settings
from search_sync.core.logging import get_logger
from search_sync.schemas.events import MESSAGE_TYPES, SQSMessageMetadata
from search_sync.worker.handlers import MessageHandlerRegistry
from search_sync.worker.sqs_client import SQSClient

logger = get_logger(__name__)


class MessageProcessor:
    """Processor for SQS messages."""

    def __init__(
        self,
        settings: Settings,
        sqs_client: SQSClient,
        handler_registry: MessageHandlerRegistry,
    ):
        self.settings = settings
        self.sqs_client = sqs_client
        self.handler_registry = handler_registry

    def _parse_message_body(self, body: str) -> dict[str, Any] | None:
        """Parse message body JSON.

        Args:
            body: Message body string.

        Returns:
            dict[str, Any] | None: Parsed JSON object or None if invalid.
        """
        try:
            data = json.loads(body)
        except json.JSONDecodeError as e:
            logger.error("Failed to parse message body as JSON: %s", e)
            return None
        return data if isinstance(data, dict) else None

    def _extract_metadata(self, message: dict[str, Any]) -> SQSMessageMetadata:
        """Extract metadata from SQS message."""
        attributes = message.get("Attributes", {})
        return SQSMessageMetadata(
            message_id=message.get("MessageId", "unknown"),
            receipt_handle=message.get("ReceiptHandle", ""),
            approximate_receive_count=int(attributes.get("ApproximateReceiveCount", 0)),
        )

    def _validate_and_parse_message(self, body_data: dict[str, Any]) -> BaseModel | None:
        """Validate message data against the model registered for its type."""
        model = MESSAGE_TYPES.get(str(body_data.get("type")))
        if model is None:
            logger.error("Unknown message type: %s", body_data.get("type"))
            return None

        try:
            return model.model_validate(body_data)
        except ValidationError as e:
            logger.error("Failed to validate message: %s", e)
            return None

    async def process_message(self, message: dict[str, Any]) -> tuple[bool, str]:
        """Process a single SQS message.

        Args:
            message: SQS message dictionary.

        Returns:
            tuple[bool, str]: (success, receipt_handle) tuple.
        """
        metadata = self._extract_metadata(message)
        receipt_handle = metadata.receipt_handle

        logger.info(
            "Processing message %s (attempt %d)",
            metadata.message_id,
            metadata.approximate_receive_count,
        )

        body_data = self._parse_message_body(message.get("Body", ""))
        if not body_data:
            logger.error("Invalid message body for message %s", metadata.message_id)
            return False, receipt_handle

        sqs_message = self._validate_and_parse_message(body_data)
        if sqs_message is None:
            logger.error("Invalid message format for message %s", metadata.message_id)
            return False, receipt_handle

        message_type = body_data["type"]
        handler = self.handler_registry.get_handler(message_type)
        if not handler:
            logger.error("No handler found for message type: %s", message_type)
            return False, receipt_handle

        try:
            success = await handler.handle(sqs_message)  # type: ignore[arg-type]
        except Exception as e:
            logger.error(
                "Error processing message %s (type: %s): %s",
                metadata.message_id,
                message_type,
                e,
                exc_info=True,
            )
            return False, receipt_handle

        if success:
            logger.info(
                "Successfully processed message %s (type: %s)", metadata.message_id, message_type
            )
        else:
            logger.warning(
                "Handler returned False for message %s (type: %s)",
                metadata.message_id,
                message_type,
            )
        return success, receipt_handle

    def _ordering_key(self, index: int, message: dict[str, Any]) -> tuple[str, ...]:
        """Key under which messages must be processed one after another.

        Lifecycle events for the same document share a key; anything else is
        keyed by its position in the batch.
        """
        try:
            body_data = json.loads(message.get("Body", ""))
        except json.JSONDecodeError:
            body_data = None
        data = body_data.get("data") if isinstance(body_data, dict) else None
        if isinstance(data, dict) and data.get("collection") and data.get("id") is not None:
            return ("document", str(data["collection"]), str(data["id"]))
        return ("message", str(index))

    async def _process_in_order(
        self, messages: list[dict[str, Any]]
    ) -> list[tuple[bool, str] | BaseException]:
        results: list[tuple[bool, str] | BaseException] = []
        for message in messages:
            try:
                results.append(await self.process_message(message))
            except Exception as e:
                results.append(e)
        return results

    async def process_messages_batch(self, messages: list[dict[str, Any]]) -> tuple[int, int]:
        """Process a batch of messages and delete the successful ones.

        Events for the same document run in receive order; different documents
        run concurrently.

        Args:
            messages: List of SQS messages.

        Returns:
            tuple[int, int]: (successful_count, failed_count).
        """
        if not messages:
            return 0, 0

        groups: dict[tuple[str, ...], list[dict[str, Any]]] = {}
        for index, message in enumerate(messages):
            groups.setdefault(self._ordering_key(index, message), []).append(message)

        grouped_results = await asyncio.gather(
            *(self._process_in_order(group) for group in groups.values())
        )
        results = [result for group_results in grouped_results for result in group_results]

        successful_receipts: list[str] = []
        failed_count = 0

        for result in results:
            if isinstance(result, BaseException):
                logger.error("Exception during message processing: %s", result)
                failed_count += 1
                continue

            success, receipt_handle = result
            if success:
                successful_receipts.append(receipt_handle)
            else:
                failed_count += 1

        # Failed messages stay on the queue and are redelivered
        if successful_receipts:
            delete_result = await self.sqs_client.delete_messages_batch(successful_receipts)
            logger.info("Deleted %d messages from queue", len(delete_result["successful"]))

        return len(successful_receipts), failed_count
