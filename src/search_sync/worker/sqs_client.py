"""AWS SQS client wrapper with async support."""

from typing import Any

from aiobotocore.session import get_session
from botocore.exceptions import ClientError

from search_sync.config import Settings
from search_sync.core.logging import get_logger

logger = get_logger(__name__)


class SQSClient:
    """Async SQS client wrapper."""

    def __init__(self, settings: Settings):
        """Initialize SQS client.

        Args:
            settings: Application settings.
        """
        self.settings = settings
        self.session = get_session()

    def _client(self) -> Any:
        return self.session.create_client(
            "sqs",
            region_name=self.settings.aws_region,
            endpoint_url=self.settings.sqs_endpoint_url,
            aws_access_key_id=self.settings.aws_access_key_id,
            aws_secret_access_key=self.settings.aws_secret_access_key,
        )

    async def receive_messages(
        self,
        max_messages: int | None = None,
        wait_time_seconds: int | None = None,
    ) -> list[dict[str, Any]]:
        """Receive messages from SQS queue.

        Args:
            max_messages: Maximum number of messages to receive (1-10).
            wait_time_seconds: Long polling wait time (0-20 seconds).

        Returns:
            list[dict[str, Any]]: List of received messages.
        """
        if not self.settings.sqs_queue_url:
            logger.error("SQS queue URL not configured")
            return []

        max_messages = max_messages or self.settings.sqs_max_messages
        wait_time_seconds = wait_time_seconds or self.settings.sqs_wait_time_seconds

        try:
            async with self._client() as sqs:
                response = await sqs.receive_message(
                    QueueUrl=self.settings.sqs_queue_url,
                    MaxNumberOfMessages=max_messages,
                    WaitTimeSeconds=wait_time_seconds,
                    AttributeNames=["All"],
                    MessageAttributeNames=["All"],
                )

                messages = response.get("Messages", [])
                if messages:
                    logger.info("Received %d messages from SQS", len(messages))
                return messages

        except ClientError as e:
            logger.error("Failed to receive messages from SQS: %s", e)
            return []
        except Exception as e:
            logger.error("Unexpected error receiving messages: %s", e, exc_info=True)
            return []

    async def delete_messages_batch(self, receipt_handles: list[str]) -> dict[str, Any]:
        """Delete multiple messages in a batch.

        Args:
            receipt_handles: List of receipt handles to delete.

        Returns:
            dict[str, Any]: Result of batch deletion with successful and failed entries.
        """
        if not self.settings.sqs_queue_url or not receipt_handles:
            return {"successful": [], "failed": []}

        try:
            async with self._client() as sqs:
                entries = [
                    {"Id": str(idx), "ReceiptHandle": handle}
                    for idx, handle in enumerate(receipt_handles)
                ]

                response = await sqs.delete_message_batch(
                    QueueUrl=self.settings.sqs_queue_url,
                    Entries=entries,
                )

                successful = response.get("Successful", [])
                failed = response.get("Failed", [])

                logger.info("Batch delete: %d successful, %d failed", len(successful), len(failed))

                return {"successful": successful, "failed": failed}

        except Exception as e:
            logger.error("Unexpected error in batch delete: %s", e, exc_info=True)
            return {"successful": [], "failed": receipt_handles}
