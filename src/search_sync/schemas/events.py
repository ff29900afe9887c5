"""Event schemas for SQS messages."""

from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field

from search_sync.core.constants import MSG_DOCUMENT_LIFECYCLE


class DocumentAction(str, Enum):
    """Document lifecycle actions."""

    CREATED = "CREATED"
    UPDATED = "UPDATED"
    DELETED = "DELETED"


class DocumentEvent(BaseModel):
    """A single document write or delete in the content repository.

    Example event:
    ```json
    {
        "collection": "posts",
        "action": "UPDATED",
        "id": "p1",
        "document": {"id": "p1", "title": "Hello", "tags": ["a", "b"]},
        "timestamp": "2025-10-01T12:30:45.123Z"
    }
    ```
    """

    collection: str = Field(..., min_length=1)
    action: DocumentAction
    id: str | int
    document: dict[str, Any] | None = Field(
        None,
        description="Document as stored after the write; omitted for deletes",
    )
    timestamp: datetime | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "collection": "posts",
                    "action": "UPDATED",
                    "id": "p1",
                    "document": {"id": "p1", "title": "Hello", "tags": ["a", "b"]},
                    "timestamp": "2025-10-01T12:30:45.123Z",
                }
            ]
        },
    }


class DocumentLifecycleMessage(BaseModel):
    """SQS message wrapper for document lifecycle events.

    Example SQS message body:
    ```json
    {
        "type": "document:lifecycle",
        "data": {"collection": "posts", "action": "DELETED", "id": "p1"}
    }
    ```
    """

    type: Literal["document:lifecycle"] = Field(..., description="Message type discriminator")
    data: DocumentEvent


# Union type for all SQS messages (discriminated by 'type' field)
SQSMessage = DocumentLifecycleMessage

MESSAGE_TYPES: dict[str, type[BaseModel]] = {
    MSG_DOCUMENT_LIFECYCLE: DocumentLifecycleMessage,
}


class SQSMessageMetadata(BaseModel):
    """Metadata about an SQS message."""

    message_id: str
    receipt_handle: str
    approximate_receive_count: int = 0
    sent_timestamp: datetime | None = None
