"""Flatten repository documents into index records."""

from collections.abc import Sequence

from search_sync.core.exceptions import ValidationException
from search_sync.core.models import (
    CollectionSchema,
    Document,
    IndexObject,
    TransformedRecord,
)
from search_sync.transform.paths import ABSENT, get_nested_value, resolve_field
from search_sync.transform.transformers import TransformerRegistry

# Serialized placeholders some clients send instead of omitting a field.
_ABSENT_LITERALS = frozenset({"null", "undefined"})


def _is_absent(value: object) -> bool:
    return value is ABSENT or value is None or (
        isinstance(value, str) and value in _ABSENT_LITERALS
    )


def flatten_document(
    document: Document,
    field_paths: Sequence[str],
    schema: CollectionSchema,
    registry: TransformerRegistry,
) -> TransformedRecord:
    """Pick and transform the requested fields of a document.

    Output keys are exactly the requested paths whose value was present and
    transformed to a non-null value. Missing data never produces a null entry.

    Args:
        document: Source document; it is only read.
        field_paths: Dotted paths to index, in output order.
        schema: Collection schema used to look up field types.
        registry: Transformer dispatch table.

    Returns:
        TransformedRecord: Flat mapping of dotted path to transformed value.
    """
    record: TransformedRecord = {}

    for path in field_paths:
        raw = get_nested_value(document, path)
        if _is_absent(raw):
            continue

        descriptor = resolve_field(schema, path)
        value = registry.transform(raw, descriptor, schema.slug)
        if value is not None:
            record[path] = value

    return record


def document_identity(document: Document) -> str | None:
    """Stringified document id, or None when the document has none."""
    identity = document.get("id")
    if identity is None or identity == "":
        return None
    return str(identity)


def build_index_object(
    document: Document,
    collection: str,
    field_paths: Sequence[str],
    schema: CollectionSchema,
    registry: TransformerRegistry,
) -> IndexObject:
    """Flatten a document and stamp it with its objectID and origin collection.

    Raises:
        ValidationException: If the document carries no id.
    """
    object_id = document_identity(document)
    if object_id is None:
        raise ValidationException(f"Document in '{collection}' has no id")

    return IndexObject(
        object_id=object_id,
        collection=collection,
        attributes=flatten_document(document, field_paths, schema, registry),
    )
