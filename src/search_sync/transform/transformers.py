"""Field transformers keyed by field type tag."""

import json
from collections.abc import Callable, Mapping, Sequence
from types import MappingProxyType
from typing import Any

from search_sync.core.logging import get_logger
from search_sync.core.models import FieldDescriptor, FieldType, TransformedValue
from search_sync.transform.richtext import richtext_to_plaintext

logger = get_logger(__name__)

FieldTransformer = Callable[[Any, FieldDescriptor | None, str | None], TransformedValue]

_LABEL_KEYS = ("title", "name", "slug")
_UPLOAD_KEYS = ("filename", "alt", "title")


def _is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray))


def _scalar_text(value: Any) -> str:
    """Text form of a scalar used inside joined values (None renders empty)."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def stringify(
    value: Any, field: FieldDescriptor | None = None, collection: str | None = None
) -> str:
    """Default transformer for unregistered or unresolved field types."""
    if isinstance(value, Mapping):
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"), default=str)
    if _is_sequence(value):
        return ",".join(_scalar_text(item) for item in value)
    return _scalar_text(value)


def _relation_label(value: Any) -> str | None:
    if isinstance(value, Mapping):
        for key in _LABEL_KEYS:
            label = value.get(key)
            if label:
                return str(label)
        identity = value.get("id")
        return _scalar_text(identity) if identity not in (None, "") else None
    if value in (None, ""):
        return None
    return _scalar_text(value)


def transform_rich_text(
    value: Any, field: FieldDescriptor | None = None, collection: str | None = None
) -> TransformedValue:
    if not value:
        return None
    return richtext_to_plaintext(value) or None


def transform_json(
    value: Any, field: FieldDescriptor | None = None, collection: str | None = None
) -> TransformedValue:
    if not value:
        return None
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"), default=str)


def transform_array(
    value: Any, field: FieldDescriptor | None = None, collection: str | None = None
) -> TransformedValue:
    if not _is_sequence(value):
        return None
    parts: list[str] = []
    for item in value:
        if isinstance(item, Mapping):
            parts.append(" ".join(_scalar_text(v) for v in item.values()))
        else:
            parts.append(_scalar_text(item))
    return ", ".join(parts)


def transform_relationship(
    value: Any, field: FieldDescriptor | None = None, collection: str | None = None
) -> TransformedValue:
    if not value:
        return None
    if _is_sequence(value):
        labels = [label for label in (_relation_label(item) for item in value) if label]
        return ", ".join(labels) if labels else None
    return _relation_label(value)


def transform_select(
    value: Any, field: FieldDescriptor | None = None, collection: str | None = None
) -> TransformedValue:
    if _is_sequence(value):
        joined = ", ".join(_scalar_text(item) for item in value)
        return joined or None
    if value is None or value == "":
        return None
    return _scalar_text(value)


def transform_upload(
    value: Any, field: FieldDescriptor | None = None, collection: str | None = None
) -> TransformedValue:
    if not isinstance(value, Mapping):
        return None
    for key in _UPLOAD_KEYS:
        candidate = value.get(key)
        if candidate:
            return str(candidate)
    return None


DEFAULT_TRANSFORMERS: Mapping[str, FieldTransformer] = MappingProxyType(
    {
        FieldType.RICH_TEXT.value: transform_rich_text,
        FieldType.JSON.value: transform_json,
        FieldType.ARRAY.value: transform_array,
        FieldType.RELATIONSHIP.value: transform_relationship,
        FieldType.SELECT.value: transform_select,
        FieldType.UPLOAD.value: transform_upload,
    }
)


class TransformerRegistry:
    """Immutable dispatch table from field type tag to transformer.

    Caller-supplied overrides replace same-keyed defaults entirely.
    """

    def __init__(self, overrides: Mapping[str, FieldTransformer] | None = None):
        merged: dict[str, FieldTransformer] = dict(DEFAULT_TRANSFORMERS)
        for type_tag, transformer in (overrides or {}).items():
            if type_tag in merged:
                logger.debug("Overriding default transformer for field type '%s'", type_tag)
            merged[type_tag] = transformer
        self._transformers: Mapping[str, FieldTransformer] = MappingProxyType(merged)

    def __contains__(self, type_tag: object) -> bool:
        return type_tag in self._transformers

    @property
    def types(self) -> list[str]:
        return sorted(self._transformers)

    def get(self, type_tag: str | None) -> FieldTransformer | None:
        if type_tag is None:
            return None
        return self._transformers.get(type_tag)

    def transform(
        self,
        value: Any,
        field: FieldDescriptor | None = None,
        collection: str | None = None,
    ) -> TransformedValue:
        """Apply the transformer registered for the field's type, else stringify."""
        transformer = self.get(field.type if field is not None else None)
        if transformer is None:
            return stringify(value, field, collection)

        try:
            return transformer(value, field, collection)
        except Exception as exc:
            # Defaults never raise; this only guards caller-supplied transformers.
            logger.warning(
                "Transformer for field '%s' (%s) failed: %s",
                field.name if field is not None else "?",
                field.type if field is not None else "?",
                exc,
            )
            return None
