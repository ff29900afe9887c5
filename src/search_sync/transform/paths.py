"""Dotted field path helpers for schemas and documents."""

from collections.abc import Mapping, Sequence
from typing import Any, Final

from search_sync.core.models import CollectionSchema, FieldDescriptor

PATH_SEPARATOR: Final[str] = "."


class _Absent:
    """Marker for a path that does not exist in a document."""

    _instance: "_Absent | None" = None

    def __new__(cls) -> "_Absent":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ABSENT"

    def __bool__(self) -> bool:
        return False


ABSENT: Final = _Absent()


def validate_field_path(path: str) -> str:
    """Reject empty paths and paths with empty segments ("a..b", ".a", "a.").

    Raises:
        ValueError: If the path is malformed.
    """
    if not path or any(not segment for segment in path.split(PATH_SEPARATOR)):
        raise ValueError(f"Malformed field path: {path!r}")
    return path


def resolve_field(
    schema: CollectionSchema | Sequence[FieldDescriptor],
    dotted_path: str,
) -> FieldDescriptor | None:
    """Locate the descriptor for a dotted path, descending into group/array children.

    Returns None when any segment fails to match; never a partial match.
    """
    fields: Sequence[FieldDescriptor] = (
        schema.fields if isinstance(schema, CollectionSchema) else schema
    )
    segments = dotted_path.split(PATH_SEPARATOR)
    last = len(segments) - 1

    for idx, segment in enumerate(segments):
        found = next((f for f in fields if f.name == segment), None)
        if found is None:
            return None
        if idx == last:
            return found
        if not found.is_nestable:
            return None
        fields = found.fields

    return None


def get_nested_value(document: Any, dotted_path: str) -> Any:
    """Walk a document by path segments; any missing step yields ABSENT."""
    value = document
    for segment in dotted_path.split(PATH_SEPARATOR):
        if isinstance(value, Mapping):
            if segment not in value:
                return ABSENT
            value = value[segment]
        elif isinstance(value, list) and segment.isdigit() and int(segment) < len(value):
            # Positional access into array rows, e.g. "blocks.0.title"
            value = value[int(segment)]
        else:
            return ABSENT
    return value
