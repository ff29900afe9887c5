"""Domain models shared by the transformation, reindex and enrichment layers."""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from search_sync.core.constants import K_COLLECTION, K_OBJECT_ID

TransformedValue = bool | None | int | float | str | list[str]
TransformedRecord = dict[str, TransformedValue]
Document = Mapping[str, Any]
EnrichedMap = dict[str, dict[str, Any]]


class FieldType(str, Enum):
    """Built-in field type tags. Other tags are allowed and fall back to stringification."""

    TEXT = "text"
    TEXTAREA = "textarea"
    RICH_TEXT = "richText"
    JSON = "json"
    ARRAY = "array"
    RELATIONSHIP = "relationship"
    SELECT = "select"
    UPLOAD = "upload"
    GROUP = "group"


NESTABLE_TYPES: frozenset[str] = frozenset({FieldType.GROUP.value, FieldType.ARRAY.value})


class AccessMode(str, Enum):
    """How repository lookups treat access control."""

    ENFORCE = "enforce"
    BYPASS = "bypass"


@dataclass(frozen=True)
class FieldDescriptor:
    """Schema metadata for one field."""

    name: str
    type: str
    fields: tuple["FieldDescriptor", ...] = ()

    @property
    def is_nestable(self) -> bool:
        return self.type in NESTABLE_TYPES


@dataclass(frozen=True)
class CollectionSchema:
    """Ordered field tree of a collection."""

    slug: str
    fields: tuple[FieldDescriptor, ...] = ()


@dataclass(frozen=True)
class IndexObject:
    """Flattened, identity-stamped record sent to the search index."""

    object_id: str
    collection: str
    attributes: TransformedRecord = field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        return {**self.attributes, K_OBJECT_ID: self.object_id, K_COLLECTION: self.collection}


@dataclass(frozen=True)
class RepositoryPage:
    """One page of documents returned by the content repository."""

    documents: Sequence[dict[str, Any]]
    has_next_page: bool
    total_count: int


@dataclass(frozen=True)
class IndexSearchResult:
    """Raw search response from the index."""

    hits: list[dict[str, Any]]
    page: int
    total_hits: int
    total_pages: int
    hits_per_page: int
