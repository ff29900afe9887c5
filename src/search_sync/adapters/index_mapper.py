"""Helpers to translate between index objects and Qdrant transport objects."""

from __future__ import annotations

import re
import uuid
from collections.abc import Sequence
from typing import Any

from qdrant_client import models as q

from search_sync.core.constants import K_COLLECTION, K_OBJECT_ID, POINT_ID_NAMESPACE
from search_sync.core.models import IndexObject

_NAMESPACE = uuid.UUID(POINT_ID_NAMESPACE)
_TOKEN_PATTERN = re.compile(r"[^\W_]+")


def object_point_id(object_id: str) -> str:
    """Deterministic Qdrant point id for an objectID.

    Qdrant only accepts unsigned integers or UUIDs as ids, so repository ids are
    mapped through uuid5. The same objectID always lands on the same point, which
    makes repeated syncs overwrite instead of duplicate.
    """
    return str(uuid.uuid5(_NAMESPACE, str(object_id)))


def index_object_to_point(obj: IndexObject) -> q.PointStruct:
    """Convert an index object into a payload-only Qdrant point."""
    return q.PointStruct(
        id=object_point_id(obj.object_id),
        payload=obj.to_payload(),
        vector={},
    )


def index_object_to_set_payload(obj: IndexObject) -> q.SetPayloadOperation:
    """Partial update of an existing point's attributes."""
    return q.SetPayloadOperation(
        set_payload=q.SetPayload(
            payload=obj.to_payload(),
            points=[object_point_id(obj.object_id)],
        )
    )


def record_to_hit(record: q.Record | q.ScoredPoint) -> dict[str, Any]:
    """Convert a stored point into a search hit (its retained attributes)."""
    payload = dict(record.payload or {})
    payload.setdefault(K_OBJECT_ID, str(record.id))
    payload.setdefault(K_COLLECTION, None)
    return payload


def with_highlights(hit: dict[str, Any], fields: Sequence[str], query: str) -> dict[str, Any]:
    """Attach a ``_highlightResult`` entry wrapping query tokens in ``<em>`` tags."""
    tokens = [token for token in _TOKEN_PATTERN.findall(query.lower()) if token]
    if not tokens or not fields:
        return hit

    pattern = re.compile("|".join(re.escape(token) for token in tokens), re.IGNORECASE)
    highlights: dict[str, dict[str, Any]] = {}
    for field_name in fields:
        value = hit.get(field_name)
        if not isinstance(value, str):
            continue
        matched = {m.group(0).lower() for m in pattern.finditer(value)}
        if not matched:
            match_level = "none"
        elif all(token in matched for token in tokens):
            match_level = "full"
        else:
            match_level = "partial"
        highlights[field_name] = {
            "value": pattern.sub(lambda m: f"<em>{m.group(0)}</em>", value),
            "matchLevel": match_level,
            "matchedWords": sorted(matched),
        }

    if highlights:
        hit["_highlightResult"] = highlights
    return hit
