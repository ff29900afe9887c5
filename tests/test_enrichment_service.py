"""Tests for search hit enrichment."""

from __future__ import annotations

import pytest

from conftest import FakeRepository
from search_sync.core.models import AccessMode
from search_sync.services.enrichment_service import EnrichmentResolver, group_hits_by_collection

pytestmark = pytest.mark.asyncio

DOCUMENTS = {
    "posts": [
        {"id": "p1", "title": "Hello", "body": "long"},
        {"id": "p2", "title": "World", "body": "longer"},
    ],
    "authors": [{"id": "a1", "name": "Alice", "email": "alice@example.com"}],
}


async def test_group_hits_by_collection() -> None:
    hits = [
        {"objectID": "p1", "collection": "posts"},
        {"objectID": "a1", "collection": "authors"},
        {"objectID": "p1", "collection": "posts"},
        {"objectID": "x1"},
        {"objectID": "x2", "collection": 5},
        {"collection": "posts"},
    ]
    assert group_hits_by_collection(hits) == {"posts": ["p1"], "authors": ["a1"]}


async def test_empty_hits_issue_no_lookup() -> None:
    repository = FakeRepository(DOCUMENTS)
    resolver = EnrichmentResolver(repository, AccessMode.ENFORCE)

    assert await resolver.enrich([]) == {}
    assert await resolver.enrich([{"objectID": "p1"}]) == {}
    assert repository.calls == []


async def test_two_collection_enrichment_with_projection() -> None:
    repository = FakeRepository(DOCUMENTS)
    resolver = EnrichmentResolver(repository, AccessMode.ENFORCE)
    hits = [
        {"objectID": "p1", "collection": "posts"},
        {"objectID": "p2", "collection": "posts"},
        {"objectID": "a1", "collection": "authors"},
    ]

    enriched = await resolver.enrich(
        hits,
        {"posts": {"title": True}, "authors": {"name": True}},
        auth="Bearer caller",
    )

    assert enriched == {
        "p1": {"id": "p1", "title": "Hello"},
        "p2": {"id": "p2", "title": "World"},
        "a1": {"id": "a1", "name": "Alice"},
    }
    assert len(repository.calls) == 2
    posts_call = next(c for c in repository.calls if c["collection"] == "posts")
    assert posts_call["filter"] == {"id": {"in": ["p1", "p2"]}}
    assert posts_call["page_size"] == 2
    assert posts_call["field_selection"] == {"title": True}
    assert posts_call["access_mode"] == AccessMode.ENFORCE
    assert posts_call["auth"] == "Bearer caller"


async def test_failed_collection_is_isolated() -> None:
    repository = FakeRepository(DOCUMENTS, failing={"posts"})
    resolver = EnrichmentResolver(repository, AccessMode.ENFORCE)
    hits = [
        {"objectID": "p1", "collection": "posts"},
        {"objectID": "a1", "collection": "authors"},
    ]

    enriched = await resolver.enrich(hits)

    assert set(enriched) == {"a1"}
    assert enriched["a1"]["name"] == "Alice"


async def test_bypass_mode_is_forwarded() -> None:
    repository = FakeRepository(DOCUMENTS)
    resolver = EnrichmentResolver(repository, AccessMode.BYPASS)

    await resolver.enrich([{"objectID": "a1", "collection": "authors"}])

    assert repository.calls[0]["access_mode"] == AccessMode.BYPASS


async def test_identity_collision_later_collection_wins() -> None:
    repository = FakeRepository(
        {"posts": [{"id": "1", "from": "posts"}], "authors": [{"id": 1, "from": "authors"}]}
    )
    resolver = EnrichmentResolver(repository, AccessMode.ENFORCE)
    hits = [
        {"objectID": "1", "collection": "posts"},
        {"objectID": "1", "collection": "authors"},
    ]

    enriched = await resolver.enrich(hits)

    assert enriched == {"1": {"id": 1, "from": "authors"}}
