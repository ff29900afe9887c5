"""Tests for the search index service against in-memory Qdrant."""

from __future__ import annotations

from unittest.mock import AsyncMock

import grpc
import pytest
from qdrant_client import models as q
from qdrant_client.http.exceptions import UnexpectedResponse

from search_sync.adapters.index_mapper import object_point_id, with_highlights
from search_sync.core.exceptions import RateLimitError
from search_sync.core.models import IndexObject
from search_sync.services.index_service import SearchIndexService

pytestmark = pytest.mark.asyncio


def _obj(object_id: str, collection: str = "posts", **attributes) -> IndexObject:
    return IndexObject(object_id=object_id, collection=collection, attributes=attributes)


async def test_ensure_index_is_idempotent(index_service: SearchIndexService) -> None:
    assert await index_service.index_exists()
    await index_service.ensure_index()
    assert await index_service.index_exists()


async def test_upsert_or_create_and_get(index_service: SearchIndexService) -> None:
    await index_service.upsert_or_create(_obj("p1", title="Hello world"))

    stored = await index_service.get_object("p1")
    assert stored == {"title": "Hello world", "objectID": "p1", "collection": "posts"}
    assert await index_service.get_object("missing") is None


async def test_upsert_or_create_replaces_attributes(index_service: SearchIndexService) -> None:
    await index_service.upsert_or_create(_obj("p1", title="Old", tags="a"))
    await index_service.upsert_or_create(_obj("p1", title="New"))

    stored = await index_service.get_object("p1")
    assert stored is not None
    assert stored["title"] == "New"
    assert "tags" not in stored


async def test_upsert_if_exists_never_creates(index_service: SearchIndexService) -> None:
    await index_service.upsert_or_create(_obj("p1", title="Old"))

    updated = await index_service.upsert_if_exists(
        [_obj("p1", title="Refreshed"), _obj("p2", title="Brand new")]
    )

    assert updated == 1
    assert (await index_service.get_object("p1"))["title"] == "Refreshed"  # type: ignore[index]
    assert await index_service.get_object("p2") is None


async def test_upsert_if_exists_empty_batch(index_service: SearchIndexService) -> None:
    assert await index_service.upsert_if_exists([]) == 0


async def test_delete_by_id(index_service: SearchIndexService) -> None:
    await index_service.upsert_or_create(_obj("p1", title="Bye"))
    await index_service.delete_by_id("p1")
    assert await index_service.get_object("p1") is None


async def test_search_matches_searchable_fields(index_service: SearchIndexService) -> None:
    await index_service.upsert_or_create(_obj("p1", title="Hello world"))
    await index_service.upsert_or_create(_obj("p2", title="Goodbye"))
    await index_service.upsert_or_create(_obj("a1", collection="authors", name="Hello Kitty"))

    result = await index_service.search("hello", hits_per_page=10)

    assert result.total_hits == 2
    assert result.total_pages == 1
    assert {hit["objectID"] for hit in result.hits} == {"p1", "a1"}


async def test_search_filters_by_collection(index_service: SearchIndexService) -> None:
    await index_service.upsert_or_create(_obj("p1", title="Hello world"))
    await index_service.upsert_or_create(_obj("a1", collection="authors", name="Hello Kitty"))

    result = await index_service.search("hello", collection="authors")

    assert [hit["objectID"] for hit in result.hits] == ["a1"]


async def test_search_pages(index_service: SearchIndexService) -> None:
    for n in range(5):
        await index_service.upsert_or_create(_obj(f"p{n}", title=f"Hello number {n}"))

    first = await index_service.search("hello", page=0, hits_per_page=2)
    last = await index_service.search("hello", page=2, hits_per_page=2)

    assert first.total_hits == 5
    assert first.total_pages == 3
    assert len(first.hits) == 2
    assert len(last.hits) == 1


async def test_rate_limit_is_translated(test_settings) -> None:
    aclient = AsyncMock()
    aclient.upsert.side_effect = UnexpectedResponse(
        status_code=429,
        reason_phrase="Too Many Requests",
        content=b"slow down",
        headers={"retry-after": "2"},  # type: ignore[arg-type]
    )
    svc = SearchIndexService(settings=test_settings, aclient=aclient)

    with pytest.raises(RateLimitError) as exc_info:
        await svc.upsert_or_create(_obj("p1", title="x"))
    assert exc_info.value.retry_after == 2.0


async def test_grpc_resource_exhausted_is_translated(test_settings) -> None:
    aclient = AsyncMock()
    aclient.batch_update_points.side_effect = grpc.aio.AioRpcError(
        code=grpc.StatusCode.RESOURCE_EXHAUSTED,
        initial_metadata=grpc.aio.Metadata(),
        trailing_metadata=grpc.aio.Metadata(),
        details="slow down",
    )
    aclient.retrieve.return_value = [q.Record(id=object_point_id("p1"), payload={})]
    svc = SearchIndexService(settings=test_settings, aclient=aclient)

    with pytest.raises(RateLimitError) as exc_info:
        await svc.upsert_if_exists([_obj("p1", title="x")])
    assert exc_info.value.retry_after is None


async def test_other_grpc_errors_propagate(test_settings) -> None:
    aclient = AsyncMock()
    aclient.delete.side_effect = grpc.aio.AioRpcError(
        code=grpc.StatusCode.UNAVAILABLE,
        initial_metadata=grpc.aio.Metadata(),
        trailing_metadata=grpc.aio.Metadata(),
    )
    svc = SearchIndexService(settings=test_settings, aclient=aclient)

    with pytest.raises(grpc.aio.AioRpcError):
        await svc.delete_by_id("p1")


async def test_other_errors_propagate(test_settings) -> None:
    aclient = AsyncMock()
    aclient.delete.side_effect = UnexpectedResponse(
        status_code=500,
        reason_phrase="Internal Server Error",
        content=b"boom",
        headers={},  # type: ignore[arg-type]
    )
    svc = SearchIndexService(settings=test_settings, aclient=aclient)

    with pytest.raises(UnexpectedResponse):
        await svc.delete_by_id("p1")


async def test_point_ids_are_stable() -> None:
    assert object_point_id("p1") == object_point_id("p1")
    assert object_point_id("p1") != object_point_id("p2")


async def test_highlights_mark_query_tokens() -> None:
    hit = with_highlights({"title": "Hello world", "body": "nothing"}, ["title", "body"], "hello")
    assert hit["_highlightResult"]["title"]["value"] == "<em>Hello</em> world"
    assert hit["_highlightResult"]["title"]["matchLevel"] == "full"
    assert hit["_highlightResult"]["body"]["matchLevel"] == "none"
