"""Tests for the HTTP API endpoints."""

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from conftest import FakeRepository
from search_sync.config import Settings, get_settings
from search_sync.core.exceptions import RateLimitError
from search_sync.core.models import AccessMode, IndexSearchResult
from search_sync.dependencies import get_index_service, get_repository, get_search_service
from search_sync.main import create_app
from search_sync.services.enrichment_service import EnrichmentResolver
from search_sync.services.index_service import SearchIndexService
from search_sync.services.search_service import SearchService

HITS = [
    {"objectID": "p1", "collection": "posts", "title": "Hello world"},
    {"objectID": "a1", "collection": "authors", "name": "Hello Alice"},
]


@pytest.fixture
def repository() -> FakeRepository:
    return FakeRepository(
        {
            "posts": [{"id": "p1", "title": "Hello world", "body": "b"}],
            "authors": [{"id": "a1", "name": "Hello Alice", "email": "a@example.com"}],
        },
        users={"Bearer admin": {"id": "u1", "email": "admin@example.com"}},
    )


@pytest.fixture
def index_mock() -> AsyncMock:
    index = AsyncMock(spec=SearchIndexService)
    index.search.return_value = IndexSearchResult(
        hits=HITS, page=0, total_hits=2, total_pages=1, hits_per_page=20
    )
    index.upsert_if_exists.side_effect = lambda objects: len(objects)
    return index


def _client(settings: Settings, index: AsyncMock, repository: FakeRepository) -> TestClient:
    app = create_app()
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_index_service] = lambda: index
    app.dependency_overrides[get_repository] = lambda: repository
    app.dependency_overrides[get_search_service] = lambda: SearchService(
        settings, index, EnrichmentResolver(repository, AccessMode.ENFORCE)
    )
    return TestClient(app)


@pytest.fixture
def client(test_settings: Settings, index_mock: AsyncMock, repository: FakeRepository):
    return _client(test_settings, index_mock, repository)


def test_health_check(client: TestClient):
    """Test the health endpoint."""
    response = client.get("/api/v1/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["version"] == "0.1.0"
    assert data["sync_enabled"] is True
    assert data["collections"] == ["posts", "authors"]


def test_security_headers(client: TestClient):
    response = client.get("/api/v1/health")
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"


def test_search_returns_raw_hits(client: TestClient, repository: FakeRepository):
    response = client.get("/api/v1/search", params={"query": "hello"})

    assert response.status_code == 200
    data = response.json()
    assert data["query"] == "hello"
    assert data["nbHits"] == 2
    assert data["hitsPerPage"] == 20
    assert [hit["objectID"] for hit in data["hits"]] == ["p1", "a1"]
    assert data["enrichedHits"] is None
    assert repository.calls == []


def test_search_with_enrichment_and_select(client: TestClient, repository: FakeRepository):
    response = client.get(
        "/api/v1/search",
        params={
            "query": "hello",
            "enrichResults": "true",
            "select[posts][title]": "true",
            "select[authors][name]": "true",
        },
        headers={"Authorization": "Bearer caller"},
    )

    assert response.status_code == 200
    assert response.json()["enrichedHits"] == {
        "p1": {"id": "p1", "title": "Hello world"},
        "a1": {"id": "a1", "name": "Hello Alice"},
    }
    assert {call["auth"] for call in repository.calls} == {"Bearer caller"}


def test_search_enrichment_survives_failed_collection(
    test_settings: Settings, index_mock: AsyncMock
):
    repository = FakeRepository(
        {"authors": [{"id": "a1", "name": "Hello Alice"}]}, failing={"posts"}
    )
    client = _client(test_settings, index_mock, repository)

    response = client.get("/api/v1/search", params={"query": "hello", "enrichResults": "true"})

    assert response.status_code == 200
    assert set(response.json()["enrichedHits"]) == {"a1"}


def test_search_forwards_paging(client: TestClient, index_mock: AsyncMock):
    client.get(
        "/api/v1/search",
        params={"query": "hello", "page": "1", "hitsPerPage": "5", "collection": "posts"},
    )

    index_mock.search.assert_awaited_once_with("hello", page=1, hits_per_page=5, collection="posts")


def test_search_missing_query(client: TestClient, index_mock: AsyncMock):
    response = client.get("/api/v1/search")

    assert response.status_code == 400
    assert response.json()["error"] == "Search query is required"
    index_mock.search.assert_not_awaited()


def test_search_index_failure(client: TestClient, index_mock: AsyncMock):
    index_mock.search.side_effect = RuntimeError("connection refused")

    response = client.get("/api/v1/search", params={"query": "hello"})

    assert response.status_code == 500
    assert response.json()["error"] == "Search failed"
    assert response.json()["details"] == "connection refused"


def test_reindex_signed_in_user(client: TestClient, repository: FakeRepository):
    repository.documents["posts"] = [{"id": f"p{n}", "title": f"Post {n}"} for n in range(3)]

    response = client.post("/api/v1/reindex/posts", headers={"Authorization": "Bearer admin"})

    assert response.status_code == 200
    assert response.json() == {
        "indexed": 3,
        "message": "Successfully indexed 3 documents from posts",
    }


def test_reindex_unknown_token_is_forbidden(
    client: TestClient, repository: FakeRepository, index_mock: AsyncMock
):
    response = client.post(
        "/api/v1/reindex/posts", headers={"Authorization": "Bearer literally-anything"}
    )

    assert response.status_code == 403
    assert repository.calls == []
    index_mock.upsert_if_exists.assert_not_awaited()


def test_reindex_without_token_is_forbidden(
    client: TestClient, repository: FakeRepository, index_mock: AsyncMock
):
    response = client.post("/api/v1/reindex/posts")

    assert response.status_code == 403
    assert response.json()["error"] == "Unauthorized"
    assert repository.calls == []
    index_mock.upsert_if_exists.assert_not_awaited()


def test_reindex_checks_configured_key(
    test_settings: Settings, index_mock: AsyncMock, repository: FakeRepository
):
    settings = test_settings.model_copy(update={"reindex_api_key": "expected"})
    client = _client(settings, index_mock, repository)

    wrong = client.post("/api/v1/reindex/posts", headers={"Authorization": "Bearer nope"})
    right = client.post("/api/v1/reindex/posts", headers={"Authorization": "Bearer expected"})

    assert wrong.status_code == 403
    assert right.status_code == 200


def test_reindex_non_ascii_token_is_forbidden(
    test_settings: Settings, index_mock: AsyncMock, repository: FakeRepository
):
    settings = test_settings.model_copy(update={"reindex_api_key": "expected"})
    client = _client(settings, index_mock, repository)

    response = client.post(
        "/api/v1/reindex/posts", headers={"Authorization": "Bearer café".encode("latin-1")}
    )

    assert response.status_code == 403
    assert repository.calls == []


def test_reindex_unknown_collection(client: TestClient):
    response = client.post("/api/v1/reindex/unknown", headers={"Authorization": "Bearer admin"})

    assert response.status_code == 404


def test_reindex_blank_slug(client: TestClient):
    response = client.post("/api/v1/reindex/%20", headers={"Authorization": "Bearer admin"})

    assert response.status_code == 400


def test_reindex_exhausted_rate_limit(
    test_settings: Settings, index_mock: AsyncMock, repository: FakeRepository
):
    settings = test_settings.model_copy(
        update={"reindex_max_retries": 1, "reindex_retry_base_delay": 0.0}
    )
    index_mock.upsert_if_exists.side_effect = RateLimitError()
    repository.documents["posts"] = [{"id": "p1", "title": "x"}]
    client = _client(settings, index_mock, repository)

    response = client.post("/api/v1/reindex/posts", headers={"Authorization": "Bearer admin"})

    assert response.status_code == 500
    assert response.json()["error"] == "Reindexing failed"
    assert index_mock.upsert_if_exists.await_count == 2


def test_disabled_sync_rejects_requests(
    test_settings: Settings, index_mock: AsyncMock, repository: FakeRepository
):
    settings = test_settings.model_copy(update={"disabled": True})
    client = _client(settings, index_mock, repository)

    assert client.get("/api/v1/search", params={"query": "x"}).status_code == 503
    assert client.post("/api/v1/reindex/posts").status_code == 503
    assert client.get("/api/v1/health").json()["sync_enabled"] is False
