# conftest.py
from collections.abc import Mapping
from typing import Any

import pytest
import pytest_asyncio
from qdrant_client import AsyncQdrantClient

from search_sync.config import CollectionSettings, Settings
from search_sync.core.exceptions import NotFoundException, RepositoryError
from search_sync.core.models import AccessMode, CollectionSchema, RepositoryPage
from search_sync.services.index_service import SearchIndexService
from search_sync.transform.transformers import TransformerRegistry

POSTS = CollectionSettings.model_validate(
    {
        "slug": "posts",
        "indexFields": ["title", "content", "tags", "author", "meta.description"],
        "fields": [
            {"name": "title", "type": "text"},
            {"name": "content", "type": "richText"},
            {"name": "tags", "type": "array"},
            {"name": "author", "type": "relationship"},
            {"name": "status", "type": "select"},
            {
                "name": "meta",
                "type": "group",
                "fields": [{"name": "description", "type": "textarea"}],
            },
        ],
    }
)

AUTHORS = CollectionSettings.model_validate(
    {
        "slug": "authors",
        "indexFields": ["name", "bio"],
        "fields": [
            {"name": "name", "type": "text"},
            {"name": "bio", "type": "textarea"},
        ],
    }
)


class FakeRepository:
    """In-memory content repository recording every lookup."""

    def __init__(
        self,
        documents: Mapping[str, list[dict[str, Any]]] | None = None,
        collections: list[CollectionSettings] | None = None,
        failing: set[str] | None = None,
        users: Mapping[str, dict[str, Any]] | None = None,
    ):
        self.documents = {slug: list(docs) for slug, docs in (documents or {}).items()}
        self.schemas = {c.slug: c.to_schema() for c in (collections or [POSTS, AUTHORS])}
        self.failing = failing or set()
        self.users = dict(users or {})
        self.calls: list[dict[str, Any]] = []

    def get_schema(self, collection: str) -> CollectionSchema:
        if collection not in self.schemas:
            raise NotFoundException(f"Collection '{collection}' not found")
        return self.schemas[collection]

    async def current_user(self, auth: str) -> dict[str, Any] | None:
        return self.users.get(auth)

    async def find(
        self,
        collection: str,
        *,
        filter: Mapping[str, Any] | None = None,
        page: int = 1,
        page_size: int = 10,
        field_selection: Mapping[str, bool] | None = None,
        access_mode: AccessMode = AccessMode.ENFORCE,
        auth: str | None = None,
    ) -> RepositoryPage:
        self.calls.append(
            {
                "collection": collection,
                "filter": filter,
                "page": page,
                "page_size": page_size,
                "field_selection": field_selection,
                "access_mode": access_mode,
                "auth": auth,
            }
        )
        if collection in self.failing:
            raise RepositoryError("Forbidden", status_code=403)

        docs = self.documents.get(collection, [])
        if filter and "id" in filter:
            wanted = {str(i) for i in filter["id"]["in"]}
            docs = [doc for doc in docs if str(doc.get("id")) in wanted]

        start = (page - 1) * page_size
        chunk = docs[start : start + page_size]
        if field_selection:
            keep = {name for name, selected in field_selection.items() if selected}
            chunk = [
                {key: value for key, value in doc.items() if key == "id" or key in keep}
                for doc in chunk
            ]
        return RepositoryPage(
            documents=chunk,
            has_next_page=start + page_size < len(docs),
            total_count=len(docs),
        )


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        index_name="test-search-sync",
        qdrant_url="http://unused-in-local-mode",
        qdrant_api_key=None,
        qdrant_prefer_grpc=False,
        repository_url="http://cms.test",
        repository_api_key="secret-key",
        collections=[POSTS, AUTHORS],
        reindex_retry_base_delay=1.0,
        reindex_retry_max_delay=15.0,
    )


@pytest.fixture
def registry() -> TransformerRegistry:
    return TransformerRegistry()


@pytest.fixture
def fake_repository() -> FakeRepository:
    return FakeRepository()


@pytest_asyncio.fixture
async def aclient_local():
    """In-memory embedded Qdrant for tests."""
    client = AsyncQdrantClient(location=":memory:")
    try:
        yield client
    finally:
        await client.close()


@pytest_asyncio.fixture
async def index_service(aclient_local: AsyncQdrantClient, test_settings: Settings):
    svc = SearchIndexService(settings=test_settings, aclient=aclient_local)
    await svc.ensure_index()
    yield svc
