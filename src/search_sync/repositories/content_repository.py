"""Access to the content repository that owns the synced documents."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol

import aiohttp

from search_sync.config import Settings
from search_sync.core.exceptions import NotFoundException, RepositoryError
from search_sync.core.logging import get_logger
from search_sync.core.models import AccessMode, CollectionSchema, RepositoryPage

logger = get_logger(__name__)


class ContentRepository(Protocol):
    """Capability the sync core needs from the repository."""

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
        """Fetch one page of documents."""
        ...

    def get_schema(self, collection: str) -> CollectionSchema:
        """Return the field schema of a collection."""
        ...

    async def current_user(self, auth: str) -> dict[str, Any] | None:
        """Resolve an Authorization header to the signed-in user, if any."""
        ...


def encode_query(prefix: str, value: Any) -> list[tuple[str, str]]:
    """Encode nested mappings/lists as bracketed query parameters.

    ``encode_query("where", {"id": {"in": ["1", "2"]}})`` yields
    ``[("where[id][in][0]", "1"), ("where[id][in][1]", "2")]``.
    """
    if isinstance(value, Mapping):
        params: list[tuple[str, str]] = []
        for key, item in value.items():
            params.extend(encode_query(f"{prefix}[{key}]", item))
        return params
    if isinstance(value, (list, tuple)):
        params = []
        for idx, item in enumerate(value):
            params.extend(encode_query(f"{prefix}[{idx}]", item))
        return params
    if isinstance(value, bool):
        return [(prefix, "true" if value else "false")]
    return [(prefix, str(value))]


class RestContentRepository:
    """Repository client over the CMS REST API (``GET /api/{collection}``)."""

    def __init__(self, settings: Settings, session: aiohttp.ClientSession | None = None):
        """Initialize the repository client.

        Args:
            settings: Application settings.
            session: Optional shared aiohttp session (primarily for tests).
        """
        self.settings = settings
        self.base_url = settings.repository_url.rstrip("/")
        self._session = session
        self._schemas: dict[str, CollectionSchema] = {
            collection.slug: collection.to_schema() for collection in settings.collections
        }

    def get_schema(self, collection: str) -> CollectionSchema:
        schema = self._schemas.get(collection)
        if schema is None:
            raise NotFoundException(f"Collection '{collection}' not found in sync configuration")
        return schema

    def _headers(self, access_mode: AccessMode, auth: str | None) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if access_mode == AccessMode.BYPASS:
            if self.settings.repository_api_key:
                headers["Authorization"] = (
                    f"{self.settings.repository_auth_collection} API-Key "
                    f"{self.settings.repository_api_key}"
                )
            else:
                logger.warning("Access bypass requested but REPOSITORY_API_KEY is not configured")
        elif auth:
            headers["Authorization"] = auth
        return headers

    def _params(
        self,
        filter: Mapping[str, Any] | None,
        page: int,
        page_size: int,
        field_selection: Mapping[str, bool] | None,
    ) -> list[tuple[str, str]]:
        params: list[tuple[str, str]] = [
            ("limit", str(page_size)),
            ("page", str(page)),
            ("depth", str(self.settings.repository_depth)),
        ]
        if filter:
            params.extend(encode_query("where", filter))
        if field_selection:
            params.extend(encode_query("select", field_selection))
        return params

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
        """Fetch one page of a collection.

        Raises:
            RepositoryError: On non-success responses or malformed bodies.
        """
        url = f"{self.base_url}/api/{collection}"
        params = self._params(filter, page, page_size, field_selection)
        headers = self._headers(access_mode, auth)

        if self._session is not None:
            body = await self._get(self._session, url, params, headers)
        else:
            timeout = aiohttp.ClientTimeout(total=self.settings.repository_timeout)
            async with aiohttp.ClientSession(timeout=timeout) as session:
                body = await self._get(session, url, params, headers)

        docs = body.get("docs")
        if not isinstance(docs, list):
            raise RepositoryError(f"Malformed response for '{collection}': missing docs")

        return RepositoryPage(
            documents=docs,
            has_next_page=bool(body.get("hasNextPage", False)),
            total_count=int(body.get("totalDocs", len(docs))),
        )

    async def current_user(self, auth: str) -> dict[str, Any] | None:
        """Look up the user behind an Authorization header.

        Returns None when the repository rejects the credentials or knows no
        such user.
        """
        url = f"{self.base_url}/api/{self.settings.repository_auth_collection}/me"
        headers = {"Accept": "application/json", "Authorization": auth}

        try:
            if self._session is not None:
                body = await self._get(self._session, url, [], headers)
            else:
                timeout = aiohttp.ClientTimeout(total=self.settings.repository_timeout)
                async with aiohttp.ClientSession(timeout=timeout) as session:
                    body = await self._get(session, url, [], headers)
        except RepositoryError as e:
            logger.warning("User lookup rejected: %s", e)
            return None

        user = body.get("user")
        return user if isinstance(user, dict) else None

    @staticmethod
    async def _get(
        session: aiohttp.ClientSession,
        url: str,
        params: list[tuple[str, str]],
        headers: dict[str, str],
    ) -> dict[str, Any]:
        async with session.get(url, params=params, headers=headers) as response:
            if response.status >= 400:
                text = await response.text()
                raise RepositoryError(
                    f"Repository request failed with {response.status}: {text[:200]}",
                    status_code=response.status,
                )
            body = await response.json()
        if not isinstance(body, dict):
            raise RepositoryError("Malformed repository response")
        return body


__all__ = ["ContentRepository", "RestContentRepository", "encode_query"]
