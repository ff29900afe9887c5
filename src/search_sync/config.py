"""Application configuration and settings."""

import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from search_sync.core.models import CollectionSchema, FieldDescriptor
from search_sync.transform.paths import validate_field_path


class FieldSpec(BaseModel):
    """Schema entry for one collection field, as declared in configuration."""

    name: str = Field(..., min_length=1)
    type: str = Field(..., min_length=1, description="Field type tag, e.g. 'richText'")
    fields: list["FieldSpec"] = Field(default_factory=list)

    model_config = {"populate_by_name": True, "frozen": True}

    def to_descriptor(self) -> FieldDescriptor:
        return FieldDescriptor(
            name=self.name,
            type=self.type,
            fields=tuple(child.to_descriptor() for child in self.fields),
        )


class CollectionSettings(BaseModel):
    """Per-collection sync configuration.

    Example:
    ```json
    {
        "slug": "posts",
        "indexFields": ["title", "content", "author", "meta.description"],
        "fields": [
            {"name": "title", "type": "text"},
            {"name": "content", "type": "richText"},
            {"name": "author", "type": "relationship"},
            {"name": "meta", "type": "group", "fields": [{"name": "description", "type": "text"}]}
        ]
    }
    ```
    """

    slug: str = Field(..., min_length=1)
    index_fields: list[str] = Field(default_factory=list, alias="indexFields")
    fields: list[FieldSpec] = Field(default_factory=list)

    model_config = {"populate_by_name": True, "frozen": True}

    @field_validator("index_fields")
    @classmethod
    def _validate_index_fields(cls, value: list[str]) -> list[str]:
        for path in value:
            validate_field_path(path)
        return value

    def to_schema(self) -> CollectionSchema:
        return CollectionSchema(
            slug=self.slug,
            fields=tuple(spec.to_descriptor() for spec in self.fields),
        )


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    # Application
    app_name: str = "Search Sync API"
    app_version: str = "0.1.0"
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = False

    # API
    api_v1_prefix: str = "/api/v1"

    # CORS
    cors_origins: list[str] = ["*"]
    cors_credentials: bool = True
    cors_methods: list[str] = ["*"]
    cors_headers: list[str] = ["*"]

    # Logging
    log_level: str = "INFO"

    # Sync behaviour
    disabled: bool = False
    configure_index_on_init: bool = True
    collections: list[CollectionSettings] = []
    collections_file: str | None = None
    override_access: bool = False  # Bypass repository access rules during enrichment

    # Search index (Qdrant)
    index_name: str = "search-sync"
    qdrant_url: str = "https://your-cluster.qdrant.io"
    qdrant_api_key: str | None = None
    qdrant_prefer_grpc: bool = False
    qdrant_timeout: int = 30  # Timeout in seconds

    # Content repository
    repository_url: str = "http://localhost:3000"
    repository_api_key: str | None = None
    repository_auth_collection: str = "users"
    repository_depth: int = 1
    repository_timeout: int = 30

    # Reindex
    reindex_batch_size: int = 500
    reindex_max_retries: int = 5
    reindex_retry_base_delay: float = 1.0  # Seconds, doubled on every attempt
    reindex_retry_max_delay: float = 15.0  # Ceiling for a single wait
    reindex_api_key: str | None = None

    # Search
    search_default_hits_per_page: int = 20
    search_max_hits_per_page: int = 1000

    # AWS SQS Configuration
    aws_region: str = "us-east-1"
    aws_access_key_id: str | None = None
    aws_secret_access_key: str | None = None
    sqs_queue_url: str | None = None
    sqs_endpoint_url: str | None = None  # Override for local SQS emulators
    sqs_max_messages: int = 10  # Max messages to receive per batch (1-10)
    sqs_wait_time_seconds: int = 20  # Long polling wait time (0-20)

    # Worker Configuration
    worker_poll_interval: int = 0  # Seconds between polls (0 for continuous)
    worker_shutdown_timeout: int = 30  # Graceful shutdown timeout
    worker_health_port: int = 8080

    @model_validator(mode="before")
    @classmethod
    def _load_collections_file(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        path = data.get("collections_file")
        if path and not data.get("collections"):
            data = dict(data)
            data["collections"] = json.loads(Path(path).read_text(encoding="utf-8"))
        return data

    @field_validator("collections")
    @classmethod
    def _unique_slugs(cls, value: list[CollectionSettings]) -> list[CollectionSettings]:
        slugs = [collection.slug for collection in value]
        duplicates = {slug for slug in slugs if slugs.count(slug) > 1}
        if duplicates:
            raise ValueError(f"Duplicate collection slugs: {sorted(duplicates)}")
        return value

    def get_collection(self, slug: str) -> CollectionSettings | None:
        """Return the configuration for a collection slug, if it is synced."""
        for collection in self.collections:
            if collection.slug == slug:
                return collection
        return None

    @property
    def all_index_fields(self) -> list[str]:
        """De-duplicated union of every collection's index fields, in declaration order."""
        seen: dict[str, None] = {}
        for collection in self.collections:
            for path in collection.index_fields:
                seen.setdefault(path, None)
        return list(seen)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Settings: Application settings instance.
    """
    return Settings()
