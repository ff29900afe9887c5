"""Search and reindex response schemas."""

from typing import Any

from pydantic import BaseModel, Field


class SearchResponse(BaseModel):
    """Response model for the search endpoint."""

    query: str = Field(..., description="Original search query")
    hits: list[dict[str, Any]] = Field(..., description="Raw index hits")
    page: int = Field(..., description="Zero-based page number")
    nb_hits: int = Field(..., alias="nbHits", description="Total number of matching hits")
    nb_pages: int = Field(..., alias="nbPages", description="Total number of pages")
    hits_per_page: int = Field(..., alias="hitsPerPage", description="Page size")
    enriched_hits: dict[str, dict[str, Any]] | None = Field(
        None,
        alias="enrichedHits",
        description="Source documents keyed by objectID, present when enrichment was requested",
    )

    model_config = {"populate_by_name": True}


class ReindexResponse(BaseModel):
    """Response model for the reindex endpoint."""

    indexed: int = Field(..., description="Number of documents sent to the index")
    message: str = Field(..., description="Human-readable summary")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"indexed": 501, "message": "Successfully indexed 501 documents from posts"}
            ]
        }
    }
