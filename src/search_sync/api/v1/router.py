"""Main API v1 router that combines all endpoint routers."""

from fastapi import APIRouter

from search_sync.api.v1.endpoints import health, reindex, search

api_router = APIRouter()

# Include all endpoint routers
api_router.include_router(health.router)
api_router.include_router(search.router)
api_router.include_router(reindex.router)
