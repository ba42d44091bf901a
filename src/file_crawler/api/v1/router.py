"""Main API v1 router that combines all endpoint routers."""

from fastapi import APIRouter

from file_crawler.api.v1.endpoints import health, search

api_router = APIRouter()

api_router.include_router(health.router)
api_router.include_router(search.router)
