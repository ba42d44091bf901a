"""FastAPI dependency injection utilities."""

from typing import TYPE_CHECKING, Annotated

from fastapi import Depends

from file_crawler.config import REQUIRED_FOR_SEARCH, Settings, get_settings

if TYPE_CHECKING:
    from file_crawler.services.qdrant_service import QdrantService
    from file_crawler.services.search_service import SearchService

# Common dependencies that can be injected into route handlers
SettingsDep = Annotated[Settings, Depends(get_settings)]


# Module-level cache for QdrantService singleton
_qdrant_service_cache: "QdrantService | None" = None


def get_qdrant_service(settings: Annotated["Settings", Depends(get_settings)]) -> "QdrantService":
    """Get or create a cached QdrantService instance."""
    global _qdrant_service_cache

    if _qdrant_service_cache is None:
        from file_crawler.services.qdrant_service import QdrantService

        _qdrant_service_cache = QdrantService(settings)

    return _qdrant_service_cache


# Module-level cache for SearchService singleton
_search_service_cache: "SearchService | None" = None


def get_search_service(
    settings: Annotated["Settings", Depends(get_settings)],
    qdrant_service: Annotated["QdrantService", Depends(get_qdrant_service)],
) -> "SearchService":
    """Get a SearchService instance.

    Raises:
        ConfigError: A value required for search is not configured.
    """
    global _search_service_cache

    if _search_service_cache is None:
        from file_crawler.services.search_service import SearchService

        settings.require(*REQUIRED_FOR_SEARCH)
        _search_service_cache = SearchService(settings, qdrant_service)

    return _search_service_cache


async def close_services() -> None:
    """Release cached clients on shutdown."""
    global _qdrant_service_cache, _search_service_cache

    if _qdrant_service_cache is not None:
        await _qdrant_service_cache.aclose()
    _qdrant_service_cache = None
    _search_service_cache = None


# Type aliases for dependency injection
QdrantServiceDep = Annotated["QdrantService", Depends(get_qdrant_service)]
SearchServiceDep = Annotated["SearchService", Depends(get_search_service)]
