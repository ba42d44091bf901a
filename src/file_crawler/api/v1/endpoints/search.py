"""Search endpoint for hybrid dense + sparse retrieval with answer generation."""

from fastapi import APIRouter, status

from file_crawler.core.logging import get_logger
from file_crawler.dependencies import SearchServiceDep
from file_crawler.schemas.search import SearchRequest, SearchResponse

logger = get_logger(__name__)

router = APIRouter(tags=["search"])


@router.post(
    "/search",
    response_model=SearchResponse,
    summary="Hybrid Search",
    description="Retrieves, fuses and reranks indexed chunks, then answers from them",
    status_code=status.HTTP_200_OK,
)
async def search(
    request: SearchRequest,
    search_service: SearchServiceDep,
) -> SearchResponse:
    """Answer a query from the indexed documents.

    Embedding and index failures surface as application errors; a failed answer
    generation is reported in ``generation_error`` alongside the chunks.

    Args:
        request: Search request with the query and options.
        search_service: Injected search service.

    Returns:
        SearchResponse: Ranked chunks and the generated answer.
    """
    logger.info("Search request: query='%s', limit=%s", request.query, request.limit)

    result = await search_service.search(
        request.query,
        limit=request.limit,
        generate=request.generate,
    )
    response = SearchResponse.from_result(result)

    logger.info(
        "Search completed: %d results (reranked=%s)", response.total_results, response.reranked
    )
    return response
