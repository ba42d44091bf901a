"""Search request and response schemas."""

from pydantic import BaseModel, Field

from file_crawler.core.models import FusedCandidate
from file_crawler.services.search_service import QueryResult


class SearchRequest(BaseModel):
    """Request model for search endpoint."""

    query: str = Field(..., description="Search query text", min_length=1)
    limit: int | None = Field(
        None, description="Maximum number of chunks to return", ge=1, le=100
    )
    generate: bool = Field(True, description="Whether to generate an answer from the chunks")


class SearchResultItem(BaseModel):
    """A retrieved chunk in final rank order."""

    chunk_id: str = Field(..., description="Chunk point ID")
    source_path: str = Field(..., description="Path of the source file")
    sequence_index: int = Field(..., description="Position of the chunk within its file")
    text: str = Field(..., description="Chunk text")
    rrf_score: float = Field(..., description="Reciprocal rank fusion score")
    rerank_score: float | None = Field(None, description="Cross-encoder score, if reranked")

    @classmethod
    def from_candidate(cls, candidate: FusedCandidate) -> "SearchResultItem":
        return cls(
            chunk_id=candidate.chunk_id,
            source_path=candidate.source_path,
            sequence_index=candidate.sequence_index,
            text=candidate.text,
            rrf_score=candidate.rrf_score,
            rerank_score=candidate.rerank_score,
        )


class SearchResponse(BaseModel):
    """Response model for search endpoint."""

    query: str = Field(..., description="Original search query")
    answer: str | None = Field(None, description="Generated answer, if requested and successful")
    generation_error: str | None = Field(None, description="Why answer generation failed")
    reranked: bool = Field(..., description="False when the fused order was kept")
    total_results: int = Field(..., description="Number of chunks returned")
    results: list[SearchResultItem] = Field(..., description="Chunks in final rank order")

    @classmethod
    def from_result(cls, result: QueryResult) -> "SearchResponse":
        items = [SearchResultItem.from_candidate(c) for c in result.contexts]
        return cls(
            query=result.query,
            answer=result.answer,
            generation_error=result.generation_error,
            reranked=result.reranked,
            total_results=len(items),
            results=items,
        )
