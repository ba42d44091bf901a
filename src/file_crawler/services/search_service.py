"""Query pipeline: hybrid retrieval, rank fusion, reranking and answer generation."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

from file_crawler.config import Settings
from file_crawler.core.exceptions import GenerationError
from file_crawler.core.logging import get_logger
from file_crawler.core.models import FusedCandidate
from file_crawler.services.embedder import EmbeddingGenerator, build_embedding_generator
from file_crawler.services.fusion import fuse
from file_crawler.services.generator import AnswerGenerator
from file_crawler.services.qdrant_service import QdrantService
from file_crawler.services.reranker import Reranker, build_reranker

logger = get_logger(__name__)


@dataclass(slots=True)
class QueryResult:
    """Outcome of one query."""

    query: str
    contexts: list[FusedCandidate] = field(default_factory=list)
    answer: str | None = None
    reranked: bool = False
    generation_error: str | None = None


class SearchService:
    """Service for hybrid search operations."""

    def __init__(
        self,
        settings: Settings,
        qdrant_service: QdrantService,
        *,
        embedder: EmbeddingGenerator | None = None,
        reranker: Reranker | None = None,
        generator: AnswerGenerator | None = None,
    ):
        """Initialize search service.

        Args:
            settings: Application settings.
            qdrant_service: Qdrant service instance.
            embedder: Optional preconfigured embedder (primarily for tests).
            reranker: Optional preconfigured reranker.
            generator: Optional preconfigured answer generator.
        """
        self.settings = settings
        self.qdrant_service = qdrant_service
        self.embedder = embedder or build_embedding_generator(settings)
        self.reranker = reranker or build_reranker(settings)
        self.generator = generator or AnswerGenerator(settings)

        logger.info("Search service initialized for collection '%s'", qdrant_service.col)

    async def retrieve(self, query: str, *, limit: int | None = None) -> tuple[list[FusedCandidate], bool]:
        """Return the final ranked chunks for ``query`` and whether they were reranked.

        Embedding and index failures propagate; a reranker outage only drops back to
        the fused order.
        """
        limit = limit or self.settings.result_count
        pool = self.settings.candidate_pool_size

        embedding = await self.embedder.embed_query(query)
        dense, sparse = await asyncio.gather(
            self.qdrant_service.search_dense(embedding.dense, pool),
            self.qdrant_service.search_sparse(embedding.sparse, pool),
        )
        fused = fuse(dense, sparse, k_constant=self.settings.rrf_k)
        logger.info(
            "Query '%s': dense=%d sparse=%d fused=%d",
            query,
            len(dense),
            len(sparse),
            len(fused),
        )

        top_n = max(self.settings.rerank_top_n, limit)
        contexts = await self.reranker.rerank(query, fused, top_n, limit=limit)
        reranked = bool(contexts) and all(c.rerank_score is not None for c in contexts)
        return contexts, reranked

    async def search(
        self,
        query: str,
        *,
        limit: int | None = None,
        generate: bool = True,
    ) -> QueryResult:
        """Retrieve context for ``query`` and, optionally, answer it.

        Generation failures are reported on the result instead of raised so the
        retrieved context is still returned.
        """
        contexts, reranked = await self.retrieve(query, limit=limit)
        result = QueryResult(query=query, contexts=contexts, reranked=reranked)
        if not generate:
            return result

        try:
            result.answer = await self.generator.complete(query, contexts)
        except GenerationError as exc:
            logger.error("Answer generation failed for '%s': %s", query, exc)
            result.generation_error = exc.message
        return result
