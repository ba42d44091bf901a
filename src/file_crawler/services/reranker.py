"""Cross-encoder reranking of fused candidates.

The reranker is an optional refinement: when the model cannot be loaded, fails,
times out or returns the wrong number of scores, the fused order is returned
unchanged so a query never fails because of it.
"""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Sequence
from dataclasses import replace
from typing import TYPE_CHECKING, Protocol

from file_crawler.config import Settings
from file_crawler.core.exceptions import RerankError
from file_crawler.core.logging import get_logger
from file_crawler.core.models import FusedCandidate
from file_crawler.core.retry import RetryPolicy

if TYPE_CHECKING:
    from fastembed.rerank.cross_encoder import TextCrossEncoder

logger = get_logger(__name__)


class CrossEncoderScorer(Protocol):
    """Scores (query, document) pairs; higher means more relevant."""

    model_name: str

    async def score(self, query: str, documents: Sequence[str]) -> list[float]: ...


class FastEmbedCrossEncoder:
    """Local ONNX cross-encoder (Jina reranker turbo by default)."""

    def __init__(self, model_name: str, batch_size: int = 32):
        self.model_name = model_name
        self.batch_size = batch_size
        self._model: TextCrossEncoder | None = None
        self._load_lock = threading.Lock()

    def _load(self) -> TextCrossEncoder:
        if self._model is None:
            with self._load_lock:
                if self._model is None:
                    from fastembed.rerank.cross_encoder import TextCrossEncoder

                    logger.info("Loading reranker model '%s'", self.model_name)
                    self._model = TextCrossEncoder(model_name=self.model_name)
        return self._model

    def _score_sync(self, query: str, documents: list[str]) -> list[float]:
        try:
            model = self._load()
            return [float(s) for s in model.rerank(query, documents, batch_size=self.batch_size)]
        except Exception as exc:
            raise RerankError(f"Reranker '{self.model_name}' failed: {exc}") from exc

    async def score(self, query: str, documents: Sequence[str]) -> list[float]:
        return await asyncio.to_thread(self._score_sync, query, list(documents))


class Reranker:
    """Reorders a fused shortlist by cross-encoder relevance."""

    def __init__(
        self,
        scorer: CrossEncoderScorer | None,
        retry_policy: RetryPolicy | None = None,
    ):
        self.scorer = scorer
        self.retry_policy = retry_policy or RetryPolicy(max_attempts=1)

    async def rerank(
        self,
        query: str,
        candidates: Sequence[FusedCandidate],
        top_n: int,
        *,
        limit: int | None = None,
    ) -> list[FusedCandidate]:
        """Rescore the first ``top_n`` candidates and keep the best ``limit``.

        Args:
            query: The user's question.
            candidates: Fused candidates in RRF order.
            top_n: How many leading candidates to score.
            limit: How many to return; defaults to ``top_n``.

        Returns:
            The reordered candidates with ``rerank_score`` set. On any reranker
            failure, the fused order truncated to ``limit`` with ``rerank_score``
            left as None.
        """
        limit = top_n if limit is None else limit
        shortlist = list(candidates[:top_n])
        fallback = list(candidates[:limit])

        if not shortlist:
            return []
        if self.scorer is None:
            logger.warning("No reranker configured; keeping fused order")
            return fallback

        try:
            scores = await self.retry_policy.run(
                lambda: self.scorer.score(query, [c.text for c in shortlist]),
                describe=f"rerank ({self.scorer.model_name})",
            )
        except Exception as exc:
            logger.warning("Reranker unavailable, keeping fused order: %s", str(exc) or "timeout")
            return fallback

        if len(scores) != len(shortlist):
            logger.warning(
                "Reranker returned %d scores for %d candidates; keeping fused order",
                len(scores),
                len(shortlist),
            )
            return fallback

        rescored = [
            replace(candidate, rerank_score=float(score), source_ranks=dict(candidate.source_ranks))
            for candidate, score in zip(shortlist, scores)
        ]
        # Equal scores keep their fused order.
        rescored.sort(key=lambda c: c.rerank_score, reverse=True)
        logger.debug("Reranked %d candidates, keeping %d", len(rescored), limit)
        return rescored[:limit]


def build_reranker(settings: Settings) -> Reranker:
    """Create the reranker configured by ``settings``."""
    scorer = FastEmbedCrossEncoder(settings.reranker_model_name) if settings.reranker_enabled else None
    return Reranker(
        scorer,
        retry_policy=RetryPolicy(max_attempts=1, timeout=settings.rerank_timeout),
    )
