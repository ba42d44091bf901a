"""Dense and sparse embedding generation with batching and retries."""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Sequence
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol

from file_crawler.config import Settings
from file_crawler.core.exceptions import EmbeddingError
from file_crawler.core.logging import get_logger
from file_crawler.core.models import EmbeddingPair, SparseVector
from file_crawler.core.retry import RetryPolicy
from file_crawler.text_processing.token_estimator import truncate_to_tokens

if TYPE_CHECKING:
    from fastembed import SparseTextEmbedding, TextEmbedding
    from llama_index.embeddings.openai import OpenAIEmbedding  # type: ignore

logger = get_logger(__name__)


class EmbeddingMode(str, Enum):
    """Which side of an asymmetric retrieval model a text is embedded for."""

    DOCUMENT = "document"
    QUERY = "query"


class DenseEncoder(Protocol):
    """Produces fixed-length dense vectors."""

    model_name: str
    dimension: int

    async def aembed(self, texts: Sequence[str], mode: EmbeddingMode) -> list[list[float]]: ...


class SparseEncoder(Protocol):
    """Produces term-weight sparse vectors."""

    model_name: str

    async def aembed(self, texts: Sequence[str], mode: EmbeddingMode) -> list[SparseVector]: ...


class FastEmbedDenseEncoder:
    """Local ONNX dense model (BGE small by default)."""

    def __init__(self, model_name: str, dimension: int, batch_size: int = 32):
        self.model_name = model_name
        self.dimension = dimension
        self.batch_size = batch_size
        self._model: TextEmbedding | None = None
        self._load_lock = threading.Lock()

    def _load(self) -> TextEmbedding:
        if self._model is None:
            with self._load_lock:
                if self._model is None:
                    from fastembed import TextEmbedding

                    logger.info("Loading dense embedding model '%s'", self.model_name)
                    self._model = TextEmbedding(model_name=self.model_name)
        return self._model

    def _embed_sync(self, texts: list[str], mode: EmbeddingMode) -> list[list[float]]:
        model = self._load()
        if mode is EmbeddingMode.QUERY:
            vectors = model.query_embed(texts)
        else:
            vectors = model.passage_embed(texts, batch_size=self.batch_size)
        return [vector.tolist() for vector in vectors]

    async def aembed(self, texts: Sequence[str], mode: EmbeddingMode) -> list[list[float]]:
        return await asyncio.to_thread(self._embed_sync, list(texts), mode)


class OpenAIDenseEncoder:
    """Remote dense model behind the OpenAI embeddings API."""

    def __init__(self, settings: Settings, embed_model: OpenAIEmbedding | None = None):
        self.model_name = settings.openai_embedding_model
        self.dimension = settings.dense_dim

        if embed_model is None:
            from llama_index.embeddings.openai import OpenAIEmbedding  # type: ignore

            embed_model = OpenAIEmbedding(
                api_key=settings.openai_api_key,
                api_base=settings.openai_url,
                model=settings.openai_embedding_model,
                dimensions=settings.dense_dim,
                max_retries=settings.openai_max_retries,
            )
        self._model = embed_model

    async def aembed(self, texts: Sequence[str], mode: EmbeddingMode) -> list[list[float]]:
        if mode is EmbeddingMode.QUERY:
            return list(await asyncio.gather(*(self._model.aget_query_embedding(t) for t in texts)))
        return await self._model.aget_text_embedding_batch(list(texts))


class FastEmbedSparseEncoder:
    """Local SPLADE sparse model."""

    def __init__(self, model_name: str, batch_size: int = 32):
        self.model_name = model_name
        self.batch_size = batch_size
        self._model: SparseTextEmbedding | None = None
        self._load_lock = threading.Lock()

    def _load(self) -> SparseTextEmbedding:
        if self._model is None:
            with self._load_lock:
                if self._model is None:
                    from fastembed import SparseTextEmbedding

                    logger.info("Loading sparse embedding model '%s'", self.model_name)
                    self._model = SparseTextEmbedding(model_name=self.model_name)
        return self._model

    def _embed_sync(self, texts: list[str], mode: EmbeddingMode) -> list[SparseVector]:
        model = self._load()
        if mode is EmbeddingMode.QUERY:
            embeddings = model.query_embed(texts)
        else:
            embeddings = model.passage_embed(texts, batch_size=self.batch_size)
        return [_to_sparse_vector(e.indices, e.values) for e in embeddings]

    async def aembed(self, texts: Sequence[str], mode: EmbeddingMode) -> list[SparseVector]:
        return await asyncio.to_thread(self._embed_sync, list(texts), mode)


def _to_sparse_vector(indices: Any, values: Any) -> SparseVector:
    """Keep only positive weights; Qdrant sparse scores assume non-negative terms."""
    kept = [(int(i), float(v)) for i, v in zip(indices, values) if float(v) > 0.0]
    return SparseVector(indices=[i for i, _ in kept], values=[v for _, v in kept])


class EmbeddingGenerator:
    """Embeds texts with both encoders in bounded batches."""

    def __init__(
        self,
        dense: DenseEncoder,
        sparse: SparseEncoder,
        *,
        batch_size: int = 32,
        max_tokens: int = 512,
        retry_policy: RetryPolicy | None = None,
    ):
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self.dense = dense
        self.sparse = sparse
        self.batch_size = batch_size
        self.max_tokens = max_tokens
        self.retry_policy = retry_policy or RetryPolicy()

    @property
    def dimension(self) -> int:
        return self.dense.dimension

    async def embed_dense(
        self,
        texts: Sequence[str],
        mode: EmbeddingMode = EmbeddingMode.DOCUMENT,
    ) -> list[list[float]]:
        """Return one dense vector per text."""
        vectors: list[list[float]] = []
        for batch in self._batches(texts):
            result = await self._call(
                lambda b=batch: self.dense.aembed(b, mode),
                describe=f"dense embedding ({self.dense.model_name})",
                expected=len(batch),
            )
            for vector in result:
                if len(vector) != self.dimension:
                    raise EmbeddingError(
                        f"Dense model '{self.dense.model_name}' returned a {len(vector)}-d "
                        f"vector; expected {self.dimension}",
                        retryable=False,
                    )
            vectors.extend(result)
        return vectors

    async def embed_sparse(
        self,
        texts: Sequence[str],
        mode: EmbeddingMode = EmbeddingMode.DOCUMENT,
    ) -> list[SparseVector]:
        """Return one sparse vector per text."""
        vectors: list[SparseVector] = []
        for batch in self._batches(texts):
            vectors.extend(
                await self._call(
                    lambda b=batch: self.sparse.aembed(b, mode),
                    describe=f"sparse embedding ({self.sparse.model_name})",
                    expected=len(batch),
                )
            )
        return vectors

    async def embed(
        self,
        texts: Sequence[str],
        mode: EmbeddingMode = EmbeddingMode.DOCUMENT,
    ) -> list[EmbeddingPair]:
        """Return dense + sparse pairs aligned with ``texts``."""
        dense = await self.embed_dense(texts, mode)
        sparse = await self.embed_sparse(texts, mode)
        return [EmbeddingPair(dense=d, sparse=s) for d, s in zip(dense, sparse)]

    async def embed_query(self, query: str) -> EmbeddingPair:
        """Embed a single query in QUERY mode, dense and sparse concurrently."""
        dense, sparse = await asyncio.gather(
            self.embed_dense([query], EmbeddingMode.QUERY),
            self.embed_sparse([query], EmbeddingMode.QUERY),
        )
        return EmbeddingPair(dense=dense[0], sparse=sparse[0])

    def _batches(self, texts: Sequence[str]) -> list[list[str]]:
        prepared = [truncate_to_tokens(text, self.max_tokens) for text in texts]
        return [
            prepared[start : start + self.batch_size]
            for start in range(0, len(prepared), self.batch_size)
        ]

    async def _call(self, operation, *, describe: str, expected: int) -> list[Any]:
        async def _guarded() -> list[Any]:
            try:
                result = await operation()
            except EmbeddingError:
                raise
            except Exception as exc:
                raise EmbeddingError(f"{describe} failed: {exc}") from exc
            if len(result) != expected:
                raise EmbeddingError(
                    f"{describe} returned {len(result)} vectors for {expected} inputs",
                    retryable=False,
                )
            return list(result)

        try:
            return await self.retry_policy.run(_guarded, describe=describe)
        except TimeoutError as exc:
            raise EmbeddingError(f"{describe} timed out") from exc


def build_embedding_generator(settings: Settings) -> EmbeddingGenerator:
    """Create the generator configured by ``settings``."""
    dense: DenseEncoder
    if settings.dense_backend == "openai":
        dense = OpenAIDenseEncoder(settings)
    else:
        dense = FastEmbedDenseEncoder(
            settings.dense_model_name,
            settings.dense_dim,
            batch_size=settings.embedding_batch_size,
        )
    sparse = FastEmbedSparseEncoder(
        settings.sparse_model_name,
        batch_size=settings.embedding_batch_size,
    )
    return EmbeddingGenerator(
        dense,
        sparse,
        batch_size=settings.embedding_batch_size,
        max_tokens=settings.embedding_max_tokens,
        retry_policy=RetryPolicy.from_settings(settings, timeout=settings.embedding_timeout),
    )
