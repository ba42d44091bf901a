"""Tests for the dense + sparse embedding generator."""

import asyncio
import time
from collections.abc import Sequence
from types import SimpleNamespace

import numpy as np
import pytest
from conftest import NO_RETRY, TEST_DIM, FlakyDenseEncoder, HashDenseEncoder, HashSparseEncoder

from file_crawler.core.exceptions import EmbeddingError
from file_crawler.core.retry import RetryPolicy
from file_crawler.services.embedder import (
    EmbeddingGenerator,
    EmbeddingMode,
    FastEmbedDenseEncoder,
    FastEmbedSparseEncoder,
    _to_sparse_vector,
)

pytestmark = pytest.mark.asyncio


class WrongSizeDenseEncoder(HashDenseEncoder):
    async def aembed(self, texts: Sequence[str], mode: EmbeddingMode) -> list[list[float]]:
        return [[0.1] * (TEST_DIM + 1) for _ in texts]


class ShortSparseEncoder(HashSparseEncoder):
    async def aembed(self, texts, mode):
        return (await super().aembed(texts, mode))[:-1]


async def test_embed_returns_aligned_pairs(embedder: EmbeddingGenerator) -> None:
    texts = ["alpha beta", "gamma", "delta epsilon zeta"]
    pairs = await embedder.embed(texts)

    assert len(pairs) == 3
    assert all(len(p.dense) == TEST_DIM for p in pairs)
    assert pairs[1].sparse == HashSparseEncoder.vector("gamma")


async def test_texts_are_sent_in_bounded_batches(
    embedder: EmbeddingGenerator,
    dense_encoder: HashDenseEncoder,
    sparse_encoder: HashSparseEncoder,
) -> None:
    await embedder.embed([f"text {i}" for i in range(10)])

    assert [len(texts) for texts, _ in dense_encoder.calls] == [4, 4, 2]
    assert [len(texts) for texts, _ in sparse_encoder.calls] == [4, 4, 2]


async def test_embed_query_uses_query_mode(
    embedder: EmbeddingGenerator,
    dense_encoder: HashDenseEncoder,
    sparse_encoder: HashSparseEncoder,
) -> None:
    pair = await embedder.embed_query("what is alpha")

    assert pair.dense == dense_encoder.vector("what is alpha")
    assert dense_encoder.calls[0][1] is EmbeddingMode.QUERY
    assert sparse_encoder.calls[0][1] is EmbeddingMode.QUERY


async def test_document_mode_is_default(
    embedder: EmbeddingGenerator, dense_encoder: HashDenseEncoder
) -> None:
    await embedder.embed_dense(["passage"])
    assert dense_encoder.calls[0][1] is EmbeddingMode.DOCUMENT


async def test_empty_input_makes_no_calls(
    embedder: EmbeddingGenerator, dense_encoder: HashDenseEncoder
) -> None:
    assert await embedder.embed([]) == []
    assert dense_encoder.calls == []


async def test_long_texts_are_truncated(dense_encoder: HashDenseEncoder) -> None:
    generator = EmbeddingGenerator(
        dense_encoder, HashSparseEncoder(), max_tokens=5, retry_policy=NO_RETRY
    )
    await generator.embed_dense(["y" * 100])
    assert dense_encoder.calls[0][0] == ["y" * 20]


async def test_encoder_failure_is_retried() -> None:
    dense = FlakyDenseEncoder(failures=2)
    generator = EmbeddingGenerator(
        dense,
        HashSparseEncoder(),
        retry_policy=RetryPolicy(max_attempts=3, initial_backoff=0.0, max_backoff=0.0),
    )

    vectors = await generator.embed_dense(["recovered"])
    assert len(vectors) == 1
    assert dense.attempts == 3


async def test_encoder_failure_after_retries_raises_embedding_error() -> None:
    dense = FlakyDenseEncoder(failures=10)
    generator = EmbeddingGenerator(
        dense,
        HashSparseEncoder(),
        retry_policy=RetryPolicy(max_attempts=2, initial_backoff=0.0, max_backoff=0.0),
    )

    with pytest.raises(EmbeddingError) as exc_info:
        await generator.embed_dense(["never"])
    assert exc_info.value.retryable is True
    assert dense.attempts == 2


async def test_wrong_dimension_is_not_retryable() -> None:
    generator = EmbeddingGenerator(
        WrongSizeDenseEncoder(), HashSparseEncoder(), retry_policy=NO_RETRY
    )
    with pytest.raises(EmbeddingError) as exc_info:
        await generator.embed_dense(["text"])
    assert exc_info.value.retryable is False


async def test_vector_count_mismatch_raises() -> None:
    generator = EmbeddingGenerator(HashDenseEncoder(), ShortSparseEncoder(), retry_policy=NO_RETRY)
    with pytest.raises(EmbeddingError, match="returned 1 vectors for 2 inputs"):
        await generator.embed_sparse(["one", "two"])


async def test_invalid_batch_size_rejected() -> None:
    with pytest.raises(ValueError):
        EmbeddingGenerator(HashDenseEncoder(), HashSparseEncoder(), batch_size=0)


async def test_sparse_conversion_drops_non_positive_weights() -> None:
    vector = _to_sparse_vector([3, 7, 9, 11], [0.5, 0.0, -0.2, 1.5])
    assert vector.indices == [3, 11]
    assert vector.values == [0.5, 1.5]


class SlowLoadingTextEmbedding:
    """Stands in for ``fastembed.TextEmbedding`` with an expensive constructor."""

    built: list["SlowLoadingTextEmbedding"] = []

    def __init__(self, model_name: str):
        time.sleep(0.1)
        self.model_name = model_name
        SlowLoadingTextEmbedding.built.append(self)

    def passage_embed(self, texts, batch_size=32):
        return [np.ones(TEST_DIM) for _ in texts]

    def query_embed(self, texts):
        return [np.ones(TEST_DIM) for _ in texts]


class SlowLoadingSparseEmbedding:
    built: list["SlowLoadingSparseEmbedding"] = []

    def __init__(self, model_name: str):
        time.sleep(0.1)
        SlowLoadingSparseEmbedding.built.append(self)

    def passage_embed(self, texts, batch_size=32):
        return [SimpleNamespace(indices=np.array([3, 7]), values=np.array([0.5, 1.5])) for _ in texts]

    def query_embed(self, texts):
        return self.passage_embed(texts)


async def test_concurrent_dense_calls_load_the_model_once(monkeypatch) -> None:
    monkeypatch.setattr("fastembed.TextEmbedding", SlowLoadingTextEmbedding)
    monkeypatch.setattr(SlowLoadingTextEmbedding, "built", [])
    encoder = FastEmbedDenseEncoder("BAAI/bge-small-en-v1.5", TEST_DIM)

    results = await asyncio.gather(
        *(encoder.aembed([f"document {i}"], EmbeddingMode.DOCUMENT) for i in range(4))
    )

    assert len(SlowLoadingTextEmbedding.built) == 1
    assert all(len(r) == 1 and len(r[0]) == TEST_DIM for r in results)


async def test_concurrent_sparse_calls_load_the_model_once(monkeypatch) -> None:
    monkeypatch.setattr("fastembed.SparseTextEmbedding", SlowLoadingSparseEmbedding)
    monkeypatch.setattr(SlowLoadingSparseEmbedding, "built", [])
    encoder = FastEmbedSparseEncoder("prithivida/Splade_PP_en_v1")

    results = await asyncio.gather(
        *(encoder.aembed([f"document {i}"], EmbeddingMode.DOCUMENT) for i in range(4))
    )

    assert len(SlowLoadingSparseEmbedding.built) == 1
    assert all(len(r) == 1 for r in results)
