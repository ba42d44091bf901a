# conftest.py
import math
import zlib
from collections import Counter
from collections.abc import Sequence
from pathlib import Path
from types import SimpleNamespace

import pytest
import pytest_asyncio
from qdrant_client import AsyncQdrantClient

from file_crawler.config import Settings
from file_crawler.core.exceptions import ConversionError
from file_crawler.core.models import SparseVector
from file_crawler.core.retry import RetryPolicy
from file_crawler.repositories.vector_repository import VectorRepository
from file_crawler.services.embedder import EmbeddingGenerator, EmbeddingMode
from file_crawler.services.qdrant_service import QdrantService

TEST_DIM = 8


def _tokens(text: str) -> list[str]:
    return [t for t in "".join(c.lower() if c.isalnum() else " " for c in text).split() if t]


class HashDenseEncoder:
    """Deterministic bag-of-words dense encoder for tests."""

    model_name = "test-dense"

    def __init__(self, dimension: int = TEST_DIM):
        self.dimension = dimension
        self.calls: list[tuple[list[str], EmbeddingMode]] = []

    def vector(self, text: str) -> list[float]:
        values = [0.0] * self.dimension
        values[0] = 1.0  # never all-zero
        for token in _tokens(text):
            values[zlib.crc32(token.encode()) % self.dimension] += 1.0
        norm = math.sqrt(sum(v * v for v in values))
        return [v / norm for v in values]

    async def aembed(self, texts: Sequence[str], mode: EmbeddingMode) -> list[list[float]]:
        self.calls.append((list(texts), mode))
        return [self.vector(t) for t in texts]


class FlakyDenseEncoder(HashDenseEncoder):
    """Fails a fixed number of times before answering."""

    def __init__(self, failures: int):
        super().__init__()
        self.failures = failures
        self.attempts = 0

    async def aembed(self, texts: Sequence[str], mode: EmbeddingMode) -> list[list[float]]:
        self.attempts += 1
        if self.attempts <= self.failures:
            raise RuntimeError("model server unavailable")
        return await super().aembed(texts, mode)


class HashSparseEncoder:
    """Deterministic term-count sparse encoder for tests."""

    model_name = "test-sparse"

    def __init__(self):
        self.calls: list[tuple[list[str], EmbeddingMode]] = []

    @staticmethod
    def vector(text: str) -> SparseVector:
        counts = Counter(zlib.crc32(t.encode()) % 10_000 for t in _tokens(text))
        return SparseVector.from_mapping({i: float(c) for i, c in counts.items()})

    async def aembed(self, texts: Sequence[str], mode: EmbeddingMode) -> list[SparseVector]:
        self.calls.append((list(texts), mode))
        return [self.vector(t) for t in texts]


class FileTextConverter:
    """Reads files as UTF-8 text; paths listed in ``failing`` raise ConversionError."""

    def __init__(self, failing: Sequence[str] = ()):
        self.failing = {Path(p).name for p in failing}
        self.converted: list[str] = []

    async def convert(self, path: str) -> str:
        if Path(path).name in self.failing:
            raise ConversionError(f"Could not convert {path}: corrupt file")
        self.converted.append(path)
        return Path(path).read_text(encoding="utf-8")


NO_RETRY = RetryPolicy(max_attempts=1)


@pytest_asyncio.fixture
async def aclient_local():
    """In-memory embedded Qdrant for tests."""
    client = AsyncQdrantClient(location=":memory:")
    try:
        yield client
    finally:
        await client.close()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        qdrant_collection_name="test-chunks",
        qdrant_url="http://unused-in-local-mode",
        qdrant_api_key=None,
        qdrant_prefer_grpc=False,
        openai_api_key="test-key",
        openai_url="http://unused-openai",
        openai_model="test-model",
        dense_dim=TEST_DIM,
        chunk_size=200,
        chunk_overlap=20,
        candidate_pool_size=10,
        rerank_top_n=5,
        result_count=3,
        retry_max_attempts=1,
        retry_initial_backoff=0.0,
    )


@pytest_asyncio.fixture
async def qdrant_service(aclient_local: AsyncQdrantClient, test_settings: Settings):
    svc = QdrantService(settings=test_settings, aclient=aclient_local, retry_policy=NO_RETRY)
    await svc.ensure_schema()
    yield svc


@pytest.fixture
def vector_repository(qdrant_service: QdrantService) -> VectorRepository:
    return VectorRepository(qdrant_service)


@pytest.fixture
def dense_encoder() -> HashDenseEncoder:
    return HashDenseEncoder()


@pytest.fixture
def sparse_encoder() -> HashSparseEncoder:
    return HashSparseEncoder()


@pytest.fixture
def embedder(dense_encoder: HashDenseEncoder, sparse_encoder: HashSparseEncoder) -> EmbeddingGenerator:
    return EmbeddingGenerator(dense_encoder, sparse_encoder, batch_size=4, retry_policy=NO_RETRY)


class RecordingGenerator:
    """Answer generator stand-in that records the context it was given."""

    def __init__(self, answer: str = "Generated answer.", error: Exception | None = None):
        self.answer = answer
        self.error = error
        self.calls: list[tuple[str, list]] = []

    async def complete(self, query: str, contexts) -> str:
        self.calls.append((query, list(contexts)))
        if self.error is not None:
            raise self.error
        return self.answer


class FakeCompletions:
    """Mimics ``AsyncOpenAI().chat.completions``."""

    def __init__(self, content: str | None = "The answer.", error: Exception | None = None):
        self.content = content
        self.error = error
        self.requests: list[dict] = []

    async def create(self, **kwargs):
        self.requests.append(kwargs)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message, finish_reason="length")])


class FakeOpenAI:
    def __init__(self, completions: FakeCompletions):
        self.chat = SimpleNamespace(completions=completions)
