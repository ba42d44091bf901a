"""Domain models for documents, chunks, vectors and ranked candidates."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from file_crawler.core.constants import K_SEQUENCE_INDEX, K_SOURCE_PATH, K_TEXT


@dataclass(frozen=True)
class Document:
    """A discovered source file. Never persisted directly."""

    path: str
    modified_at: datetime
    size: int = 0


@dataclass(frozen=True)
class Chunk:
    """A retrievable slice of a document."""

    id: str
    source_path: str
    sequence_index: int
    text: str
    modified_at: datetime


@dataclass(frozen=True)
class SparseVector:
    """Represents a sparse vector entry."""

    indices: list[int]
    values: list[float]

    def as_mapping(self) -> dict[int, float]:
        return dict(zip(self.indices, self.values))

    @classmethod
    def from_mapping(cls, weights: Mapping[int, float]) -> "SparseVector":
        ordered = sorted(weights.items())
        return cls(indices=[i for i, _ in ordered], values=[float(w) for _, w in ordered])


@dataclass(frozen=True)
class EmbeddingPair:
    """Dense and sparse representation of one text."""

    dense: list[float]
    sparse: SparseVector


@dataclass(frozen=True)
class IndexPoint:
    """A chunk as persisted in the vector database."""

    id: str
    dense: list[float]
    sparse: SparseVector
    payload: dict[str, Any]


@dataclass(frozen=True)
class FileRecord:
    """Per-path ingestion metadata stored as a payload-only point."""

    source_path: str
    file_name: str
    file_size: int
    modified_at: float
    content_hash: str
    chunk_count: int
    index_signature: str


@dataclass(frozen=True)
class SearchCandidate:
    """One hit from a single search mode."""

    chunk_id: str
    score: float
    rank: int
    payload: dict[str, Any]


@dataclass
class FusedCandidate:
    """A candidate after rank fusion, optionally rescored by the reranker."""

    chunk_id: str
    rrf_score: float
    payload: dict[str, Any]
    source_ranks: dict[str, int] = field(default_factory=dict)
    rerank_score: float | None = None

    @property
    def text(self) -> str:
        return str(self.payload.get(K_TEXT, ""))

    @property
    def source_path(self) -> str:
        return str(self.payload.get(K_SOURCE_PATH, ""))

    @property
    def sequence_index(self) -> int:
        return int(self.payload.get(K_SEQUENCE_INDEX, 0))


class FileState(str, Enum):
    """Lifecycle of one file through the ingestion pipeline."""

    DISCOVERED = "discovered"
    CONVERTED = "converted"
    CHUNKED = "chunked"
    EMBEDDED = "embedded"
    INDEXED = "indexed"
    UNCHANGED = "unchanged"
    FAILED = "failed"
    CANCELLED = "cancelled"
