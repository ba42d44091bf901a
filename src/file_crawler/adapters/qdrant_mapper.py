"""Helpers to translate between domain models and Qdrant transport objects."""

from __future__ import annotations

from datetime import datetime
from typing import Any, cast

from qdrant_client import models as q

from file_crawler.core.constants import (
    DENSE_VEC,
    K_CHUNK_COUNT,
    K_CONTENT_HASH,
    K_FILE_NAME,
    K_FILE_SIZE,
    K_INDEX_SIGNATURE,
    K_MODIFIED_AT,
    K_SEQUENCE_INDEX,
    K_SOURCE_PATH,
    K_TEXT,
    K_TYPE,
    POINT_TYPE_CHUNK,
    POINT_TYPE_FILE,
    SPARSE_VEC,
)
from file_crawler.core.models import Chunk, FileRecord, IndexPoint, SearchCandidate
from file_crawler.services.point_ids import file_point_id


def chunk_payload(chunk: Chunk, content_hash: str = "") -> dict[str, Any]:
    """Build the payload stored alongside a chunk's vectors."""
    return {
        K_TYPE: POINT_TYPE_CHUNK,
        K_SOURCE_PATH: chunk.source_path,
        K_SEQUENCE_INDEX: chunk.sequence_index,
        K_TEXT: chunk.text,
        K_MODIFIED_AT: _timestamp(chunk.modified_at),
        K_CONTENT_HASH: content_hash,
    }


def index_point_to_point(point: IndexPoint) -> q.PointStruct:
    """Convert a chunk point (dense + sparse) into a Qdrant point."""
    vectors: q.VectorStruct = {
        DENSE_VEC: list(point.dense),
        SPARSE_VEC: q.SparseVector(
            indices=list(point.sparse.indices),
            values=list(point.sparse.values),
        ),
    }
    return q.PointStruct(id=point.id, payload=dict(point.payload), vector=vectors)


def file_record_to_point(record: FileRecord) -> q.PointStruct:
    """Convert a file record into a payload-only Qdrant point."""
    payload = {
        K_TYPE: POINT_TYPE_FILE,
        K_SOURCE_PATH: record.source_path,
        K_FILE_NAME: record.file_name,
        K_FILE_SIZE: record.file_size,
        K_MODIFIED_AT: record.modified_at,
        K_CONTENT_HASH: record.content_hash,
        K_CHUNK_COUNT: record.chunk_count,
        K_INDEX_SIGNATURE: record.index_signature,
    }
    return q.PointStruct(id=file_point_id(record.source_path), payload=payload, vector={})


def record_to_file_record(record: q.Record) -> FileRecord:
    """Convert a Qdrant record into a FileRecord."""
    payload = record.payload or {}
    return FileRecord(
        source_path=cast(str | None, payload.get(K_SOURCE_PATH)) or "",
        file_name=cast(str | None, payload.get(K_FILE_NAME)) or "",
        file_size=_coerce_int(payload.get(K_FILE_SIZE)),
        modified_at=float(payload.get(K_MODIFIED_AT) or 0.0),
        content_hash=cast(str | None, payload.get(K_CONTENT_HASH)) or "",
        chunk_count=_coerce_int(payload.get(K_CHUNK_COUNT)),
        index_signature=cast(str | None, payload.get(K_INDEX_SIGNATURE)) or "",
    )


def scored_point_to_candidate(point: q.ScoredPoint, rank: int) -> SearchCandidate:
    """Convert a search hit into a ranked candidate."""
    return SearchCandidate(
        chunk_id=_stringify_point_id(point.id),
        score=float(point.score),
        rank=rank,
        payload=dict(point.payload or {}),
    )


def record_source_path(record: q.Record) -> str | None:
    """Return the ``source_path`` stored on a record, if any."""
    value = (record.payload or {}).get(K_SOURCE_PATH)
    return value if isinstance(value, str) else None


def _timestamp(value: datetime) -> float:
    return value.timestamp()


def _coerce_int(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, (float, str)):
        try:
            return int(value)
        except ValueError:
            return 0
    return 0


def _stringify_point_id(value: Any) -> str:
    return str(value)
