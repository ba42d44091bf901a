"""Repository for per-document chunk bookkeeping in Qdrant."""

from __future__ import annotations

from collections.abc import Sequence

from qdrant_client import models as q

from file_crawler.adapters import qdrant_mapper
from file_crawler.core.constants import K_SOURCE_PATH, K_TYPE, POINT_TYPE_CHUNK, POINT_TYPE_FILE
from file_crawler.core.exceptions import ChunkIdCollisionError
from file_crawler.core.logging import get_logger
from file_crawler.core.models import FileRecord, IndexPoint
from file_crawler.services.point_ids import file_point_id
from file_crawler.services.qdrant_service import QdrantService

logger = get_logger(__name__)


def _path_filter(source_path: str, point_type: str | None = None) -> q.Filter:
    must: list[q.Condition] = [
        q.FieldCondition(key=K_SOURCE_PATH, match=q.MatchValue(value=source_path))
    ]
    if point_type is not None:
        must.append(q.FieldCondition(key=K_TYPE, match=q.MatchValue(value=point_type)))
    return q.Filter(must=must)


class VectorRepository:
    """Encapsulates chunk persistence, stale cleanup and file-record lookups."""

    def __init__(self, qdrant_service: QdrantService):
        self._qdrant = qdrant_service

    async def upsert_chunks(self, points: Sequence[IndexPoint]) -> int:
        """Persist chunk points, refusing ids owned by another source path.

        Raises:
            ChunkIdCollisionError: An existing point with one of the ids belongs to a
                different ``source_path``. Nothing is written in that case.
        """
        if not points:
            return 0

        wanted = {p.id: p.payload.get(K_SOURCE_PATH) for p in points}
        existing = await self._qdrant.retrieve_by_ids(list(wanted), with_payload=True)
        for record in existing:
            owner = qdrant_mapper.record_source_path(record)
            expected = wanted.get(str(record.id))
            if owner is not None and owner != expected:
                raise ChunkIdCollisionError(
                    f"Chunk id {record.id} belongs to '{owner}', refusing to overwrite "
                    f"it with a chunk of '{expected}'"
                )

        return await self._qdrant.upsert(points)

    async def chunk_ids_for_path(self, source_path: str) -> set[str]:
        """Return the ids of every chunk currently stored for ``source_path``."""
        records = await self._qdrant.scroll_all(
            _path_filter(source_path, POINT_TYPE_CHUNK),
            with_payload=False,
        )
        return {str(record.id) for record in records}

    async def replace_document(self, source_path: str, points: Sequence[IndexPoint]) -> int:
        """Make ``points`` the complete chunk set for ``source_path``.

        New chunks are written first, then ids left over from a previous version of
        the document are removed, so readers never see the path without chunks.

        Returns:
            Number of stale chunk ids deleted.
        """
        await self.upsert_chunks(points)

        keep = {p.id for p in points}
        stale = sorted((await self.chunk_ids_for_path(source_path)) - keep)
        if stale:
            await self._qdrant.delete(ids=stale)
            logger.info("Deleted %d stale chunks for %s", len(stale), source_path)
        return len(stale)

    async def delete_document(self, source_path: str) -> None:
        """Remove every chunk and the file record for ``source_path``."""
        await self._qdrant.delete(filter_=_path_filter(source_path))
        logger.info("Deleted all points for %s", source_path)

    async def get_file_record(self, source_path: str) -> FileRecord | None:
        """Fetch the stored ingestion metadata for ``source_path``, if present."""
        records = await self._qdrant.retrieve_by_ids([file_point_id(source_path)])
        if not records:
            return None
        record = records[0]
        if (record.payload or {}).get(K_TYPE) != POINT_TYPE_FILE:
            logger.warning("Point %s is not a file record: %s", record.id, record.payload)
            return None
        return qdrant_mapper.record_to_file_record(record)

    async def upsert_file_record(self, record: FileRecord) -> None:
        """Persist ingestion metadata for one path."""
        await self._qdrant.upsert_points([qdrant_mapper.file_record_to_point(record)])
