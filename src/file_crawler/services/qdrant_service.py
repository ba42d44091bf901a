"""Qdrant service for managing the chunk collection."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from typing import Any, TypeVar

from qdrant_client import AsyncQdrantClient
from qdrant_client import models as q
from qdrant_client.conversions.common_types import PointId
from qdrant_client.http.exceptions import ResponseHandlingException, UnexpectedResponse

from file_crawler.adapters import qdrant_mapper
from file_crawler.config import Settings
from file_crawler.core.constants import (
    DENSE_VEC,
    K_SOURCE_PATH,
    K_TYPE,
    POINT_TYPE_CHUNK,
    SPARSE_VEC,
)
from file_crawler.core.exceptions import FileCrawlerError, IndexServiceError, SchemaMismatchError
from file_crawler.core.logging import get_logger
from file_crawler.core.models import IndexPoint, SearchCandidate, SparseVector
from file_crawler.core.retry import RetryPolicy

logger = get_logger(__name__)

T = TypeVar("T")

_SCROLL_PAGE = 256


def _only_chunks() -> q.Filter:
    return q.Filter(must=[q.FieldCondition(key=K_TYPE, match=q.MatchValue(value=POINT_TYPE_CHUNK))])


class QdrantService:
    """Thin wrapper around the async Qdrant client for collection and point management.

    Every remote call goes through the index retry policy and surfaces failures as
    ``IndexServiceError``.
    """

    def __init__(
        self,
        settings: Settings,
        aclient: AsyncQdrantClient | None = None,
        retry_policy: RetryPolicy | None = None,
    ):
        self.settings = settings
        self.col = settings.qdrant_collection_name
        self.dimension = settings.dense_dim

        self.aclient = aclient or AsyncQdrantClient(
            url=settings.qdrant_url,
            api_key=settings.qdrant_api_key,
            prefer_grpc=settings.qdrant_prefer_grpc,
            timeout=settings.qdrant_timeout,
        )
        self.retry_policy = retry_policy or RetryPolicy.from_settings(
            settings, timeout=settings.qdrant_timeout
        )

        logger.info("QdrantService initialized for collection '%s'", self.col)

    async def aclose(self) -> None:
        """Close the client."""
        await self.aclient.close()

    async def _call(self, describe: str, operation: Callable[[], Awaitable[T]]) -> T:
        async def _guarded() -> T:
            try:
                return await operation()
            except FileCrawlerError:
                raise
            except UnexpectedResponse as exc:
                status = exc.status_code or 0
                raise IndexServiceError(
                    f"{describe} failed with HTTP {status}: {exc.reason_phrase}",
                    retryable=status >= 500 or status == 429,
                ) from exc
            except (ResponseHandlingException, ConnectionError) as exc:
                raise IndexServiceError(f"{describe} failed: {exc}", retryable=True) from exc
            except (ValueError, KeyError) as exc:
                # Raised by the embedded (local mode) client for invalid requests.
                raise IndexServiceError(f"{describe} rejected: {exc}", retryable=False) from exc

        try:
            return await self.retry_policy.run(_guarded, describe=describe)
        except TimeoutError as exc:
            raise IndexServiceError(f"{describe} timed out", retryable=True) from exc

    async def ping(self) -> None:
        """Raise ``IndexServiceError`` when Qdrant cannot be reached."""
        await self._call("list collections", self.aclient.get_collections)

    async def collection_exists(self) -> bool:
        """Return True if the collection already exists."""
        return await self._call(
            f"check collection '{self.col}'",
            lambda: self.aclient.collection_exists(self.col),
        )

    async def get_collection_info(self) -> q.CollectionInfo:
        """Fetch collection information."""
        return await self._call(
            f"get collection '{self.col}'",
            lambda: self.aclient.get_collection(self.col),
        )

    async def ensure_schema(self) -> None:
        """Ensure the collection exists with the expected named vectors.

        Raises:
            SchemaMismatchError: The existing collection was created with another
                dense size, distance, or without the sparse vector.
        """
        if await self.collection_exists():
            logger.info("Collection '%s' already exists", self.col)
            await self._verify_schema()
            await self._ensure_payload_indexes()
            return

        logger.info("Creating collection '%s' with named vectors", self.col)
        await self._call(
            f"create collection '{self.col}'",
            lambda: self.aclient.create_collection(
                collection_name=self.col,
                vectors_config={
                    DENSE_VEC: q.VectorParams(size=self.dimension, distance=q.Distance.COSINE),
                },
                sparse_vectors_config={
                    SPARSE_VEC: q.SparseVectorParams(index=q.SparseIndexParams(on_disk=False)),
                },
            ),
        )
        await self._ensure_payload_indexes()
        logger.info("Created collection '%s'", self.col)

    async def recreate_schema(self) -> None:
        """Drop the collection (if any) and create it again empty."""
        if await self.collection_exists():
            logger.warning("Dropping collection '%s' for a full reindex", self.col)
            await self._call(
                f"delete collection '{self.col}'",
                lambda: self.aclient.delete_collection(self.col),
            )
        await self.ensure_schema()

    async def _verify_schema(self) -> None:
        info = await self.get_collection_info()
        vectors = info.config.params.vectors
        dense = vectors.get(DENSE_VEC) if isinstance(vectors, dict) else None
        if dense is None:
            raise SchemaMismatchError(
                f"Collection '{self.col}' has no dense vector named '{DENSE_VEC}'"
            )
        if dense.size != self.dimension:
            raise SchemaMismatchError(
                f"Collection '{self.col}' stores {dense.size}-d vectors but the "
                f"embedding model produces {self.dimension}-d vectors; reindex required"
            )
        if dense.distance != q.Distance.COSINE:
            raise SchemaMismatchError(
                f"Collection '{self.col}' uses {dense.distance} distance, expected Cosine"
            )
        sparse = info.config.params.sparse_vectors or {}
        if SPARSE_VEC not in sparse:
            raise SchemaMismatchError(
                f"Collection '{self.col}' has no sparse vector named '{SPARSE_VEC}'"
            )

    async def _ensure_payload_indexes(self) -> None:
        """Create the keyword indexes used by path and type filters."""
        for field_name in (K_TYPE, K_SOURCE_PATH):
            try:
                await self.aclient.create_payload_index(
                    collection_name=self.col,
                    field_name=field_name,
                    field_schema=q.PayloadSchemaType.KEYWORD,
                )
            except UnexpectedResponse as exc:
                msg = str(exc).lower()
                if "exists" in msg:
                    logger.debug("Index '%s' already exists", field_name)
                else:
                    logger.warning("Failed to create index '%s': %s", field_name, exc)

    def _check_dimension(self, vector: Sequence[float], what: str) -> None:
        if len(vector) != self.dimension:
            raise SchemaMismatchError(
                f"{what} has dimension {len(vector)}; collection '{self.col}' "
                f"expects {self.dimension}"
            )

    async def upsert(self, points: Sequence[IndexPoint]) -> int:
        """Insert or fully replace chunk points by id.

        Args:
            points: Chunk points with dense and sparse vectors.

        Returns:
            Number of points written.

        Raises:
            SchemaMismatchError: A dense vector has the wrong dimension. Nothing is
                written in that case.
        """
        if not points:
            return 0
        for point in points:
            self._check_dimension(point.dense, f"Point {point.id}")
        await self.upsert_points([qdrant_mapper.index_point_to_point(p) for p in points])
        return len(points)

    async def upsert_points(
        self,
        points: Sequence[q.PointStruct],
        *,
        wait: bool = True,
    ) -> None:
        """Upsert raw points into the collection."""
        if not points:
            return

        await self._call(
            f"upsert {len(points)} points",
            lambda: self.aclient.upsert(collection_name=self.col, points=list(points), wait=wait),
        )
        logger.debug("Upserted %d points into '%s'", len(points), self.col)

    async def retrieve_by_ids(
        self,
        point_ids: Sequence[str],
        *,
        with_payload: bool = True,
        with_vectors: bool = False,
    ) -> list[q.Record]:
        """Fetch records by their IDs."""
        if not point_ids:
            return []

        return await self._call(
            f"retrieve {len(point_ids)} points",
            lambda: self.aclient.retrieve(
                collection_name=self.col,
                ids=list(point_ids),
                with_payload=with_payload,
                with_vectors=with_vectors,
            ),
        )

    async def scroll(
        self,
        *,
        limit: int,
        offset: PointId | None = None,
        filter_: q.Filter | None = None,
        with_payload: bool = True,
        with_vectors: bool = False,
    ) -> tuple[list[q.Record], PointId | None]:
        """Expose raw scroll for pagination use cases."""
        return await self._call(
            "scroll points",
            lambda: self.aclient.scroll(
                collection_name=self.col,
                scroll_filter=filter_,
                limit=limit,
                offset=offset,
                with_payload=with_payload,
                with_vectors=with_vectors,
            ),
        )

    async def scroll_all(
        self,
        filter_: q.Filter | None = None,
        *,
        with_payload: bool = True,
    ) -> list[q.Record]:
        """Collect every record matching ``filter_`` across all scroll pages."""
        records: list[q.Record] = []
        offset: PointId | None = None
        while True:
            page, offset = await self.scroll(
                limit=_SCROLL_PAGE,
                offset=offset,
                filter_=filter_,
                with_payload=with_payload,
            )
            records.extend(page)
            if offset is None:
                return records

    async def delete(
        self,
        *,
        ids: Sequence[str] | None = None,
        filter_: q.Filter | None = None,
        wait: bool = True,
    ) -> None:
        """Delete points by IDs or filter."""
        points_selector: Any
        if ids is not None:
            if not ids:
                return
            points_selector = q.PointIdsList(points=list(ids))
        elif filter_ is not None:
            points_selector = q.FilterSelector(filter=filter_)
        else:
            raise ValueError("Either ids or filter_ must be provided to delete points")

        await self._call(
            "delete points",
            lambda: self.aclient.delete(
                collection_name=self.col,
                points_selector=points_selector,
                wait=wait,
            ),
        )

    async def search_dense(self, vector: Sequence[float], k: int) -> list[SearchCandidate]:
        """Top-``k`` chunks by cosine similarity to ``vector``."""
        self._check_dimension(vector, "Query vector")
        response = await self._call(
            "dense search",
            lambda: self.aclient.query_points(
                collection_name=self.col,
                query=list(vector),
                using=DENSE_VEC,
                query_filter=_only_chunks(),
                limit=k,
                with_payload=True,
            ),
        )
        return self._rank(response.points)

    async def search_sparse(self, vector: SparseVector, k: int) -> list[SearchCandidate]:
        """Top-``k`` chunks by sparse dot product with ``vector``."""
        if not vector.indices:
            logger.debug("Sparse query vector is empty; skipping sparse search")
            return []
        response = await self._call(
            "sparse search",
            lambda: self.aclient.query_points(
                collection_name=self.col,
                query=q.SparseVector(indices=list(vector.indices), values=list(vector.values)),
                using=SPARSE_VEC,
                query_filter=_only_chunks(),
                limit=k,
                with_payload=True,
            ),
        )
        return self._rank(response.points)

    @staticmethod
    def _rank(points: Sequence[q.ScoredPoint]) -> list[SearchCandidate]:
        ordered = sorted(points, key=lambda p: (-p.score, str(p.id)))
        return [
            qdrant_mapper.scored_point_to_candidate(point, rank)
            for rank, point in enumerate(ordered, start=1)
        ]


__all__ = ["QdrantService"]
