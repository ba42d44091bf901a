"""File ingestion pipeline: convert, chunk, embed and persist with idempotent writes."""

from __future__ import annotations

import asyncio
import stat
from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from file_crawler.adapters import qdrant_mapper
from file_crawler.core.exceptions import ConfigError, FileCrawlerError
from file_crawler.core.logging import get_logger
from file_crawler.core.models import Chunk, Document, FileRecord, FileState, IndexPoint
from file_crawler.repositories.vector_repository import VectorRepository
from file_crawler.services.chunker import Chunker
from file_crawler.services.converter import DocumentConverter, is_supported_file
from file_crawler.services.embedder import EmbeddingGenerator, EmbeddingMode
from file_crawler.services.point_ids import chunk_point_id
from file_crawler.text_processing.checksum import compute_checksum
from file_crawler.text_processing.normalize_text import normalize_text

logger = get_logger(__name__)


@dataclass(slots=True)
class FileOutcome:
    """Terminal state of one file in a run."""

    path: str
    state: FileState
    chunk_count: int = 0
    stale_deleted: int = 0
    error: str | None = None


@dataclass(slots=True)
class IngestionReport:
    """Per-file outcomes of one ingestion run."""

    outcomes: list[FileOutcome] = field(default_factory=list)

    def _count(self, state: FileState) -> int:
        return sum(1 for outcome in self.outcomes if outcome.state is state)

    @property
    def indexed(self) -> int:
        return self._count(FileState.INDEXED)

    @property
    def unchanged(self) -> int:
        return self._count(FileState.UNCHANGED)

    @property
    def failed(self) -> int:
        return self._count(FileState.FAILED)

    @property
    def cancelled(self) -> int:
        return self._count(FileState.CANCELLED)

    @property
    def total_chunks(self) -> int:
        return sum(o.chunk_count for o in self.outcomes if o.state is FileState.INDEXED)


def discover(
    root: str | Path,
    extensions: Iterable[str],
    since: datetime | None = None,
) -> list[Document]:
    """Walk ``root`` recursively and return supported files sorted by path.

    Args:
        root: Directory to scan.
        extensions: Accepted file suffixes such as ``".pdf"``.
        since: When given, files modified before this instant are left out.

    Raises:
        ConfigError: ``root`` is not a directory.
    """
    base = Path(root)
    if not base.is_dir():
        raise ConfigError(f"Directory not found: {root}")

    allowed = [ext.lower() for ext in extensions]
    documents: list[Document] = []
    for path in base.rglob("*"):
        if path.is_symlink() or not is_supported_file(path, allowed):
            continue
        try:
            info = path.stat()
        except OSError as exc:
            logger.warning("Skipping %s, metadata unreadable: %s", path, exc)
            continue
        if not stat.S_ISREG(info.st_mode):
            continue
        modified_at = datetime.fromtimestamp(info.st_mtime, tz=timezone.utc)
        if since is not None and modified_at < since:
            logger.debug("Skipping %s, modified before %s", path, since.isoformat())
            continue
        documents.append(
            Document(path=str(path.resolve()), modified_at=modified_at, size=info.st_size)
        )

    documents.sort(key=lambda d: d.path)
    logger.info("Discovered %d supported files under %s", len(documents), root)
    return documents


class IngestionPipeline:
    """Runs each file through DISCOVERED -> CONVERTED -> CHUNKED -> EMBEDDED -> INDEXED."""

    def __init__(
        self,
        *,
        converter: DocumentConverter,
        chunker: Chunker,
        embedder: EmbeddingGenerator,
        vector_repository: VectorRepository,
        index_signature: str,
        extensions: Sequence[str],
        max_concurrency: int = 4,
    ) -> None:
        if max_concurrency <= 0:
            raise ValueError(f"max_concurrency must be positive, got {max_concurrency}")
        self._converter = converter
        self._chunker = chunker
        self._embedder = embedder
        self._vector_repository = vector_repository
        self._index_signature = index_signature
        self._extensions = list(extensions)
        self._max_concurrency = max_concurrency
        self._path_locks: dict[str, asyncio.Lock] = {}
        self._path_users: Counter[str] = Counter()

    def discover(self, root: str | Path, since: datetime | None = None) -> list[Document]:
        """Supported files under ``root``; see :func:`discover`."""
        return discover(root, self._extensions, since)

    async def preview(self, document: Document) -> str:
        """Return the converted markdown for ``document`` without indexing it."""
        return await self._converter.convert(document.path)

    async def ingest_directory(
        self,
        root: str | Path,
        *,
        since: datetime | None = None,
        force: bool = False,
        cancel_event: asyncio.Event | None = None,
    ) -> IngestionReport:
        """Discover and ingest every supported file under ``root``."""
        documents = self.discover(root, since)
        return await self.ingest_documents(
            documents, since=since, force=force, cancel_event=cancel_event
        )

    async def ingest_documents(
        self,
        documents: Sequence[Document],
        *,
        since: datetime | None = None,
        force: bool = False,
        cancel_event: asyncio.Event | None = None,
    ) -> IngestionReport:
        """Ingest ``documents`` on a bounded worker pool.

        A failing file is reported ``FAILED`` and the run continues. Once
        ``cancel_event`` is set, files not yet started are reported ``CANCELLED``
        while files already in flight finish.
        """
        selected = [d for d in documents if since is None or d.modified_at >= since]
        if len(selected) < len(documents):
            logger.info("Skipping %d files modified before %s", len(documents) - len(selected), since)

        cancel = cancel_event or asyncio.Event()
        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def _worker(document: Document) -> FileOutcome:
            async with semaphore:
                if cancel.is_set():
                    return FileOutcome(path=document.path, state=FileState.CANCELLED)
                try:
                    return await self.ingest_document(document, force=force)
                except Exception as exc:
                    logger.error("Unexpected error ingesting %s: %s", document.path, exc, exc_info=True)
                    return FileOutcome(path=document.path, state=FileState.FAILED, error=str(exc))

        outcomes = await asyncio.gather(*(_worker(d) for d in selected))
        report = IngestionReport(outcomes=list(outcomes))
        logger.info(
            "Ingestion finished: indexed=%d unchanged=%d failed=%d cancelled=%d chunks=%d",
            report.indexed,
            report.unchanged,
            report.failed,
            report.cancelled,
            report.total_chunks,
        )
        return report

    async def ingest_document(self, document: Document, *, force: bool = False) -> FileOutcome:
        """Ingest one file; concurrent calls for the same path run one at a time."""
        path = document.path
        lock = self._path_locks.setdefault(path, asyncio.Lock())
        self._path_users[path] += 1
        try:
            async with lock:
                return await self._ingest(document, force=force)
        finally:
            self._path_users[path] -= 1
            if not self._path_users[path]:
                del self._path_users[path]
                del self._path_locks[path]

    async def _ingest(self, document: Document, *, force: bool) -> FileOutcome:
        path = document.path
        state = FileState.DISCOVERED
        try:
            raw = await self._converter.convert(path)
            state = FileState.CONVERTED
            text = normalize_text(raw)
            content_hash = compute_checksum(text)

            if not force:
                existing = await self._vector_repository.get_file_record(path)
                if (
                    existing is not None
                    and existing.content_hash == content_hash
                    and existing.index_signature == self._index_signature
                ):
                    logger.info("Unchanged, skipping %s (checksum=%s)", path, content_hash[:8])
                    return FileOutcome(
                        path=path, state=FileState.UNCHANGED, chunk_count=existing.chunk_count
                    )

            chunks = [
                Chunk(
                    id=chunk_point_id(path, idx),
                    source_path=path,
                    sequence_index=idx,
                    text=piece,
                    modified_at=document.modified_at,
                )
                for idx, piece in enumerate(self._chunker.chunk(text))
            ]
            state = FileState.CHUNKED
            if not chunks:
                logger.info("No text extracted from %s; removing its chunks", path)

            pairs = (
                await self._embedder.embed([c.text for c in chunks], EmbeddingMode.DOCUMENT)
                if chunks
                else []
            )
            state = FileState.EMBEDDED

            points = [
                IndexPoint(
                    id=chunk.id,
                    dense=pair.dense,
                    sparse=pair.sparse,
                    payload=qdrant_mapper.chunk_payload(chunk, content_hash),
                )
                for chunk, pair in zip(chunks, pairs)
            ]
            stale = await self._vector_repository.replace_document(path, points)
            await self._vector_repository.upsert_file_record(
                FileRecord(
                    source_path=path,
                    file_name=Path(path).name,
                    file_size=document.size,
                    modified_at=document.modified_at.timestamp(),
                    content_hash=content_hash,
                    chunk_count=len(points),
                    index_signature=self._index_signature,
                )
            )
        except FileCrawlerError as exc:
            logger.error("Failed to ingest %s after %s: %s", path, state.value, exc)
            return FileOutcome(path=path, state=FileState.FAILED, error=exc.message)

        logger.info("Indexed %s: %d chunks, %d stale removed", path, len(points), stale)
        return FileOutcome(
            path=path,
            state=FileState.INDEXED,
            chunk_count=len(points),
            stale_deleted=stale,
        )
