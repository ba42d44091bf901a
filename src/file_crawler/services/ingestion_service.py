"""High-level ingestion service that wires dependencies into the ingestion pipeline."""

from __future__ import annotations

import asyncio
from datetime import datetime
from pathlib import Path

from file_crawler.config import Settings
from file_crawler.core.logging import get_logger
from file_crawler.core.models import Document
from file_crawler.repositories.vector_repository import VectorRepository
from file_crawler.services.chunker import Chunker
from file_crawler.services.converter import DocumentConverter, MarkItDownConverter
from file_crawler.services.embedder import EmbeddingGenerator, build_embedding_generator
from file_crawler.services.pipeline import FileOutcome, IngestionPipeline, IngestionReport
from file_crawler.services.qdrant_service import QdrantService

logger = get_logger(__name__)


class IngestionService:
    """Facade over the ingestion pipeline that owns dependency construction."""

    def __init__(
        self,
        settings: Settings,
        qdrant_service: QdrantService,
        *,
        converter: DocumentConverter | None = None,
        embedder: EmbeddingGenerator | None = None,
    ):
        self.settings = settings
        self.qdrant_service = qdrant_service

        self.converter = converter or MarkItDownConverter()
        self.chunker = Chunker(settings.chunk_size, settings.chunk_overlap)
        self.embedder = embedder or build_embedding_generator(settings)
        self.vector_repository = VectorRepository(qdrant_service)

        self.pipeline = IngestionPipeline(
            converter=self.converter,
            chunker=self.chunker,
            embedder=self.embedder,
            vector_repository=self.vector_repository,
            index_signature=settings.index_signature,
            extensions=settings.supported_extensions,
            max_concurrency=settings.ingest_max_concurrency,
        )

        logger.info("IngestionService initialized (signature=%s)", settings.index_signature)

    async def ingest_directory(
        self,
        root: str | Path,
        *,
        since: datetime | None = None,
        force: bool = False,
        cancel_event: asyncio.Event | None = None,
    ) -> IngestionReport:
        """Ingest every supported file under ``root``."""
        return await self.pipeline.ingest_directory(
            root, since=since, force=force, cancel_event=cancel_event
        )

    async def ingest_document(self, document: Document, *, force: bool = False) -> FileOutcome:
        """Ingest or refresh a single file."""
        return await self.pipeline.ingest_document(document, force=force)

    async def delete_document(self, source_path: str) -> None:
        """Remove all persisted data for ``source_path``."""
        await self.vector_repository.delete_document(source_path)
