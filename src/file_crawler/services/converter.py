"""Conversion of source files to markdown text."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from file_crawler.core.exceptions import ConversionError
from file_crawler.core.logging import get_logger

if TYPE_CHECKING:
    from markitdown import MarkItDown

logger = get_logger(__name__)


class DocumentConverter(Protocol):
    """Turns a file into text. Raises ``ConversionError`` when it cannot."""

    async def convert(self, path: str) -> str: ...


def is_supported_file(path: str | Path, extensions: Iterable[str]) -> bool:
    """Return True when ``path`` has one of ``extensions`` (case insensitive)."""
    suffix = Path(path).suffix.lower()
    return bool(suffix) and suffix in {ext.lower() for ext in extensions}


class MarkItDownConverter:
    """Converts office documents, PDFs and text formats with MarkItDown."""

    def __init__(self, markitdown: MarkItDown | None = None):
        self._markitdown = markitdown

    def _load(self) -> MarkItDown:
        if self._markitdown is None:
            from markitdown import MarkItDown

            self._markitdown = MarkItDown()
        return self._markitdown

    def _convert_sync(self, path: str) -> str:
        try:
            result = self._load().convert(path)
        except Exception as exc:
            raise ConversionError(f"Could not convert {path}: {exc}") from exc
        text = result.text_content
        if text is None:
            raise ConversionError(f"Conversion of {path} produced no text")
        return text

    async def convert(self, path: str) -> str:
        """Convert ``path`` to markdown in a worker thread."""
        text = await asyncio.to_thread(self._convert_sync, path)
        logger.debug("Converted %s to %d chars of markdown", path, len(text))
        return text
