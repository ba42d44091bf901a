"""Size-bounded, overlapping chunking of converted documents."""

from __future__ import annotations

from llama_index.core.node_parser import SentenceSplitter

from file_crawler.core.logging import get_logger

logger = get_logger(__name__)

PARAGRAPH_SEPARATOR = "\n\n"


def _characters(text: str) -> list[str]:
    # Sizes are measured in characters, so the "tokenizer" yields one item per char.
    return list(text)


class Chunker:
    """Splits text on paragraph, then sentence, then word, then character boundaries.

    Consecutive chunks share up to ``overlap`` characters of context and no chunk is
    longer than ``max_size`` characters. Output depends only on the input and the two
    parameters, which keeps chunk IDs stable across re-ingestion.
    """

    def __init__(self, max_size: int, overlap: int):
        if max_size <= 0:
            raise ValueError(f"max_size must be positive, got {max_size}")
        if overlap < 0:
            raise ValueError(f"overlap must be non-negative, got {overlap}")
        if 2 * overlap >= max_size:
            raise ValueError(
                f"overlap ({overlap}) must be less than half of max_size ({max_size})"
            )

        self.max_size = max_size
        self.overlap = overlap
        # The splitter may start a chunk with up to `overlap` carried-over chars plus
        # a full window, so the window it sees is shrunk by the overlap.
        self._splitter = SentenceSplitter(
            chunk_size=max_size - overlap,
            chunk_overlap=overlap,
            separator=" ",
            paragraph_separator=PARAGRAPH_SEPARATOR,
            tokenizer=_characters,
        )

    def chunk(self, text: str) -> list[str]:
        """Split ``text`` into ordered chunks; blank input yields no chunks."""
        if not text or not text.strip():
            return []

        chunks = [piece for piece in self._splitter.split_text(text) if piece.strip()]
        logger.debug(
            "Split %d chars into %d chunks (max_size=%d, overlap=%d)",
            len(text),
            len(chunks),
            self.max_size,
            self.overlap,
        )
        return chunks


def chunk(text: str, max_size: int, overlap: int) -> list[str]:
    """Functional form of :meth:`Chunker.chunk`."""
    return Chunker(max_size, overlap).chunk(text)
