"""Cleanup of converted markdown before chunking."""

import html
import re
import unicodedata

from file_crawler.core.logging import get_logger

logger = get_logger(__name__)

_ZERO_WIDTH = re.compile(r"[\u200B-\u200D\u2060\uFEFF]")
_INLINE_SPACES = re.compile(r"[ \t]{2,}")
_HYPHEN_BREAK = re.compile(r"(\w)-\n(\w)")
_SOFT_BREAK = re.compile(r"(?<=[a-z,])\n(?=[a-z])")
_PAGE_MARKER = re.compile(r"^\s*(page\s+\d+(\s+of\s+\d+)?|\d+\s*/\s*\d+)\s*$", re.I)
_BLANK_RUN = re.compile(r"\n{3,}")


def _strip_control_chars(value: str) -> str:
    """Turn tabs into spaces and drop control characters other than newline."""
    return "".join(
        " " if ch == "\t" else ch
        for ch in value
        if ch in "\n\t" or unicodedata.category(ch) != "Cc"
    )


def _drop_page_markers(value: str) -> str:
    """Replace lone page-number lines (``Page 3``, ``3 / 10``) with a paragraph break."""
    kept: list[str] = []
    for line in value.split("\n"):
        if _PAGE_MARKER.match(line):
            if kept and kept[-1]:
                kept.append("")
            continue
        kept.append(line.rstrip())
    return "\n".join(kept)


def normalize_text(value: str) -> str:
    """Normalize converted text while keeping paragraph boundaries.

    Steps:
        1. NFKC normalization and HTML entity decoding.
        2. LF line endings; control and zero-width characters removed.
        3. Page-number lines removed.
        4. Hyphenated and soft line breaks rejoined.
        5. Runs of spaces and blank lines collapsed; ends trimmed.

    Args:
        value: Raw converter output.

    Returns:
        Normalized text with paragraphs separated by a blank line.
    """
    if not value:
        return ""

    text = html.unescape(unicodedata.normalize("NFKC", value))
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = _ZERO_WIDTH.sub("", _strip_control_chars(text))
    text = _INLINE_SPACES.sub(" ", text)
    text = _drop_page_markers(text)
    text = _HYPHEN_BREAK.sub(r"\1\2", text)
    text = _SOFT_BREAK.sub(" ", text)
    text = _BLANK_RUN.sub("\n\n", text).strip()

    logger.debug("Normalized text from %d to %d chars", len(value), len(text))
    return text
