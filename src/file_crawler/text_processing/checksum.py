"""Content hashing for change detection."""

import hashlib

from file_crawler.core.logging import get_logger

from .normalize_text import normalize_text

logger = get_logger(__name__)


def compute_checksum(value: str) -> str:
    """Compute the SHA256 checksum of normalized text.

    Whitespace-only edits and line-ending changes hash identically, so a file
    that was merely re-saved is not re-embedded.

    Args:
        value: Converted document text (normalized before hashing).

    Returns:
        Hex digest.
    """
    digest = hashlib.sha256(normalize_text(value).encode("utf-8")).hexdigest()
    logger.debug("Computed checksum %s for %d-char input", digest[:8], len(value))
    return digest
