"""Heuristic token estimation and truncation."""

from file_crawler.core.logging import get_logger

logger = get_logger(__name__)

CHARS_PER_TOKEN = 4


def estimate_tokens(text: str) -> int:
    """Approximate token count assuming roughly 4 characters per token."""
    return max(0, len(text) // CHARS_PER_TOKEN)


def truncate_to_tokens(text: str, max_tokens: int) -> str:
    """Cut ``text`` to an estimated ``max_tokens`` and warn when anything is dropped."""
    limit = max_tokens * CHARS_PER_TOKEN
    if len(text) <= limit:
        return text
    logger.warning(
        "Input of ~%d tokens exceeds the %d-token model limit; truncating",
        estimate_tokens(text),
        max_tokens,
    )
    return text[:limit]
