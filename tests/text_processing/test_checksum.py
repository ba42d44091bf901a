"""Tests for checksum helpers."""

from file_crawler.text_processing.checksum import compute_checksum


def test_checksum_consistency_after_normalization() -> None:
    """Different raw forms that normalize equally should hash identically."""
    assert compute_checksum("Hello  world") == compute_checksum("Hello world")
    assert compute_checksum("employ-\nment") == compute_checksum("employment")
    assert compute_checksum("Line1\r\nLine2") == compute_checksum("Line1\nLine2")


def test_checksum_differs_for_unique_content() -> None:
    first = compute_checksum("First document")
    second = compute_checksum("Second document")
    assert first != second


def test_checksum_is_sha256_hex() -> None:
    digest = compute_checksum("anything")
    assert len(digest) == 64
    int(digest, 16)
