"""Tests for deterministic Qdrant point ID helpers."""

import uuid

from file_crawler.services.point_ids import chunk_point_id, file_point_id, generate_point_id


def test_generate_point_id_deterministic() -> None:
    """Same inputs should produce identical UUIDs."""
    first = generate_point_id("chunk", "/data/report.pdf", 3)
    second = generate_point_id("chunk", "/data/report.pdf", 3)
    assert first == second


def test_generate_point_id_varies_with_inputs() -> None:
    """Changing any component should produce a different UUID."""
    base = generate_point_id("chunk", "/data/report.pdf", 3)
    assert base != generate_point_id("chunk", "/data/other.pdf", 3)
    assert base != generate_point_id("chunk", "/data/report.pdf", 4)
    # Different point type even with same identifiers must differ
    assert base != generate_point_id("file", "/data/report.pdf", 3)


def test_ids_are_valid_uuids() -> None:
    uuid.UUID(chunk_point_id("/data/a.md", 0))
    uuid.UUID(file_point_id("/data/a.md"))


def test_chunk_and_file_helpers() -> None:
    ids = {chunk_point_id("/data/a.md", i) for i in range(5)}
    ids.add(file_point_id("/data/a.md"))
    assert len(ids) == 6
    assert chunk_point_id("/data/a.md", 2) == generate_point_id("chunk", "/data/a.md", 2)
