"""Deterministic Qdrant point ID helpers."""

import uuid

# Namespace UUID for generating deterministic UUIDs from string IDs
NAMESPACE_UUID = uuid.UUID("6ba7b810-9dad-11d1-80b4-00c04fd430c8")


def generate_point_id(point_type: str, *parts: object) -> str:
    """Generate a UUIDv5 from a point type and its identifying parts.

    Qdrant only accepts unsigned integers or UUIDs as point IDs, so the natural
    key is hashed into a UUID that is stable across runs and machines.
    """
    key = "|".join([point_type, *(str(part) for part in parts)])
    return str(uuid.uuid5(NAMESPACE_UUID, key))


def chunk_point_id(source_path: str, sequence_index: int) -> str:
    """ID of the ``sequence_index``-th chunk of ``source_path``."""
    return generate_point_id("chunk", source_path, sequence_index)


def file_point_id(source_path: str) -> str:
    """ID of the file record for ``source_path``."""
    return generate_point_id("file", source_path)
