"""Central constants shared across the ingestion/search stack."""

from typing import Final

# Named vectors configured in the Qdrant collection.
DENSE_VEC: Final[str] = "text-dense"
SPARSE_VEC: Final[str] = "text-sparse"

# Logical point types stored as payload metadata.
POINT_TYPE_CHUNK: Final[str] = "chunk"
POINT_TYPE_FILE: Final[str] = "file"

# Payload keys.
K_TYPE: Final[str] = "type"
K_SOURCE_PATH: Final[str] = "source_path"
K_SEQUENCE_INDEX: Final[str] = "sequence_index"
K_TEXT: Final[str] = "text"
K_MODIFIED_AT: Final[str] = "modified_at"
K_CONTENT_HASH: Final[str] = "content_hash"

# File record keys.
K_FILE_NAME: Final[str] = "file_name"
K_FILE_SIZE: Final[str] = "file_size"
K_CHUNK_COUNT: Final[str] = "chunk_count"
K_INDEX_SIGNATURE: Final[str] = "index_signature"

# Names of the ranked lists fed into rank fusion.
DENSE_RUN: Final[str] = "dense"
SPARSE_RUN: Final[str] = "sparse"

# Sent to the answer generator when retrieval found nothing.
NO_CONTEXT_MARKER: Final[str] = "[NO CONTEXT FOUND]"
