"""Directory crawler with hybrid dense + sparse retrieval over Qdrant."""
