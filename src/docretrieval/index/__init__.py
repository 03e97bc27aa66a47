"""Storage, indexing, watching and retrieval."""
