"""Change detection, persistence, indexing and retrieval."""
