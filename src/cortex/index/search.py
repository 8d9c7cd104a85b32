"""Semantic search interface."""

from __future__ import annotations

import logging
from typing import List, Sequence

from cortex.embedding.encoder import EmbeddingClient
from cortex.index.storage import SQLiteVectorStore
from cortex.models import QueryResult

LOGGER = logging.getLogger(__name__)


def _clamp(score: float) -> float:
    return min(1.0, max(0.0, score))


class Searcher:
    """High-level API to query the vector store."""

    def __init__(self, embedder: EmbeddingClient, store: SQLiteVectorStore) -> None:
        self.embedder = embedder
        self.store = store

    def search(
        self,
        query: str,
        *,
        top_k: int = 10,
        file_types: Sequence[str] | None = None,
        strict: bool = False,
    ) -> List[QueryResult]:
        """Return the ``top_k`` closest chunks, most similar first.

        Failures of the embedding service or the store yield an empty list
        unless ``strict`` is set, in which case they propagate.
        """
        if not query.strip() or top_k < 1:
            return []
        try:
            embedding = self.embedder.embed_query(query)
            rows = self.store.search(embedding, top_k=top_k, file_types=file_types)
        except Exception as exc:
            if strict:
                raise
            LOGGER.error("Vector search failed: %s", exc)
            return []

        return [
            QueryResult(
                file_path=row["file_path"],
                content=row["content"],
                section=row.get("section"),
                similarity=_clamp(float(row["score"])),
                chunk_index=int(row["chunk_index"]),
                file_type=row["file_type"],
            )
            for row in rows
        ]


def format_context(results: Sequence[QueryResult]) -> str:
    """Render results as a Markdown context block for a prompt."""
    if not results:
        return ""

    sections = []
    for i, result in enumerate(results, start=1):
        header = f"{result.file_path} - {result.section}" if result.section else result.file_path
        sections.append(
            f"### Context {i}: {header} (similarity: {result.similarity * 100:.1f}%)\n\n"
            f"```\n{result.content}\n```\n"
        )

    return (
        "# Relevant Codebase Context\n\n"
        "The following context has been retrieved from your codebase based on your query:\n\n"
        + "\n".join(sections)
    )
