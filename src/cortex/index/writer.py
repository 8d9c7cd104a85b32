"""Per-file index writes."""

from __future__ import annotations

import logging
from typing import List, Sequence, Tuple

import numpy as np

from cortex.errors import ValidationError
from cortex.index.storage import SQLiteVectorStore
from cortex.models import Chunk

LOGGER = logging.getLogger(__name__)

MAX_CHUNK_CHARS = 4000


def validate_chunk(chunk: Chunk, *, max_chars: int = MAX_CHUNK_CHARS) -> None:
    size = len(chunk.content)
    if size > max_chars:
        raise ValidationError(
            f"Chunk {chunk.index} has {size} characters (limit {max_chars})", size=size
        )


class IndexWriter:
    """Sole mutator of stored chunks: replaces a file's chunks as one unit."""

    def __init__(self, store: SQLiteVectorStore, *, max_chunk_chars: int = MAX_CHUNK_CHARS) -> None:
        self.store = store
        self.max_chunk_chars = max_chunk_chars

    def admit(self, chunks: Sequence[Chunk]) -> Tuple[List[Chunk], List[Chunk]]:
        """Split chunks into ``(accepted, oversized)``.

        Oversized chunks are dropped from the index without being reported as
        errors; they must be filtered out before any embedding call.
        """
        accepted: List[Chunk] = []
        oversized: List[Chunk] = []
        for chunk in chunks:
            try:
                validate_chunk(chunk, max_chars=self.max_chunk_chars)
            except ValidationError as exc:
                LOGGER.debug("Skipping oversized chunk: %s", exc)
                oversized.append(chunk)
            else:
                accepted.append(chunk)
        return accepted, oversized

    def write_file(
        self,
        file_path: str,
        file_hash: str,
        file_type: str,
        chunks: Sequence[Chunk],
        embeddings: np.ndarray,
        *,
        language: str | None = None,
    ) -> int:
        """Replace every stored chunk of ``file_path``; returns chunks written."""
        written = self.store.replace_file(
            file_path, file_hash, file_type, chunks, embeddings, language=language
        )
        LOGGER.debug("Wrote %d chunks for %s", written, file_path)
        return written
