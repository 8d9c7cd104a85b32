"""Incremental file indexing pipeline."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

from cortex.embedding.encoder import EmbeddingClient
from cortex.index.changes import ChangeDetector
from cortex.index.storage import SQLiteVectorStore
from cortex.index.writer import MAX_CHUNK_CHARS, IndexWriter
from cortex.ingestion.chunker import Chunker, detect_file_type, language_for
from cortex.models import FileSyncResult, SyncOutcome

LOGGER = logging.getLogger(__name__)


class Indexer:
    """Coordinates chunking, embedding and persistence, one file at a time."""

    def __init__(
        self,
        embedder: EmbeddingClient,
        store: SQLiteVectorStore,
        *,
        chunker: Chunker | None = None,
        max_chunk_chars: int = MAX_CHUNK_CHARS,
        root: Path | None = None,
    ) -> None:
        self.embedder = embedder
        self.store = store
        self.chunker = chunker or Chunker()
        self.detector = ChangeDetector(store)
        self.writer = IndexWriter(store, max_chunk_chars=max_chunk_chars)
        self.root = Path(root).resolve() if root is not None else None

    def record_path(self, path: Path) -> str:
        """Key under which a file's chunks are stored."""
        if self.root is not None:
            try:
                return path.resolve().relative_to(self.root).as_posix()
            except ValueError:
                pass
        return str(path)

    def sync(self, paths: Sequence[Path], *, force: bool = False) -> SyncOutcome:
        """Sync files sequentially; a failing file never stops the batch."""
        outcome = SyncOutcome()
        for path in paths:
            path = Path(path)
            try:
                LOGGER.info("Processing: %s", path)
                outcome.record(self.sync_file(path, force=force))
            except Exception as exc:
                LOGGER.error("Failed to process %s: %s", path, exc)
                outcome.record_error(self.record_path(path), str(exc))
        return outcome

    def sync_file(self, path: Path, *, force: bool = False) -> FileSyncResult:
        """Sync a single file, skipping it when its fingerprint is unchanged."""
        path = Path(path)
        file_path = self.record_path(path)
        raw = path.read_bytes()

        decision = self.detector.check(file_path, raw, force=force)
        if not decision.proceed:
            LOGGER.debug("Unchanged, skipping: %s", file_path)
            return FileSyncResult(
                path=file_path, skipped=True, unchanged_chunks=decision.stored_chunks
            )

        file_type = detect_file_type(path)
        content = raw.decode("utf-8", errors="replace")
        chunks = self.chunker.chunk(file_path, content, file_type)
        accepted, oversized = self.writer.admit(chunks)
        if oversized:
            LOGGER.info("Skipped %d oversized chunks in %s", len(oversized), file_path)

        if not accepted and decision.stored_hash is None:
            # nothing stored before and nothing to store now
            LOGGER.debug("No indexable content, skipping: %s", file_path)
            return FileSyncResult(path=file_path, skipped=True, oversized=len(oversized))

        embeddings = self.embedder.embed([chunk.content for chunk in accepted])
        written = self.writer.write_file(
            file_path,
            decision.file_hash,
            file_type,
            accepted,
            embeddings,
            language=language_for(file_type),
        )
        LOGGER.info("Indexed %s (%s): %d chunks", file_path, decision.reason, written)
        return FileSyncResult(path=file_path, chunks=written, oversized=len(oversized))
