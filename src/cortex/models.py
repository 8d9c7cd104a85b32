"""Core Cortex data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np


@dataclass(slots=True)
class Chunk:
    """Contiguous slice of a file produced by the chunker."""

    index: int
    content: str
    token_count: int
    hash: str
    section: Optional[str] = None


@dataclass(slots=True)
class IndexedChunk:
    """Chunk as persisted in the index, together with its file metadata."""

    file_path: str
    file_hash: str
    file_type: str
    chunk_index: int
    chunk_hash: str
    content: str
    token_count: int
    embedding: np.ndarray
    section: Optional[str] = None
    language: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass(slots=True)
class QueryResult:
    file_path: str
    content: str
    similarity: float
    chunk_index: int
    file_type: str
    section: Optional[str] = None


@dataclass(slots=True)
class FileSyncResult:
    """Outcome of syncing a single file."""

    path: str
    chunks: int = 0
    skipped: bool = False
    oversized: int = 0
    unchanged_chunks: int = 0


@dataclass(slots=True)
class SyncOutcome:
    """Aggregated outcome of a sync batch.

    A failing file only adds an entry to ``errors``; the other counters keep
    reflecting the files that went through.
    """

    files_processed: int = 0
    chunks_created: int = 0
    chunks_skipped: int = 0
    files_skipped: int = 0
    chunks_oversized: int = 0
    files: List[str] = field(default_factory=list)
    skipped_files: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def record(self, result: FileSyncResult) -> None:
        if result.skipped:
            self.record_skipped(result.path, result.unchanged_chunks)
            self.chunks_oversized += result.oversized
        else:
            self.record_processed(result.path, result.chunks, result.oversized)

    def record_processed(self, path: str, chunks: int, oversized: int = 0) -> None:
        self.files_processed += 1
        self.chunks_created += chunks
        self.chunks_oversized += oversized
        self.files.append(path)

    def record_skipped(self, path: str, chunks: int = 0) -> None:
        self.files_skipped += 1
        self.chunks_skipped += chunks
        self.skipped_files.append(path)

    def record_error(self, path: str, message: str) -> None:
        self.errors.append(f"{path}: {message}")


@dataclass(slots=True)
class FileSummary:
    file_path: str
    chunk_count: int
    total_tokens: int
    last_updated: Optional[str] = None


@dataclass(slots=True)
class IndexStats:
    total_chunks: int = 0
    total_files: int = 0
    total_tokens: int = 0
    last_sync: Optional[str] = None
    db_size_bytes: int = 0
