"""SQLite vector store for file chunks."""

from __future__ import annotations

import logging
import sqlite3
from contextlib import closing, contextmanager
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, Tuple

import numpy as np

from cortex.errors import TransportError
from cortex.models import Chunk, FileSummary, IndexedChunk, IndexStats

LOGGER = logging.getLogger(__name__)

MEMORY_DB = ":memory:"


class SQLiteVectorStore:
    """Persistence layer for chunk embeddings.

    One connection is opened for the lifetime of the store and shared by all
    reads. With ``isolated_writes`` every per-file replace runs on its own
    short-lived connection that is closed as soon as it commits or rolls back.
    """

    def __init__(self, db_path: Path, *, dimension: int, isolated_writes: bool = True) -> None:
        self.db_path = Path(db_path)
        self.dimension = dimension
        self.isolated_writes = isolated_writes and str(db_path) != MEMORY_DB
        self._conn = self._connect()
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        try:
            conn = sqlite3.connect(self.db_path, timeout=30.0)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute("PRAGMA synchronous=NORMAL;")
        except sqlite3.Error as exc:
            raise TransportError(f"Cannot open database {self.db_path}: {exc}") from exc
        return conn

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> "SQLiteVectorStore":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        try:
            yield self._conn
            self._conn.commit()
        except Exception:
            self._conn.rollback()
            raise

    @contextmanager
    def write_transaction(self) -> Iterator[sqlite3.Connection]:
        """Transaction on the write handle (isolated or shared)."""
        if not self.isolated_writes:
            with self.transaction() as conn:
                yield conn
            return

        with closing(self._connect()) as conn:
            try:
                yield conn
                conn.commit()
            except Exception:
                conn.rollback()
                raise

    def _ensure_schema(self) -> None:
        with self.transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS file_chunks (
                    id INTEGER PRIMARY KEY,
                    file_path TEXT NOT NULL,
                    file_hash TEXT NOT NULL,
                    file_type TEXT NOT NULL,
                    chunk_index INTEGER NOT NULL,
                    chunk_hash TEXT NOT NULL,
                    content TEXT NOT NULL,
                    token_count INTEGER NOT NULL,
                    embedding BLOB NOT NULL,
                    section TEXT,
                    language TEXT,
                    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
                    updated_at TEXT DEFAULT CURRENT_TIMESTAMP,
                    UNIQUE(file_path, chunk_index)
                )
                """
            )
            conn.execute(
                """CREATE INDEX IF NOT EXISTS idx_file_chunks_path
                    ON file_chunks(file_path)
                """
            )
            conn.execute(
                """CREATE INDEX IF NOT EXISTS idx_file_chunks_type
                    ON file_chunks(file_type)
                """
            )

    def ping(self) -> bool:
        try:
            self._conn.execute("SELECT 1").fetchone()
        except sqlite3.Error as exc:
            LOGGER.warning("Database ping failed: %s", exc)
            return False
        return True

    def file_state(self, file_path: str) -> Optional[Tuple[str, int]]:
        """Return ``(file_hash, chunk_count)`` recorded for a path, if any."""
        row = self._conn.execute(
            """
            SELECT MIN(file_hash) AS file_hash, COUNT(*) AS chunk_count
            FROM file_chunks WHERE file_path = ?
            """,
            (file_path,),
        ).fetchone()
        if row is None or row["chunk_count"] == 0:
            return None
        return row["file_hash"], int(row["chunk_count"])

    def replace_file(
        self,
        file_path: str,
        file_hash: str,
        file_type: str,
        chunks: Sequence[Chunk],
        embeddings: np.ndarray,
        *,
        language: str | None = None,
    ) -> int:
        """Atomically swap every stored chunk of ``file_path`` for ``chunks``.

        Returns the number of chunks written.
        """
        vectors = np.asarray(embeddings, dtype="float32")
        if len(chunks) == 0:
            vectors = vectors.reshape(0, self.dimension)
        if vectors.ndim != 2 or vectors.shape[0] != len(chunks):
            raise ValueError("Embeddings and chunks length mismatch")
        if len(chunks) and vectors.shape[1] != self.dimension:
            raise ValueError(
                f"Embedding dimension mismatch: expected {self.dimension}, got {vectors.shape[1]}"
            )

        with self.write_transaction() as conn:
            conn.execute("DELETE FROM file_chunks WHERE file_path = ?", (file_path,))
            conn.executemany(
                """
                INSERT INTO file_chunks(
                    file_path, file_hash, file_type, chunk_index, chunk_hash,
                    content, token_count, embedding, section, language
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        file_path,
                        file_hash,
                        file_type,
                        chunk.index,
                        chunk.hash,
                        chunk.content,
                        chunk.token_count,
                        sqlite3.Binary(vector.tobytes()),
                        chunk.section,
                        language,
                    )
                    for chunk, vector in zip(chunks, vectors)
                ],
            )
        return len(chunks)

    def search(
        self,
        embedding: np.ndarray,
        *,
        top_k: int = 10,
        file_types: Sequence[str] | None = None,
    ) -> List[dict]:
        """Rank stored chunks by cosine similarity to ``embedding``."""
        query = np.asarray(embedding, dtype="float32").reshape(-1)
        if query.shape[0] != self.dimension:
            raise ValueError(
                f"Query dimension mismatch: expected {self.dimension}, got {query.shape[0]}"
            )
        if top_k <= 0:
            return []

        sql = """
            SELECT file_path, content, section, chunk_index, file_type, embedding
            FROM file_chunks
        """
        params: tuple = ()
        if file_types:
            placeholders = ", ".join("?" for _ in file_types)
            sql += f" WHERE file_type IN ({placeholders})"
            params = tuple(file_types)
        rows = self._conn.execute(sql, params).fetchall()

        expected_bytes = self.dimension * 4
        usable = [row for row in rows if len(row["embedding"]) == expected_bytes]
        if len(usable) != len(rows):
            LOGGER.warning(
                "Ignoring %d chunks stored with a different embedding dimension",
                len(rows) - len(usable),
            )
        if not usable:
            return []

        embeddings = np.vstack([np.frombuffer(row["embedding"], dtype="float32") for row in usable])
        norms = np.linalg.norm(embeddings, axis=1) * np.linalg.norm(query)
        with np.errstate(divide="ignore", invalid="ignore"):
            scores = np.where(norms > 0, (embeddings @ query) / norms, 0.0)

        if top_k < len(scores):
            top_indices = np.argpartition(scores, -top_k)[-top_k:]
            top_indices = top_indices[np.argsort(scores[top_indices], kind="stable")[::-1]]
        else:
            top_indices = np.argsort(scores, kind="stable")[::-1]

        results: List[dict] = []
        for idx in top_indices:
            row = usable[idx]
            results.append(
                {
                    "file_path": row["file_path"],
                    "content": row["content"],
                    "section": row["section"],
                    "chunk_index": row["chunk_index"],
                    "file_type": row["file_type"],
                    "score": float(scores[idx]),
                }
            )
        return results

    def get_chunks(self, file_path: str) -> List[IndexedChunk]:
        rows = self._conn.execute(
            "SELECT * FROM file_chunks WHERE file_path = ? ORDER BY chunk_index",
            (file_path,),
        ).fetchall()
        return [
            IndexedChunk(
                file_path=row["file_path"],
                file_hash=row["file_hash"],
                file_type=row["file_type"],
                chunk_index=row["chunk_index"],
                chunk_hash=row["chunk_hash"],
                content=row["content"],
                token_count=row["token_count"],
                embedding=np.frombuffer(row["embedding"], dtype="float32"),
                section=row["section"],
                language=row["language"],
                created_at=row["created_at"],
                updated_at=row["updated_at"],
            )
            for row in rows
        ]

    def list_files(self, limit: int = 50) -> List[FileSummary]:
        rows = self._conn.execute(
            """
            SELECT
                file_path,
                COUNT(*) AS chunk_count,
                COALESCE(SUM(token_count), 0) AS total_tokens,
                MAX(updated_at) AS last_updated
            FROM file_chunks
            GROUP BY file_path
            ORDER BY last_updated DESC, file_path
            LIMIT ?
            """,
            (limit,),
        ).fetchall()
        return [
            FileSummary(
                file_path=row["file_path"],
                chunk_count=row["chunk_count"],
                total_tokens=row["total_tokens"],
                last_updated=row["last_updated"],
            )
            for row in rows
        ]

    def get_stats(self) -> IndexStats:
        row = self._conn.execute(
            """
            SELECT
                COUNT(*) AS total_chunks,
                COUNT(DISTINCT file_path) AS total_files,
                COALESCE(SUM(token_count), 0) AS total_tokens,
                MAX(updated_at) AS last_sync
            FROM file_chunks
            """
        ).fetchone()
        page_count = self._conn.execute("PRAGMA page_count").fetchone()[0]
        page_size = self._conn.execute("PRAGMA page_size").fetchone()[0]
        return IndexStats(
            total_chunks=row["total_chunks"],
            total_files=row["total_files"],
            total_tokens=row["total_tokens"],
            last_sync=row["last_sync"],
            db_size_bytes=page_count * page_size,
        )

    def delete_files(self, file_paths: Sequence[str]) -> List[Tuple[str, int]]:
        """Delete chunks of the given paths; returns ``(path, chunks)`` per deleted file."""
        deleted: List[Tuple[str, int]] = []
        with self.transaction() as conn:
            for file_path in dict.fromkeys(file_paths):
                count = conn.execute(
                    "DELETE FROM file_chunks WHERE file_path = ?", (file_path,)
                ).rowcount
                if count:
                    deleted.append((file_path, count))
        return deleted

    def delete_all(self) -> int:
        with self.transaction() as conn:
            return conn.execute("DELETE FROM file_chunks").rowcount

    def remove_missing_files(self, root: Path | None = None) -> int:
        """Remove files whose path no longer exists on disk."""
        with self.transaction() as conn:
            rows = conn.execute("SELECT DISTINCT file_path FROM file_chunks").fetchall()
            missing = []
            for row in rows:
                path = Path(row["file_path"])
                if root is not None and not path.is_absolute():
                    path = root / path
                if not path.exists():
                    missing.append(row["file_path"])
            for file_path in missing:
                conn.execute("DELETE FROM file_chunks WHERE file_path = ?", (file_path,))
        return len(missing)
