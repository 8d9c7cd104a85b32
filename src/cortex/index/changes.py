"""File-level change detection.

Fingerprints are compared before any chunking or embedding happens, so an
unchanged file costs one hash and one lookup.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from cortex.index.storage import SQLiteVectorStore
from cortex.utils.files import hash_content


def needs_reindex(stored_hash: Optional[str], current_hash: str, *, force: bool = False) -> bool:
    """Decide whether a file must be re-chunked and re-embedded."""
    if stored_hash is None or force:
        return True
    return stored_hash != current_hash


@dataclass(slots=True)
class ChangeDecision:
    file_path: str
    file_hash: str
    stored_hash: Optional[str]
    stored_chunks: int
    proceed: bool

    @property
    def reason(self) -> str:
        if not self.proceed:
            return "unchanged"
        if self.stored_hash is None:
            return "new"
        if self.stored_hash == self.file_hash:
            return "forced"
        return "changed"


class ChangeDetector:
    """Compares current file fingerprints with the ones recorded in the index."""

    def __init__(self, store: SQLiteVectorStore) -> None:
        self.store = store

    def check(self, file_path: str, content: bytes | str, *, force: bool = False) -> ChangeDecision:
        file_hash = hash_content(content)
        state = self.store.file_state(file_path)
        stored_hash, stored_chunks = state if state is not None else (None, 0)
        return ChangeDecision(
            file_path=file_path,
            file_hash=file_hash,
            stored_hash=stored_hash,
            stored_chunks=stored_chunks,
            proceed=needs_reindex(stored_hash, file_hash, force=force),
        )
