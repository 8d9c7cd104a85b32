"""File chunking strategies.

Markdown is split on ATX headings so every chunk carries the title of the
section it came from. Everything else (source code, JSON, plain text) is cut
into fixed character windows with a small overlap so no context is lost at
the boundaries.

Chunking is a pure function of ``(content, file_type)`` and the configured
sizes: the same input always produces the same chunks and hashes, which is
what makes hash-based change detection sound.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional

from cortex.models import Chunk
from cortex.utils.files import hash_content
from cortex.utils.text import chunk_text, estimate_tokens, iter_markdown_sections

LOGGER = logging.getLogger(__name__)

MAX_CHUNK_SIZE = 1024
OVERLAP_SIZE = 100

MARKDOWN_TYPES = frozenset({"md", "markdown", "mdx"})

_EXTENSION_ALIASES: Dict[str, str] = {
    "markdown": "md",
    "mdx": "md",
    "yml": "yaml",
    "htm": "html",
}

_LANGUAGES: Dict[str, str] = {
    "ts": "typescript",
    "tsx": "typescript",
    "js": "javascript",
    "jsx": "javascript",
    "mjs": "javascript",
    "cjs": "javascript",
    "py": "python",
    "rs": "rust",
    "go": "go",
    "java": "java",
    "rb": "ruby",
    "sh": "shell",
    "sql": "sql",
    "css": "css",
    "html": "html",
    "json": "json",
    "yaml": "yaml",
    "toml": "toml",
}


def detect_file_type(path: Path | str) -> str:
    """Return the file category used for chunking and filtering."""
    suffix = Path(path).suffix.lower().lstrip(".")
    if not suffix:
        return "txt"
    return _EXTENSION_ALIASES.get(suffix, suffix)


def language_for(file_type: str) -> Optional[str]:
    return _LANGUAGES.get(file_type)


def make_chunk(content: str, index: int, section: Optional[str] = None) -> Chunk:
    return Chunk(
        index=index,
        content=content,
        token_count=estimate_tokens(content),
        hash=hash_content(content),
        section=section or None,
    )


class Chunker:
    """Splits file content into ordered, overlapping chunks."""

    def __init__(self, *, max_chars: int = MAX_CHUNK_SIZE, overlap: int = OVERLAP_SIZE) -> None:
        if max_chars <= 0:
            raise ValueError("max_chars must be positive")
        if overlap < 0 or overlap >= max_chars:
            raise ValueError(
                f"overlap must be in [0, max_chars), got overlap={overlap}, max_chars={max_chars}"
            )
        self.max_chars = max_chars
        self.overlap = overlap

    def chunk(self, path: Path | str, content: str, file_type: str) -> List[Chunk]:
        if file_type in MARKDOWN_TYPES:
            chunks = self.chunk_markdown(content)
        else:
            chunks = self.chunk_plain(content)
        LOGGER.debug("Chunked %s (%s) into %d chunks", path, file_type, len(chunks))
        return chunks

    def chunk_markdown(self, content: str) -> List[Chunk]:
        """Chunk Markdown by heading, splitting long sections with overlap."""
        chunks: List[Chunk] = []

        def emit(text: str, section: Optional[str]) -> None:
            text = text.strip()
            if text:
                chunks.append(make_chunk(text, len(chunks), section))

        for section, body in iter_markdown_sections(content):
            buffer = body
            while len(buffer) > self.max_chars:
                piece = buffer[: self.max_chars]
                emit(piece, section)
                # Seed the next chunk with the tail of the one just emitted.
                buffer = piece[len(piece) - self.overlap :] + buffer[self.max_chars :]
            emit(buffer, section)

        return chunks

    def chunk_plain(self, content: str) -> List[Chunk]:
        """Fixed-window chunking with overlap; whitespace-only windows are dropped."""
        chunks: List[Chunk] = []
        for window in chunk_text(content, max_chars=self.max_chars, overlap=self.overlap):
            if window.strip():
                chunks.append(make_chunk(window, len(chunks)))
        return chunks


def chunk_document(path: Path | str, content: str, file_type: str | None = None) -> List[Chunk]:
    """Chunk ``content`` with the default sizes."""
    return Chunker().chunk(path, content, file_type or detect_file_type(path))
