"""Text helpers for character-window chunking."""

from __future__ import annotations

import re
from typing import Iterator, Optional, Tuple

HEADING_PATTERN = re.compile(r"^(#{1,6})\s+(.+?)\s*$")


def estimate_tokens(text: str) -> int:
    """Coarse token estimate: one token per four characters."""
    return len(text) // 4


def chunk_text(text: str, *, max_chars: int = 1024, overlap: int = 100) -> Iterator[str]:
    """Split text into overlapping character windows.

    Each window starts ``overlap`` characters before the end of the previous
    one. Walking stops once a window reaches the end of the text, or when the
    next start would not move past the current one.
    """
    if max_chars <= 0:
        raise ValueError("max_chars must be positive")
    if not text:
        return

    start = 0
    length = len(text)
    while start < length:
        end = min(start + max_chars, length)
        yield text[start:end]
        if end >= length:
            break
        next_start = end - overlap
        if next_start <= start:
            break
        start = next_start


def heading_title(line: str) -> Optional[str]:
    """Return the heading text when ``line`` is a Markdown ATX heading."""
    match = HEADING_PATTERN.match(line.rstrip("\r\n"))
    if not match:
        return None
    return match.group(2).strip()


def iter_markdown_sections(text: str) -> Iterator[Tuple[Optional[str], str]]:
    """Yield ``(heading, body)`` pairs in document order.

    Text ahead of the first heading is yielded with a ``None`` heading. The
    heading line itself is not part of the body.
    """
    heading: Optional[str] = None
    body: list[str] = []
    seen_heading = False

    for line in text.splitlines(keepends=True):
        title = heading_title(line)
        if title is None:
            body.append(line)
            continue
        if body or seen_heading:
            yield heading, "".join(body)
        heading = title
        body = []
        seen_heading = True

    if body or seen_heading:
        yield heading, "".join(body)
