"""Tests for file chunking strategies."""

from __future__ import annotations

import math
from pathlib import Path

import pytest

from cortex.ingestion.chunker import (
    Chunker,
    chunk_document,
    detect_file_type,
    language_for,
)
from cortex.utils.files import hash_content


def _reconstruct(chunks, overlap: int) -> str:
    """Join chunks dropping the overlap each one repeats from the previous."""
    if not chunks:
        return ""
    return chunks[0].content + "".join(c.content[overlap:] for c in chunks[1:])


class TestFileTypes:
    """Test file type detection and language tags."""

    @pytest.mark.parametrize(
        ("path", "expected"),
        [
            ("README.md", "md"),
            ("docs/guide.MARKDOWN", "md"),
            ("src/app.ts", "ts"),
            ("src/View.tsx", "tsx"),
            ("pkg/main.py", "py"),
            ("config.json", "json"),
            ("ci.yml", "yaml"),
            ("Makefile", "txt"),
        ],
    )
    def test_detect_file_type(self, path: str, expected: str) -> None:
        assert detect_file_type(Path(path)) == expected

    def test_language_for(self) -> None:
        assert language_for("ts") == "typescript"
        assert language_for("tsx") == "typescript"
        assert language_for("py") == "python"
        assert language_for("json") == "json"
        assert language_for("md") is None
        assert language_for("txt") is None


class TestChunkerConfig:
    """Test Chunker parameter validation."""

    def test_defaults(self) -> None:
        chunker = Chunker()
        assert chunker.max_chars == 1024
        assert chunker.overlap == 100

    @pytest.mark.parametrize(("max_chars", "overlap"), [(100, 100), (100, 150), (0, 0), (10, -1)])
    def test_rejects_invalid_sizes(self, max_chars: int, overlap: int) -> None:
        with pytest.raises(ValueError):
            Chunker(max_chars=max_chars, overlap=overlap)


class TestPlainChunking:
    """Test fixed-window chunking for code and other text."""

    def test_indices_and_metadata(self) -> None:
        """Chunks are numbered from 0 and carry hash and token estimate."""
        content = "".join(chr(ord("a") + i % 26) for i in range(2500))
        chunks = Chunker().chunk("src/app.ts", content, "ts")

        assert [c.index for c in chunks] == list(range(len(chunks)))
        for chunk in chunks:
            assert chunk.section is None
            assert chunk.hash == hash_content(chunk.content)
            assert chunk.token_count == len(chunk.content) // 4
            assert len(chunk.content) <= 1024

    def test_coverage(self) -> None:
        """Non-overlapping portions reconstruct the original content."""
        content = "".join(f"line {i}: value = {i * 7}\n" for i in range(400))
        chunker = Chunker(max_chars=300, overlap=40)

        chunks = chunker.chunk("data.txt", content, "txt")

        assert _reconstruct(chunks, 40) == content

    def test_count_bound(self) -> None:
        content = "q" * 10_000
        chunks = Chunker(max_chars=1024, overlap=100).chunk("a.py", content, "py")

        assert len(chunks) <= math.ceil(len(content) / (1024 - 100))

    def test_deterministic(self) -> None:
        """Same input gives identical chunks and hashes."""
        content = "const x = 1;\n" * 500
        first = Chunker().chunk("a.ts", content, "ts")
        second = Chunker().chunk("a.ts", content, "ts")

        assert first == second

    def test_whitespace_only_window_dropped(self) -> None:
        content = "a" * 10 + " " * 30
        chunks = Chunker(max_chars=10, overlap=0).chunk("a.txt", content, "txt")

        assert [c.content for c in chunks] == ["a" * 10]

    def test_empty_content(self) -> None:
        assert Chunker().chunk("empty.py", "", "py") == []


class TestMarkdownChunking:
    """Test heading-based Markdown chunking."""

    def test_two_sections_example(self) -> None:
        """1500 + 200 character sections give 1024, 576 and 200 character chunks."""
        content = "## First\n" + "a" * 1500 + "\n## Second\n" + "b" * 200 + "\n"

        chunks = Chunker(max_chars=1024, overlap=100).chunk("doc.md", content, "md")

        assert len(chunks) == 3
        assert [c.section for c in chunks] == ["First", "First", "Second"]
        assert [len(c.content) for c in chunks] == [1024, 576, 200]
        assert [c.index for c in chunks] == [0, 1, 2]

    def test_overlap_seeds_next_chunk(self) -> None:
        """A split section repeats the tail of the emitted chunk."""
        body = "".join(chr(ord("a") + i % 26) for i in range(1500))
        chunks = Chunker(max_chars=1024, overlap=100).chunk("doc.md", "# T\n" + body, "md")

        assert chunks[0].content[-100:] == chunks[1].content[:100]

    def test_preamble_has_no_section(self) -> None:
        content = "Intro paragraph.\n\n# Setup\nInstall it.\n"

        chunks = chunk_document("README.md", content)

        assert [(c.section, c.content) for c in chunks] == [
            (None, "Intro paragraph."),
            ("Setup", "Install it."),
        ]

    def test_small_sections_kept_separate(self) -> None:
        """Each heading starts a new chunk even when under the threshold."""
        content = "# A\none\n## B\ntwo\n### C\nthree\n"

        chunks = chunk_document("notes.md", content)

        assert [c.section for c in chunks] == ["A", "B", "C"]
        assert [c.content for c in chunks] == ["one", "two", "three"]

    def test_empty_sections_dropped(self) -> None:
        """Headings without text produce no chunk; indices stay contiguous."""
        content = "# Empty\n\n   \n# Full\ntext\n"

        chunks = chunk_document("x.md", content)

        assert len(chunks) == 1
        assert chunks[0].index == 0
        assert chunks[0].section == "Full"

    def test_content_trimmed(self) -> None:
        chunks = chunk_document("x.md", "# H\n\n   padded text   \n\n")

        assert chunks[0].content == "padded text"

    def test_long_section_splits_repeatedly(self) -> None:
        content = "# Big\n" + "w" * 5000

        chunks = Chunker(max_chars=1000, overlap=100).chunk("big.md", content, "md")

        assert all(c.section == "Big" for c in chunks)
        assert all(len(c.content) <= 1000 for c in chunks)
        assert len(chunks) == 6

    def test_deterministic(self) -> None:
        content = "# A\n" + "text " * 600 + "\n## B\nmore\n"

        assert chunk_document("d.md", content) == chunk_document("d.md", content)

    def test_dispatch_by_type(self) -> None:
        """Markdown strategy is only used for Markdown file types."""
        content = "# Heading\nbody\n"

        as_md = chunk_document("a.md", content)
        as_txt = chunk_document("a.txt", content)

        assert as_md[0].section == "Heading"
        assert as_txt[0].section is None
        assert as_txt[0].content == content
