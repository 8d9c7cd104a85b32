"""Tests for workspace discovery."""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from cortex.workspace import (
    DEFAULT_IGNORE_PATTERNS,
    IGNORE_FILE,
    collect_files,
    git_hooks_dir,
    is_ignored,
    load_ignore_patterns,
    parse_ignore_file,
    resolve_inputs,
    staged_files,
    write_default_ignore,
)


def test_parse_ignore_file_drops_comments_and_negations() -> None:
    content = "# comment\n\nnode_modules/\n!keep.log\n  *.log  \n"

    assert parse_ignore_file(content) == ["node_modules/", "*.log"]


def test_load_ignore_patterns_defaults(tmp_path: Path) -> None:
    assert load_ignore_patterns(tmp_path) == list(DEFAULT_IGNORE_PATTERNS)


def test_write_default_ignore_roundtrip(tmp_path: Path) -> None:
    path = write_default_ignore(tmp_path)

    assert path == tmp_path / IGNORE_FILE
    assert load_ignore_patterns(tmp_path) == list(DEFAULT_IGNORE_PATTERNS)


def test_write_default_ignore_keeps_existing(tmp_path: Path) -> None:
    (tmp_path / IGNORE_FILE).write_text("custom/\n")

    write_default_ignore(tmp_path)

    assert load_ignore_patterns(tmp_path) == ["custom/"]


@pytest.mark.parametrize(
    ("relative", "patterns", "expected"),
    [
        ("node_modules/", ["node_modules/"], True),
        ("pkg/node_modules/lib/index.js", ["node_modules/"], True),
        ("node_modules.txt", ["node_modules/"], False),
        ("src/app.min.js", ["*.min.js"], True),
        ("src/app.js", ["*.min.js"], False),
        ("docs/generated/api.md", ["docs/generated"], True),
        ("other/docs/generated/api.md", ["/docs/generated"], False),
        ("build/", ["/build/"], True),
        ("src/build/x.ts", ["/build/"], False),
        ("README.md", [], False),
    ],
)
def test_is_ignored(relative: str, patterns: list, expected: bool) -> None:
    assert is_ignored(relative, patterns) is expected


class TestCollectFiles:
    """Test recursive workspace scanning."""

    def test_collects_sorted_files(self, tmp_path: Path) -> None:
        (tmp_path / "src").mkdir()
        (tmp_path / "src" / "b.ts").write_text("b")
        (tmp_path / "a.md").write_text("a")

        scan = collect_files(tmp_path, [], max_file_size=1024)

        assert scan.files == sorted([tmp_path / "a.md", tmp_path / "src" / "b.ts"])

    def test_skips_hidden_entries(self, tmp_path: Path) -> None:
        (tmp_path / ".git").mkdir()
        (tmp_path / ".git" / "config").write_text("x")
        (tmp_path / ".env").write_text("SECRET=1")
        (tmp_path / "visible.txt").write_text("ok")

        scan = collect_files(tmp_path, [], max_file_size=1024)

        assert scan.files == [tmp_path / "visible.txt"]

    def test_skips_ignored(self, tmp_path: Path) -> None:
        (tmp_path / "node_modules" / "lib").mkdir(parents=True)
        (tmp_path / "node_modules" / "lib" / "index.js").write_text("x")
        (tmp_path / "debug.log").write_text("x")
        (tmp_path / "main.py").write_text("print(1)")

        scan = collect_files(tmp_path, ["node_modules/", "*.log"], max_file_size=1024)

        assert scan.files == [tmp_path / "main.py"]
        assert scan.skipped_ignored == 1

    def test_skips_large_files(self, tmp_path: Path) -> None:
        (tmp_path / "big.txt").write_text("x" * 2048)
        (tmp_path / "small.txt").write_text("x")

        scan = collect_files(tmp_path, [], max_file_size=1024)

        assert scan.files == [tmp_path / "small.txt"]
        assert scan.skipped_large == 1


requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


def _git(cwd: Path, *args: str) -> None:
    subprocess.run(["git", *args], cwd=cwd, check=True, capture_output=True)


@pytest.fixture
def repo(tmp_path: Path) -> Path:
    root = tmp_path / "repo"
    root.mkdir()
    _git(root, "init", "-q")
    return root


def test_resolve_inputs(tmp_path: Path) -> None:
    absolute = tmp_path / "abs.md"

    assert resolve_inputs(tmp_path, ["rel.md", absolute]) == [tmp_path / "rel.md", absolute]


class TestStagedFiles:
    """Test git staged file lookup."""

    def test_returns_existing_unignored(self, tmp_path: Path) -> None:
        (tmp_path / "a.ts").write_text("a")
        (tmp_path / "app.log").write_text("log")
        completed = MagicMock(stdout="a.ts\ndeleted.ts\napp.log\n\n")

        with patch("cortex.workspace.subprocess.run", return_value=completed) as mock_run:
            files = staged_files(tmp_path, ["*.log"])

        assert files == [tmp_path / "a.ts"]
        args, kwargs = mock_run.call_args
        assert args[0][:3] == ["git", "diff", "--cached"]
        assert "--relative" in args[0]
        assert kwargs["cwd"] == tmp_path

    def test_git_failure_propagates(self, tmp_path: Path) -> None:
        error = subprocess.CalledProcessError(128, ["git"])
        with patch("cortex.workspace.subprocess.run", side_effect=error):
            with pytest.raises(subprocess.CalledProcessError):
                staged_files(tmp_path, [])

    @requires_git
    def test_root_is_repository_subdirectory(self, repo: Path) -> None:
        """Staged paths resolve against the workspace root, not the repository top."""
        project = repo / "project"
        project.mkdir()
        (project / "notes.md").write_text("# Notes\n")
        (repo / "outside.md").write_text("# Elsewhere\n")
        _git(repo, "add", "project/notes.md", "outside.md")

        assert staged_files(project, []) == [project / "notes.md"]

    @requires_git
    def test_ignore_patterns_relative_to_root(self, repo: Path) -> None:
        project = repo / "project"
        (project / "generated").mkdir(parents=True)
        (project / "generated" / "api.ts").write_text("export {};\n")
        (project / "main.ts").write_text("export {};\n")
        _git(repo, "add", "project")

        assert staged_files(project, ["/generated/"]) == [project / "main.ts"]


class TestGitHooksDir:
    """Test hook directory lookup."""

    @requires_git
    def test_repository_root(self, repo: Path) -> None:
        assert git_hooks_dir(repo).resolve() == (repo / ".git" / "hooks").resolve()

    @requires_git
    def test_subdirectory(self, repo: Path) -> None:
        project = repo / "project"
        project.mkdir()

        assert git_hooks_dir(project).resolve() == (repo / ".git" / "hooks").resolve()

    def test_not_a_repository(self, tmp_path: Path) -> None:
        error = subprocess.CalledProcessError(128, ["git"])
        with patch("cortex.workspace.subprocess.run", side_effect=error):
            with pytest.raises(subprocess.CalledProcessError):
                git_hooks_dir(tmp_path)
