"""Workspace file discovery.

Everything under the workspace root is synced except hidden entries, paths
matching ``.cortexignore`` and files above the configured size limit.
"""

from __future__ import annotations

import fnmatch
import logging
import os
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Sequence

from cortex.utils.files import format_size

LOGGER = logging.getLogger(__name__)

IGNORE_FILE = ".cortexignore"

DEFAULT_IGNORE_PATTERNS = (
    "node_modules/",
    "dist/",
    "build/",
    "out/",
    "coverage/",
    "__pycache__/",
    "venv/",
    "*.pyc",
    "*.lock",
    "package-lock.json",
    "*.min.js",
    "*.map",
    "*.log",
    "*.db",
    "*.sqlite",
    "*.png",
    "*.jpg",
    "*.jpeg",
    "*.gif",
    "*.ico",
    "*.pdf",
    "*.zip",
    "*.gz",
    "*.woff",
    "*.woff2",
    "*.ttf",
    "*.so",
    "*.dylib",
    "*.exe",
)


def parse_ignore_file(content: str) -> List[str]:
    """Parse gitignore-style content; comments and ``!`` negations are dropped."""
    patterns = []
    for line in content.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or line.startswith("!"):
            continue
        patterns.append(line)
    return patterns


def load_ignore_patterns(root: Path) -> List[str]:
    ignore_file = root / IGNORE_FILE
    if not ignore_file.is_file():
        return list(DEFAULT_IGNORE_PATTERNS)
    return parse_ignore_file(ignore_file.read_text(encoding="utf-8"))


def write_default_ignore(root: Path) -> Path:
    """Create ``.cortexignore`` with the default patterns unless it exists."""
    ignore_file = root / IGNORE_FILE
    if not ignore_file.exists():
        lines = ["# Paths excluded from the Cortex index (gitignore-like syntax)"]
        lines.extend(DEFAULT_IGNORE_PATTERNS)
        ignore_file.write_text("\n".join(lines) + "\n", encoding="utf-8")
        LOGGER.info("Created %s", ignore_file)
    return ignore_file


def is_ignored(relative: str, patterns: Sequence[str]) -> bool:
    """Match a POSIX relative path against ignore patterns.

    A trailing slash on ``relative`` marks it as a directory. ``dir/``
    patterns match directory components; patterns without a slash are
    matched against every component; anchored patterns (``/x`` or ``a/b``)
    are matched against the whole relative path.
    """
    is_dir = relative.endswith("/")
    relative = relative.strip("/")
    parts = relative.split("/")
    dir_parts = parts if is_dir else parts[:-1]
    for raw in patterns:
        pattern = raw.lstrip("/")
        if pattern.endswith("/"):
            name = pattern.rstrip("/")
            if "/" in name or raw.startswith("/"):
                if (is_dir and relative == name) or relative.startswith(name + "/"):
                    return True
            elif any(fnmatch.fnmatch(part, name) for part in dir_parts):
                return True
            continue
        if "/" in pattern or raw.startswith("/"):
            if fnmatch.fnmatch(relative, pattern) or relative.startswith(pattern + "/"):
                return True
            continue
        if any(fnmatch.fnmatch(part, pattern) for part in parts):
            return True
    return False


@dataclass(slots=True)
class WorkspaceScan:
    files: List[Path] = field(default_factory=list)
    skipped_large: int = 0
    skipped_ignored: int = 0


def collect_files(root: Path, patterns: Sequence[str], max_file_size: int) -> WorkspaceScan:
    """Collect every syncable file under ``root``, sorted by path.

    Ignored and hidden directories are pruned without being walked.
    """
    scan = WorkspaceScan()
    root = root.resolve()
    for dirpath, dirnames, filenames in os.walk(root):
        base = Path(dirpath)
        prefix = base.relative_to(root).as_posix()
        prefix = "" if prefix == "." else prefix + "/"
        dirnames[:] = sorted(
            name
            for name in dirnames
            if not name.startswith(".") and not is_ignored(f"{prefix}{name}/", patterns)
        )
        for name in sorted(filenames):
            if name.startswith("."):
                continue
            relative = f"{prefix}{name}"
            if is_ignored(relative, patterns):
                scan.skipped_ignored += 1
                continue
            path = base / name
            try:
                size = path.stat().st_size
            except OSError:
                LOGGER.warning("Skipping inaccessible file: %s", relative)
                continue
            if size > max_file_size:
                LOGGER.warning("Skipping large file: %s (%s)", relative, format_size(size))
                scan.skipped_large += 1
                continue
            scan.files.append(path)
    scan.files.sort()
    LOGGER.debug("Found %d files under %s", len(scan.files), root)
    return scan


def resolve_inputs(root: Path, inputs: Iterable[str | Path]) -> List[Path]:
    """Resolve explicit file arguments relative to the workspace root."""
    resolved = []
    for item in inputs:
        path = Path(item).expanduser()
        resolved.append(path if path.is_absolute() else root / path)
    return resolved


def staged_files(root: Path, patterns: Sequence[str]) -> List[Path]:
    """Files staged in git (added, copied, modified, renamed) that still exist.

    Only files under ``root`` are returned, even when ``root`` is a
    subdirectory of the repository.
    """
    output = subprocess.run(
        ["git", "diff", "--cached", "--name-only", "--relative", "--diff-filter=ACMR"],
        cwd=root,
        capture_output=True,
        text=True,
        check=True,
    ).stdout
    files = []
    for line in output.splitlines():
        relative = line.strip()
        if not relative or is_ignored(relative, patterns):
            continue
        path = root / relative
        if path.is_file():
            files.append(path)
    return files


def git_hooks_dir(root: Path) -> Path:
    """Hooks directory of the repository containing ``root``."""
    output = subprocess.run(
        ["git", "rev-parse", "--git-path", "hooks"],
        cwd=root,
        capture_output=True,
        text=True,
        check=True,
    ).stdout.strip()
    hooks = Path(output)
    return hooks if hooks.is_absolute() else root / hooks
