"""Utility helpers for working with files."""

from __future__ import annotations

import hashlib
import re

_SIZE_PATTERN = re.compile(r"^(\d+(?:\.\d+)?)\s*(B|KB|MB|GB)?$", re.IGNORECASE)
_SIZE_UNITS = {"B": 1, "KB": 1024, "MB": 1024**2, "GB": 1024**3}


def hash_content(data: bytes | str) -> str:
    """Return the SHA256 hex digest of ``data`` (strings are UTF-8 encoded)."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def parse_size(size: int | float | str) -> int:
    """Convert ``50MB``-style sizes (or a plain byte count) to bytes."""
    if isinstance(size, (int, float)):
        return int(size)

    match = _SIZE_PATTERN.match(size.strip())
    if not match:
        raise ValueError(
            f"Invalid size format: {size!r}. Expected e.g. '50MB', '1GB', '500KB' or bytes"
        )
    value = float(match.group(1))
    unit = (match.group(2) or "B").upper()
    return int(value * _SIZE_UNITS[unit])


def format_size(num_bytes: int) -> str:
    """Format a byte count for humans, e.g. ``50.5MB``."""
    if num_bytes < 1024:
        return f"{num_bytes}B"
    if num_bytes < 1024**2:
        return f"{num_bytes / 1024:.1f}KB"
    if num_bytes < 1024**3:
        return f"{num_bytes / 1024**2:.1f}MB"
    return f"{num_bytes / 1024**3:.1f}GB"
