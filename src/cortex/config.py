"""Application configuration defaults."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

from cortex.embedding.encoder import DEFAULT_DIMENSION, DEFAULT_MODEL, DEFAULT_URL
from cortex.utils.files import parse_size

CONFIG_FILE = ".cortexconfig.json"
DEFAULT_DB_PATH = Path(".cortex/cortex.db")
DEFAULT_MAX_FILE_SIZE = 50 * 1024 * 1024

LOGGER = logging.getLogger(__name__)

# .cortexconfig.json key -> AppConfig field
_FILE_KEYS = {
    "dbPath": "db_path",
    "ollamaUrl": "ollama_url",
    "model": "model_name",
    "dimension": "dimension",
    "chunkChars": "chunk_chars",
    "overlap": "overlap",
    "maxChunkChars": "max_chunk_chars",
    "maxFileSize": "max_file_size",
}

_ENV_KEYS = {
    "CORTEX_DB": "db_path",
    "OLLAMA_URL": "ollama_url",
    "EMBEDDINGS_MODEL": "model_name",
    "EMBEDDINGS_DIMENSIONS": "dimension",
}


@dataclass(slots=True)
class AppConfig:
    db_path: Path = DEFAULT_DB_PATH
    ollama_url: str = DEFAULT_URL
    model_name: str = DEFAULT_MODEL
    dimension: int = DEFAULT_DIMENSION
    chunk_chars: int = 1024
    overlap: int = 100
    max_chunk_chars: int = 4000
    max_file_size: int = DEFAULT_MAX_FILE_SIZE

    def __post_init__(self) -> None:
        self.db_path = Path(self.db_path)
        self.max_file_size = parse_size(self.max_file_size)
        self.dimension = int(self.dimension)
        self.chunk_chars = int(self.chunk_chars)
        self.overlap = int(self.overlap)
        self.max_chunk_chars = int(self.max_chunk_chars)
        if self.dimension <= 0:
            raise ValueError(f"dimension must be positive, got {self.dimension}")
        if not 0 <= self.overlap < self.chunk_chars:
            raise ValueError(
                f"overlap must be at least 0 and below chunkChars ({self.chunk_chars}), "
                f"got {self.overlap}"
            )

    def resolve_db_path(self, base_dir: Path | None = None) -> Path:
        if Path(self.db_path).is_absolute() or base_dir is None:
            return Path(self.db_path)
        return base_dir / self.db_path


def _read_config_file(root: Path) -> dict[str, Any]:
    config_file = root / CONFIG_FILE
    if not config_file.is_file():
        return {}
    try:
        data = json.loads(config_file.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        LOGGER.warning("Ignoring invalid %s: %s", config_file, exc)
        return {}
    if not isinstance(data, dict):
        LOGGER.warning("Ignoring %s: expected a JSON object", config_file)
        return {}
    unknown = sorted(set(data) - set(_FILE_KEYS))
    if unknown:
        LOGGER.warning("Unknown keys in %s: %s", config_file, ", ".join(unknown))
    return {_FILE_KEYS[key]: value for key, value in data.items() if key in _FILE_KEYS}


def load_config(root: Path, environ: Mapping[str, str] | None = None) -> AppConfig:
    """Build the configuration for a workspace.

    Defaults are overridden by ``.cortexconfig.json`` in ``root``, which is in
    turn overridden by environment variables.
    """
    environ = os.environ if environ is None else environ
    values = _read_config_file(root)
    for env_key, field_name in _ENV_KEYS.items():
        if environ.get(env_key):
            values[field_name] = environ[env_key]
    return AppConfig(**values)
