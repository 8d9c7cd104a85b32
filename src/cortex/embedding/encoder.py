"""Embedding service client.

Talks to an Ollama-compatible HTTP service. The service embeds one prompt per
request, so ``embed`` issues one call per text and keeps the input order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from numbers import Real
from typing import Any, Iterable, Sequence

import httpx
import numpy as np

from cortex.errors import ProtocolError, TransportError

DEFAULT_MODEL = "nomic-embed-text"
DEFAULT_URL = "http://localhost:11434"
DEFAULT_DIMENSION = 768

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class EmbeddingConfig:
    base_url: str = DEFAULT_URL
    model_name: str = DEFAULT_MODEL
    dimension: int | None = DEFAULT_DIMENSION
    timeout: float = 60.0
    health_timeout: float = 5.0


def _parse_vector(payload: Any) -> list[float]:
    if not isinstance(payload, dict):
        raise ProtocolError(
            f"Invalid embedding response: expected object, got {type(payload).__name__}"
        )
    vector = payload.get("embedding")
    if not isinstance(vector, list):
        raise ProtocolError(
            f"Invalid embedding response: expected array, got {type(vector).__name__}"
        )
    if not vector:
        raise ProtocolError("Invalid embedding response: empty vector")
    # bool is a Real subclass but never a valid vector component
    if not all(isinstance(value, Real) and not isinstance(value, bool) for value in vector):
        raise ProtocolError("Invalid embedding response: vector contains non-numeric values")
    return [float(value) for value in vector]


class EmbeddingClient:
    """Synchronous client for the embedding service.

    Features:
    - One request per text, results returned in input order
    - Transport failures raised as ``TransportError``
    - Malformed responses raised as ``ProtocolError``
    - ``health()`` never raises
    """

    def __init__(
        self,
        config: EmbeddingConfig | None = None,
        *,
        client: httpx.Client | None = None,
    ) -> None:
        self.config = config or EmbeddingConfig()
        self.base_url = self.config.base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=self.config.timeout)

    @property
    def dimension(self) -> int | None:
        return self.config.dimension

    def __enter__(self) -> "EmbeddingClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def _embed_one(self, text: str) -> list[float]:
        url = f"{self.base_url}/api/embeddings"
        try:
            response = self._client.post(
                url,
                json={"model": self.config.model_name, "prompt": text},
                timeout=self.config.timeout,
            )
        except httpx.HTTPError as exc:
            raise TransportError(f"Embedding service unreachable at {self.base_url}: {exc}") from exc

        if response.is_error:
            raise TransportError(
                f"Embedding API error: {response.status_code} - {response.text[:200]}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise ProtocolError(f"Invalid embedding response: not JSON ({exc})") from exc

        vector = _parse_vector(payload)
        if self.config.dimension is not None and len(vector) != self.config.dimension:
            raise ProtocolError(
                f"Embedding dimension mismatch: expected {self.config.dimension}, got {len(vector)}"
            )
        return vector

    def embed(self, texts: Sequence[str] | Iterable[str]) -> np.ndarray:
        """Return float32 embeddings for input texts, one row per text."""
        sentences = list(texts)
        if not sentences:
            return np.zeros((0, self.config.dimension or 0), dtype="float32")

        vectors = [self._embed_one(text) for text in sentences]
        if len(vectors) != len(sentences):
            raise ProtocolError(
                f"Embedding count mismatch: expected {len(sentences)}, got {len(vectors)}"
            )
        if len({len(vector) for vector in vectors}) != 1:
            raise ProtocolError("Embedding service returned vectors of different lengths")

        logger.debug("Embedded %d texts with %s", len(vectors), self.config.model_name)
        return np.asarray(vectors, dtype="float32")

    def embed_query(self, text: str) -> np.ndarray:
        """Convenience wrapper for single-query embedding."""
        return self.embed([text])[0]

    def health(self) -> bool:
        """Probe the service; timeouts and errors resolve to ``False``."""
        try:
            response = self._client.get(
                f"{self.base_url}/api/tags", timeout=self.config.health_timeout
            )
        except Exception as exc:
            logger.debug("Embedding service health check failed: %s", exc)
            return False
        return response.is_success
