"""Cortex error types."""


class CortexError(Exception):
    """Base error for indexing and retrieval operations."""

    pass


class TransportError(CortexError):
    """Embedding service or storage could not be reached."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ProtocolError(CortexError):
    """Embedding service answered with something that is not a usable vector."""

    pass


class ValidationError(CortexError):
    """Chunk rejected before embedding (for example, it is too large)."""

    def __init__(self, message: str, *, size: int | None = None) -> None:
        super().__init__(message)
        self.size = size
