"""
Error taxonomy for the memory store.

Only ValidationError, PersistenceError and NotInitializedError cross the public
boundary. EmbeddingError and VectorIndexError are caught where they happen and turned
into a structured-only fallback plus a log line.
"""


class MemoryStoreError(Exception):
    """Base class for all memory store errors."""


class ValidationError(MemoryStoreError):
    """Malformed input, rejected before any index is touched."""


class PersistenceError(MemoryStoreError):
    """The structured index could not read or write."""


class EmbeddingError(MemoryStoreError):
    """Embedding generation failed or returned a vector of the wrong dimension."""


class VectorIndexError(MemoryStoreError):
    """The ANN engine failed or is unavailable."""


class NotInitializedError(MemoryStoreError):
    """An operation was invoked before init completed (or after shutdown)."""
