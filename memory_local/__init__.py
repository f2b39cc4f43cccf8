"""
Local dual-backend memory store: SQLite for structured recall, a vector index for
semantic recall, one store/recall/forget contract over both.
"""

from .core.config import VERSION, MemoryConfig
from .core.errors import (
    MemoryStoreError,
    ValidationError,
    PersistenceError,
    EmbeddingError,
    VectorIndexError,
    NotInitializedError,
)
from .core.orchestrator import MemoryOrchestrator
from .core.schema import MemoryRecord

__version__ = VERSION

__all__ = [
    'MemoryConfig',
    'MemoryOrchestrator',
    'MemoryRecord',
    'MemoryStoreError',
    'ValidationError',
    'PersistenceError',
    'EmbeddingError',
    'VectorIndexError',
    'NotInitializedError',
]
