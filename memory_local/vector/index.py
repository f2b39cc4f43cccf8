"""
Vector store interface and a simple in-process implementation.
"""

from abc import ABC, abstractmethod
from typing import List, Set
import numpy as np

from .types import VectorRecord, QueryResult


class IVectorStore(ABC):
    """Abstract interface for vector storage operations."""

    @abstractmethod
    def upsert(self, record: VectorRecord) -> None:
        """Insert or replace the vector stored for record.id."""
        pass

    @abstractmethod
    def batch_upsert(self, records: List[VectorRecord]) -> None:
        """Insert or replace multiple vector records."""
        pass

    @abstractmethod
    def search(self, query_vector: np.ndarray, top_k: int = 5) -> List[QueryResult]:
        """Nearest neighbors ordered by ascending distance. May return fewer than top_k."""
        pass

    @abstractmethod
    def delete(self, record_id: str) -> bool:
        """Delete a vector record by ID. Deleting an absent id returns False, never raises."""
        pass

    @abstractmethod
    def ids(self) -> Set[str]:
        """All record ids currently stored."""
        pass

    @abstractmethod
    def count(self) -> int:
        """Number of stored vectors."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Clear all records from the store."""
        pass

    def close(self) -> None:
        """Release resources. Nothing to do for stores without external state."""
        pass


def normalize(vector) -> np.ndarray:
    """Unit-length float32 copy of a vector; raises ValueError for zero or empty vectors."""
    array = np.asarray(vector, dtype=np.float32).reshape(-1)
    if array.size == 0:
        raise ValueError("Vector is empty")
    norm = np.linalg.norm(array)
    if norm == 0:
        raise ValueError("Vector has zero norm")
    return array / norm


class SimpleInMemoryVectorStore(IVectorStore):
    """In-memory implementation of IVectorStore using cosine distance. Nothing is persisted."""

    def __init__(self):
        self._vectors = {}  # record_id -> VectorRecord
        self._index = {}    # record_id -> normalized vector
        self.dimension = None

    def upsert(self, record: VectorRecord) -> None:
        """Insert or replace a single vector record."""
        if record.vector is None:
            raise ValueError(f"Vector record {record.id} has no vector")

        normalized = normalize(record.vector)
        if self.dimension is None:
            self.dimension = normalized.size
        elif normalized.size != self.dimension:
            raise ValueError(f"Vector dimension {normalized.size} does not match expected dimension {self.dimension}")

        self._vectors[record.id] = record
        self._index[record.id] = normalized

    def batch_upsert(self, records: List[VectorRecord]) -> None:
        for record in records:
            self.upsert(record)

    def search(self, query_vector: np.ndarray, top_k: int = 5) -> List[QueryResult]:
        """Search for similar vectors and return them nearest first."""
        if not self._index or top_k <= 0:
            return []

        try:
            normalized_query = normalize(query_vector)
        except ValueError:
            return []

        if normalized_query.size != self.dimension:
            raise ValueError(f"Query dimension {normalized_query.size} does not match expected dimension {self.dimension}")

        distances = {
            record_id: 1.0 - float(np.dot(normalized_query, stored_vector))
            for record_id, stored_vector in self._index.items()
        }
        ranked = sorted(distances.items(), key=lambda item: item[1])

        return [
            QueryResult(id=record_id, distance=distance, metadata=self._vectors[record_id].metadata)
            for record_id, distance in ranked[:top_k]
        ]

    def delete(self, record_id: str) -> bool:
        self._index.pop(record_id, None)
        return self._vectors.pop(record_id, None) is not None

    def ids(self) -> Set[str]:
        return set(self._vectors)

    def count(self) -> int:
        return len(self._vectors)

    def clear(self) -> None:
        self._vectors.clear()
        self._index.clear()
        self.dimension = None
