"""
Vector index adapter: the only door from the orchestrator to the ANN engine.

Availability is a first-class state. The store is opened once by initialize(); if
that throws, the index stays unavailable for the rest of the process. Individual
call failures raise VectorIndexError without disabling the index, since they may be
transient.
"""

import threading
from typing import Callable, List, Optional, Sequence, Set

import numpy as np

from ..core.errors import VectorIndexError
from ..util.logging import logger
from .index import IVectorStore
from .types import QueryResult, VectorRecord


class VectorIndex:
    """Adapter over an IVectorStore built by `store_factory`."""

    def __init__(self, store_factory: Callable[[], IVectorStore]):
        self._store_factory = store_factory
        self._store: Optional[IVectorStore] = None
        self._failed = False
        self._lock = threading.RLock()

    def initialize(self) -> bool:
        """Open the underlying store. Never retried after a failure."""
        with self._lock:
            if self._store is not None:
                return True
            if self._failed:
                return False
            try:
                self._store = self._store_factory()
                logger.info(f"Vector index initialized: {type(self._store).__name__} ({self._store.count()} vectors)")
                return True
            except Exception as e:
                self._failed = True
                logger.error(f"Vector index unavailable for this session: {e}")
                return False

    def available(self) -> bool:
        return self._store is not None

    def _require_store(self) -> IVectorStore:
        if self._store is None:
            raise VectorIndexError("Vector index is not available")
        return self._store

    def upsert(self, record_id: str, vector: np.ndarray, text: str) -> None:
        """Insert or replace the entry for record_id."""
        with self._lock:
            store = self._require_store()
            try:
                store.upsert(VectorRecord(id=record_id, vector=vector, metadata={"text": text}))
            except Exception as e:
                raise VectorIndexError(f"Vector upsert failed for '{record_id}': {e}") from e

    def top_k(self, vector: np.ndarray, k: int) -> List[QueryResult]:
        """Nearest neighbors ordered by ascending distance; may return fewer than k."""
        with self._lock:
            store = self._require_store()
            try:
                return store.search(vector, k)
            except Exception as e:
                raise VectorIndexError(f"Vector search failed: {e}") from e

    def delete(self, record_id: str) -> bool:
        """Delete the entry for record_id. An absent id is not an error."""
        with self._lock:
            store = self._require_store()
            try:
                return store.delete(record_id)
            except Exception as e:
                raise VectorIndexError(f"Vector delete failed for '{record_id}': {e}") from e

    def delete_many(self, record_ids: Sequence[str]) -> List[str]:
        """Best-effort delete of several ids. Returns the ids whose delete failed."""
        failed = []
        for record_id in record_ids:
            try:
                self.delete(record_id)
            except VectorIndexError as e:
                logger.log_vector_operation("delete", record_id, {"error": str(e)[:100]}, status="failed")
                failed.append(record_id)
        return failed

    def ids(self) -> Set[str]:
        with self._lock:
            store = self._require_store()
            try:
                return store.ids()
            except Exception as e:
                raise VectorIndexError(f"Vector id listing failed: {e}") from e

    def count(self) -> int:
        with self._lock:
            store = self._require_store()
            try:
                return store.count()
            except Exception as e:
                raise VectorIndexError(f"Vector count failed: {e}") from e

    def clear(self) -> None:
        with self._lock:
            store = self._require_store()
            try:
                store.clear()
            except Exception as e:
                raise VectorIndexError(f"Vector clear failed: {e}") from e

    def close(self) -> None:
        with self._lock:
            if self._store is None:
                return
            try:
                self._store.close()
            except Exception as e:
                logger.warning(f"Vector index close failed: {e}")
            self._store = None
