"""
FAISS-backed persistent vector store.

Layout under the vector directory:
    index.faiss  - IndexIDMap2 over IndexFlatIP of unit vectors (inner product = cosine)
    ids.pkl      - memory id <-> FAISS int64 id mapping and the stored text

The index is created lazily on the first upsert, with the dimension of that first
vector, so no placeholder row ever exists in the collection.
"""

import os
import pickle
from pathlib import Path
from typing import Dict, List, Optional, Set, Union

import faiss
import numpy as np

from .index import IVectorStore, normalize
from .types import VectorRecord, QueryResult
from ..util.logging import logger

INDEX_FILENAME = "index.faiss"
IDMAP_FILENAME = "ids.pkl"


class FaissVectorStore(IVectorStore):
    """FAISS-backed implementation of IVectorStore with delete and upsert support."""

    def __init__(self, directory: Union[str, Path], dimension: Optional[int] = None):
        """
        Open (or prepare) a FAISS vector store.

        Args:
            directory: Directory holding the index and id map; created if missing
            dimension: Expected dimension. When omitted it is taken from the persisted
                index, or from the first vector upserted.
        """
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self.index_path = self.directory / INDEX_FILENAME
        self.idmap_path = self.directory / IDMAP_FILENAME

        self.index = None
        self.dimension = dimension
        self._expected_dimension = dimension

        # Keep track of record IDs and their FAISS int64 labels
        self.id_to_label: Dict[str, int] = {}
        self.label_to_id: Dict[int, str] = {}
        self.texts: Dict[str, str] = {}
        self.next_label = 0

        self._load()

    def _load(self):
        """Load existing FAISS index and id map from disk."""
        if not self.index_path.exists():
            return

        self.index = faiss.read_index(str(self.index_path))
        if self.dimension is not None and self.index.d != self.dimension:
            raise ValueError(f"Persisted index dimension {self.index.d} does not match expected dimension {self.dimension}")
        self.dimension = self.index.d

        if not self.idmap_path.exists():
            self._reset_damaged(f"id map missing for {self.index.ntotal} vectors")
            return

        try:
            with open(self.idmap_path, 'rb') as f:
                state = pickle.load(f)
            self.id_to_label = state["id_to_label"]
            self.texts = state.get("texts", {})
            self.next_label = state["next_label"]
        except (OSError, pickle.UnpicklingError, EOFError, KeyError, TypeError, ValueError) as e:
            self._reset_damaged(f"id map unreadable: {e}")
            return
        self.label_to_id = {label: record_id for record_id, label in self.id_to_label.items()}

        if len(self.id_to_label) != self.index.ntotal:
            self._reset_damaged(f"Index/id map mismatch: {self.index.ntotal} vectors vs {len(self.id_to_label)} ids")

    def _reset_damaged(self, reason: str):
        """Start from an empty index; reconcile or rebuild re-embeds from SQLite."""
        logger.warning(f"Discarding damaged vector index in '{self.directory}': {reason}")
        self.index = None
        self.dimension = self._expected_dimension
        self.id_to_label = {}
        self.label_to_id = {}
        self.texts = {}
        self.next_label = 0
        self.index_path.unlink(missing_ok=True)
        self._save()

    def _save(self):
        """Write index and id map atomically (temp file + rename)."""
        if self.index is not None:
            tmp_index = self.index_path.with_suffix(".tmp")
            faiss.write_index(self.index, str(tmp_index))
            os.replace(tmp_index, self.index_path)

        tmp_map = self.idmap_path.with_suffix(".tmp")
        with open(tmp_map, 'wb') as f:
            pickle.dump({
                "id_to_label": self.id_to_label,
                "texts": self.texts,
                "next_label": self.next_label,
            }, f)
        os.replace(tmp_map, self.idmap_path)

    def _ensure_index(self, dimension: int):
        if self.index is None:
            self.dimension = dimension
            self.index = faiss.IndexIDMap2(faiss.IndexFlatIP(dimension))

    def _prepare(self, record: VectorRecord) -> np.ndarray:
        if record.vector is None:
            raise ValueError(f"Vector record {record.id} has no vector")
        normalized = normalize(record.vector)
        if self.dimension is not None and normalized.size != self.dimension:
            raise ValueError(f"Vector dimension {normalized.size} does not match expected dimension {self.dimension}")
        return normalized

    def _remove_label(self, record_id: str) -> bool:
        label = self.id_to_label.pop(record_id, None)
        if label is None:
            return False
        self.label_to_id.pop(label, None)
        self.texts.pop(record_id, None)
        self.index.remove_ids(np.array([label], dtype=np.int64))
        return True

    def _add(self, record: VectorRecord, vector: np.ndarray):
        self._ensure_index(vector.size)
        # FAISS has no in-place update; replace by remove + add
        self._remove_label(record.id)

        label = self.next_label
        self.next_label += 1
        self.index.add_with_ids(vector.reshape(1, -1), np.array([label], dtype=np.int64))

        self.id_to_label[record.id] = label
        self.label_to_id[label] = record.id
        self.texts[record.id] = str(record.metadata.get("text", "")) if record.metadata else ""

    def upsert(self, record: VectorRecord) -> None:
        """Insert or replace a single vector record and persist."""
        vector = self._prepare(record)
        self._add(record, vector)
        self._save()

    def batch_upsert(self, records: List[VectorRecord]) -> None:
        """Insert or replace multiple vector records with a single save."""
        if not records:
            return
        prepared = [(record, self._prepare(record)) for record in records]
        for record, vector in prepared:
            self._add(record, vector)
        self._save()

    def search(self, query_vector: np.ndarray, top_k: int = 5) -> List[QueryResult]:
        """Search for similar vectors, nearest first."""
        if self.index is None or not self.index.ntotal or top_k <= 0:
            return []

        try:
            normalized_query = normalize(query_vector)
        except ValueError:
            return []

        if normalized_query.size != self.dimension:
            raise ValueError(f"Query dimension {normalized_query.size} does not match expected dimension {self.dimension}")

        scores, labels = self.index.search(normalized_query.reshape(1, -1), min(top_k, self.index.ntotal))

        results = []
        for score, label in zip(scores[0], labels[0]):
            if label == -1:
                continue
            record_id = self.label_to_id.get(int(label))
            if record_id is None:
                continue
            # Inner product of unit vectors is cosine similarity
            results.append(QueryResult(
                id=record_id,
                distance=1.0 - float(score),
                metadata={"text": self.texts.get(record_id, "")}
            ))
        return results

    def delete(self, record_id: str) -> bool:
        """Delete a vector record by ID; an absent id is a no-op."""
        if self.index is None or not self._remove_label(record_id):
            return False
        self._save()
        return True

    def ids(self) -> Set[str]:
        return set(self.id_to_label)

    def count(self) -> int:
        return 0 if self.index is None else int(self.index.ntotal)

    def clear(self) -> None:
        """Clear all records. The dimension is forgotten so a new model can be used."""
        self.index = None
        self.dimension = None
        self.id_to_label.clear()
        self.label_to_id.clear()
        self.texts.clear()
        self.next_label = 0
        if self.index_path.exists():
            self.index_path.unlink()
        self._save()

    def close(self) -> None:
        self._save()
