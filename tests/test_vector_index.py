"""
Tests for the vector index adapter: availability and error wrapping.
"""

from unittest.mock import MagicMock

import numpy as np
import pytest

from memory_local.core.errors import VectorIndexError
from memory_local.vector.index import IVectorStore, SimpleInMemoryVectorStore
from memory_local.vector.vector_index import VectorIndex


def test_initialize_opens_store_once():
    factory = MagicMock(return_value=SimpleInMemoryVectorStore())
    index = VectorIndex(factory)

    assert index.available() is False
    assert index.initialize() is True
    assert index.initialize() is True
    assert index.available() is True
    factory.assert_called_once()


def test_failed_initialize_is_permanent():
    factory = MagicMock(side_effect=RuntimeError("corrupt index file"))
    index = VectorIndex(factory)

    assert index.initialize() is False
    assert index.initialize() is False
    assert index.available() is False
    factory.assert_called_once()

    with pytest.raises(VectorIndexError, match="not available"):
        index.top_k(np.array([1.0, 0.0]), 5)


def test_round_trip_through_adapter():
    index = VectorIndex(SimpleInMemoryVectorStore)
    index.initialize()

    index.upsert("a", np.array([1.0, 0.0]), "alpha")
    index.upsert("b", np.array([0.0, 1.0]), "beta")

    hits = index.top_k(np.array([1.0, 0.2]), 2)
    assert [hit.id for hit in hits] == ["a", "b"]
    assert hits[0].metadata == {"text": "alpha"}
    assert index.count() == 2
    assert index.ids() == {"a", "b"}

    assert index.delete("a") is True
    assert index.delete("a") is False
    index.clear()
    assert index.count() == 0


def test_call_failures_raise_but_keep_index_available():
    store = MagicMock(spec=IVectorStore)
    store.count.return_value = 0
    store.search.side_effect = RuntimeError("disk error")
    store.upsert.side_effect = ValueError("dimension mismatch")

    index = VectorIndex(lambda: store)
    index.initialize()

    with pytest.raises(VectorIndexError, match="disk error"):
        index.top_k(np.array([1.0]), 3)
    with pytest.raises(VectorIndexError, match="dimension mismatch"):
        index.upsert("a", np.array([1.0]), "alpha")
    assert index.available() is True


def test_delete_many_reports_failures():
    store = MagicMock(spec=IVectorStore)
    store.count.return_value = 0

    def delete(record_id):
        if record_id == "bad":
            raise RuntimeError("locked")
        return True

    store.delete.side_effect = delete
    index = VectorIndex(lambda: store)
    index.initialize()

    assert index.delete_many(["a", "bad", "c"]) == ["bad"]
    assert store.delete.call_count == 3


def test_close_makes_index_unavailable():
    store = MagicMock(spec=IVectorStore)
    store.count.return_value = 0
    index = VectorIndex(lambda: store)
    index.initialize()

    index.close()

    store.close.assert_called_once()
    assert index.available() is False
    with pytest.raises(VectorIndexError):
        index.upsert("a", np.array([1.0]), "alpha")
