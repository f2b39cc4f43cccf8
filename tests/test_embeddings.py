"""
Tests for embedding providers and the embedding gateway.
"""

import threading
import time

import numpy as np
import pytest

from memory_local.core.errors import EmbeddingError
from memory_local.vector.embeddings import DeterministicHashEmbedding, EmbeddingGateway


def test_deterministic_hash_embedding():
    """Test that the hash embedding provider returns consistent results."""
    provider = DeterministicHashEmbedding(dimension=384)

    embedding1 = provider.embed_text("User prefers dark mode")
    embedding2 = provider.embed_text("User prefers dark mode")

    assert embedding1 == embedding2
    assert len(embedding1) == 384
    assert provider.get_dimension() == 384


def test_deterministic_hash_embedding_different_texts():
    """Different texts give different embeddings."""
    provider = DeterministicHashEmbedding(dimension=64)

    assert provider.embed_text("dark mode") != provider.embed_text("Winterthur Switzerland")


def test_hash_embedding_shared_words_are_closer():
    provider = DeterministicHashEmbedding()

    def cosine(a, b):
        a, b = np.asarray(a), np.asarray(b)
        return float(np.dot(a, b) / (np.linalg.norm(a) * np.linalg.norm(b)))

    query = provider.embed_text("dark mode preferences")
    related = provider.embed_text("User prefers dark mode in all applications")
    unrelated = provider.embed_text("User lives in Winterthur, Switzerland")

    assert cosine(query, related) > cosine(query, unrelated)


def test_hash_embedding_is_case_insensitive():
    provider = DeterministicHashEmbedding(dimension=32)
    assert provider.embed_text("Dark Mode") == provider.embed_text("dark mode")


@pytest.mark.parametrize("dimension", [1, 2, 3, 9, 384])
def test_hash_embedding_never_zero_for_words(dimension):
    """Words sharing a bucket add up instead of cancelling out."""
    provider = DeterministicHashEmbedding(dimension=dimension)

    for text in ["second call", "first call", "User prefers dark mode in all applications"]:
        vector = np.asarray(provider.embed_text(text))
        assert vector.sum() == len(text.split())
        assert np.any(vector)


class TestEmbeddingGateway:

    def test_provider_created_lazily(self):
        calls = []

        def factory():
            calls.append(1)
            return DeterministicHashEmbedding(dimension=16)

        gateway = EmbeddingGateway(factory)
        assert calls == []
        assert gateway.initialized is False
        assert gateway.dimension is None

        vector = gateway.embed("hello world")
        assert calls == [1]
        assert gateway.initialized is True
        assert vector.dtype == np.float32
        assert vector.shape == (16,)
        assert gateway.dimension == 16

    def test_concurrent_first_calls_initialize_once(self):
        calls = []

        def slow_factory():
            calls.append(1)
            time.sleep(0.05)
            return DeterministicHashEmbedding(dimension=16)

        gateway = EmbeddingGateway(slow_factory)
        errors = []

        def embed():
            try:
                gateway.embed("concurrent text")
            except Exception as e:  # pragma: no cover - reported below
                errors.append(e)

        threads = [threading.Thread(target=embed) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert len(calls) == 1

    def test_failed_initialization_is_remembered(self):
        calls = []

        def broken_factory():
            calls.append(1)
            raise RuntimeError("model download failed")

        gateway = EmbeddingGateway(broken_factory)

        with pytest.raises(EmbeddingError, match="model download failed"):
            gateway.embed("first")
        with pytest.raises(EmbeddingError, match="model download failed"):
            gateway.embed("second")
        assert len(calls) == 1

    def test_dimension_mismatch_is_rejected(self):
        class ShiftingProvider(DeterministicHashEmbedding):
            def embed_text(self, text):
                self.dimension += 1
                return super().embed_text(text)

        gateway = EmbeddingGateway(lambda: ShiftingProvider(dimension=8))
        gateway.embed("alpha")

        with pytest.raises(EmbeddingError, match="does not match"):
            gateway.embed("beta")
        assert gateway.dimension == 9

    def test_provider_errors_are_wrapped(self):
        class FailingProvider(DeterministicHashEmbedding):
            def embed_text(self, text):
                raise RuntimeError("CUDA out of memory")

        gateway = EmbeddingGateway(FailingProvider)
        with pytest.raises(EmbeddingError, match="CUDA out of memory"):
            gateway.embed("anything")

    @pytest.mark.parametrize("text", ["", "   "])
    def test_empty_text_rejected(self, text):
        gateway = EmbeddingGateway(DeterministicHashEmbedding)
        with pytest.raises(EmbeddingError):
            gateway.embed(text)

    def test_zero_vector_rejected(self):
        gateway = EmbeddingGateway(DeterministicHashEmbedding)
        # Punctuation only: no words to hash
        with pytest.raises(EmbeddingError, match="zero"):
            gateway.embed("?!")
