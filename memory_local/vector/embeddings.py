"""
Embedding providers and the gateway the orchestrator talks to.

The gateway owns lazy provider initialization (exactly once, even under concurrent
first calls), per-call failure isolation and dimension discovery.
"""

from abc import ABC, abstractmethod
import hashlib
import re
import threading
from typing import Callable, Optional

import numpy as np

from ..core.errors import EmbeddingError
from ..util.logging import logger


class IEmbeddingProvider(ABC):
    """Abstract interface for embedding providers."""

    @abstractmethod
    def embed_text(self, text: str) -> list[float]:
        """Generate embedding vector for given text."""
        pass

    @abstractmethod
    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        pass


class DeterministicHashEmbedding(IEmbeddingProvider):
    """Deterministic token-hashing embedding provider.

    Each lowercase word adds one count to a hashed bucket, so texts sharing words point
    in similar directions and any text with a word is a non-zero vector. Reproducible
    and model-free, which makes it the provider for offline use and tests.
    """

    _WORD = re.compile(r"\w+")

    def __init__(self, dimension: int = 384):
        self.dimension = dimension

    def embed_text(self, text: str) -> list[float]:
        """Generate a deterministic embedding vector from the words of the text."""
        vector = np.zeros(self.dimension, dtype=np.float32)
        for word in self._WORD.findall(text.lower()):
            digest = hashlib.md5(word.encode("utf-8")).digest()
            bucket = int.from_bytes(digest[:4], "little") % self.dimension
            vector[bucket] += 1.0
        return vector.tolist()

    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        return self.dimension


class SentenceTransformerEmbedding(IEmbeddingProvider):
    """Sentence transformers embedding provider using pre-trained models.

    The model is loaded on first use.
    """

    def __init__(self, model_name: str = "all-MiniLM-L6-v2"):
        self.model_name = model_name
        self._model = None
        self._dimension = None

    @property
    def model(self):
        if self._model is None:
            from sentence_transformers import SentenceTransformer
            self._model = SentenceTransformer(self.model_name)
        return self._model

    def embed_text(self, text: str) -> list[float]:
        """Generate embedding vector using sentence transformers."""
        embedding = self.model.encode(text, convert_to_numpy=True, normalize_embeddings=True)
        return embedding.tolist()

    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        if self._dimension is None:
            self._dimension = self.model.get_sentence_embedding_dimension()
        return self._dimension


class EmbeddingGateway:
    """
    Wraps an embedding provider for the rest of the system.

    - The provider is built by `provider_factory` on the first embed call, under a
      lock, so concurrent first calls initialize it once. A failed initialization is
      remembered and reported on every later call.
    - The dimension is fixed by the first successful embedding; a later vector of a
      different length is an EmbeddingError.
    - Every failure is raised as EmbeddingError.
    """

    def __init__(self, provider_factory: Callable[[], IEmbeddingProvider], model_name: str = ""):
        self._provider_factory = provider_factory
        self.model_name = model_name
        self._provider: Optional[IEmbeddingProvider] = None
        self._init_error: Optional[Exception] = None
        self._init_lock = threading.Lock()
        self._dimension: Optional[int] = None
        self._dimension_lock = threading.Lock()

    @property
    def dimension(self) -> Optional[int]:
        """Dimension discovered from the first successful embedding, or None."""
        return self._dimension

    @property
    def initialized(self) -> bool:
        return self._provider is not None

    def _get_provider(self) -> IEmbeddingProvider:
        if self._provider is not None:
            return self._provider

        with self._init_lock:
            if self._provider is None:
                if self._init_error is not None:
                    raise EmbeddingError(f"Embedding provider unavailable: {self._init_error}")
                try:
                    self._provider = self._provider_factory()
                    logger.info(f"Embedding provider initialized: {type(self._provider).__name__} {self.model_name}".rstrip())
                except Exception as e:
                    self._init_error = e
                    logger.error(f"Embedding provider initialization failed: {e}")
                    raise EmbeddingError(f"Embedding provider unavailable: {e}") from e
        return self._provider

    def embed(self, text: str) -> np.ndarray:
        """Embed text into a float32 vector of the process-wide dimension."""
        if not isinstance(text, str) or not text.strip():
            raise EmbeddingError("Cannot embed empty text")

        provider = self._get_provider()
        try:
            vector = np.asarray(provider.embed_text(text), dtype=np.float32).reshape(-1)
        except Exception as e:
            raise EmbeddingError(f"Embedding failed: {e}") from e

        if vector.size == 0 or not np.all(np.isfinite(vector)) or not np.any(vector):
            raise EmbeddingError("Embedding provider returned an empty, zero or non-finite vector")

        with self._dimension_lock:
            if self._dimension is None:
                self._dimension = int(vector.size)
                logger.info(f"Embedding dimension discovered: {self._dimension}")
            elif vector.size != self._dimension:
                raise EmbeddingError(
                    f"Embedding dimension {vector.size} does not match discovered dimension {self._dimension}"
                )
        return vector
