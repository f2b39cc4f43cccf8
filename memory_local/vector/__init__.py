"""
Vector overlay: embeddings and nearest-neighbor search, advisory to the SQLite store.
"""

# Package initialization for vector module
from .index import IVectorStore, SimpleInMemoryVectorStore
from .types import VectorRecord, QueryResult
from .embeddings import IEmbeddingProvider, DeterministicHashEmbedding, SentenceTransformerEmbedding, EmbeddingGateway
from .vector_index import VectorIndex

__all__ = [
    'IVectorStore',
    'SimpleInMemoryVectorStore',
    'VectorRecord',
    'QueryResult',
    'IEmbeddingProvider',
    'DeterministicHashEmbedding',
    'SentenceTransformerEmbedding',
    'EmbeddingGateway',
    'VectorIndex',
]
