"""
Configuration for the memory store.

Defaults come from the environment; the host overrides them with the options passed
to init (camelCase or snake_case).
"""

import os
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as SchemaValidationError

from .errors import ValidationError

# Data directory: holds memory.db and the vectors/ directory
DATA_DIR = os.getenv("MEMORY_DATA_DIR", str(Path.home() / ".moltbot" / "memory"))
DB_FILENAME = "memory.db"
VECTOR_DIRNAME = "vectors"

# Retention and record defaults
MAX_MEMORIES = int(os.getenv("MEMORY_MAX_MEMORIES", "10000"))
DEFAULT_IMPORTANCE = float(os.getenv("MEMORY_DEFAULT_IMPORTANCE", "0.7"))

# Embedding / vector configuration
EMBEDDINGS_ENABLED = os.getenv("EMBEDDINGS_ENABLED", "true").lower() == "true"
EMBED_MODEL_NAME = os.getenv("EMBED_MODEL_NAME", "all-MiniLM-L6-v2")
EMBED_PROVIDER = os.getenv("EMBED_PROVIDER", "sentence-transformers")  # sentence-transformers|hash
VECTOR_PROVIDER = os.getenv("VECTOR_PROVIDER", "faiss")  # faiss|memory

EMBED_PROVIDERS = ("sentence-transformers", "hash")
VECTOR_PROVIDERS = ("faiss", "memory")

DEFAULT_NOISE_PATTERNS = [
    r'^(ok|okay|yes|no|thanks|thank you|sure|got it|cool|nice|great)$',
    r'^\s*$',
]

# Version string
VERSION = "0.2.0"


class MemoryConfig(BaseModel):
    """Recognized init options. Accepts the camelCase host spelling or snake_case."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    data_directory: str = Field(default_factory=lambda: DATA_DIR, alias="dataDirectory")
    max_memories: int = Field(default=MAX_MEMORIES, alias="maxMemories")
    default_importance: float = Field(default=DEFAULT_IMPORTANCE, alias="defaultImportance")
    noise_patterns: List[str] = Field(default_factory=lambda: list(DEFAULT_NOISE_PATTERNS), alias="noisePatterns")
    embedding_model: str = Field(default=EMBED_MODEL_NAME, alias="embeddingModel")
    enable_embeddings: bool = Field(default=EMBEDDINGS_ENABLED, alias="enableEmbeddings")
    embedding_provider: str = Field(default=EMBED_PROVIDER, alias="embeddingProvider")
    vector_provider: str = Field(default=VECTOR_PROVIDER, alias="vectorProvider")
    reconcile_on_init: bool = Field(default=True, alias="reconcileOnInit")
    forget_query_limit: Optional[int] = Field(default=None, alias="forgetQueryLimit")

    @field_validator('data_directory')
    @classmethod
    def data_directory_must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('dataDirectory cannot be empty')
        return str(Path(v).expanduser())

    @field_validator('max_memories')
    @classmethod
    def max_memories_must_be_positive(cls, v):
        if v < 1:
            raise ValueError('maxMemories must be >= 1')
        return v

    @field_validator('default_importance')
    @classmethod
    def default_importance_in_range(cls, v):
        if not 0.0 <= v <= 1.0:
            raise ValueError('defaultImportance must be within [0, 1]')
        return v

    @field_validator('noise_patterns')
    @classmethod
    def noise_patterns_must_compile(cls, v):
        for pattern in v:
            try:
                re.compile(pattern)
            except re.error as e:
                raise ValueError(f'invalid noise pattern {pattern!r}: {e}')
        return v

    @field_validator('embedding_provider')
    @classmethod
    def embedding_provider_must_be_valid(cls, v):
        if v not in EMBED_PROVIDERS:
            raise ValueError(f'embeddingProvider must be one of: {list(EMBED_PROVIDERS)}')
        return v

    @field_validator('vector_provider')
    @classmethod
    def vector_provider_must_be_valid(cls, v):
        if v not in VECTOR_PROVIDERS:
            raise ValueError(f'vectorProvider must be one of: {list(VECTOR_PROVIDERS)}')
        return v

    @field_validator('forget_query_limit')
    @classmethod
    def forget_query_limit_must_be_positive(cls, v):
        if v is not None and v < 1:
            raise ValueError('forgetQueryLimit must be >= 1')
        return v

    @property
    def db_path(self) -> Path:
        return Path(self.data_directory) / DB_FILENAME

    @property
    def vector_dir(self) -> Path:
        return Path(self.data_directory) / VECTOR_DIRNAME


def load_config(options: Optional[Dict[str, Any]] = None) -> MemoryConfig:
    """Build a MemoryConfig from host options, raising the store's ValidationError."""
    if isinstance(options, MemoryConfig):
        return options
    try:
        return MemoryConfig.model_validate(options or {})
    except SchemaValidationError as e:
        raise ValidationError(f"Invalid configuration: {e}") from e


def get_vector_store(config: MemoryConfig):
    """Get the configured vector store implementation. Persisted FAISS state is loaded here."""
    if config.vector_provider == "memory":
        from ..vector.index import SimpleInMemoryVectorStore
        return SimpleInMemoryVectorStore()

    from ..vector.faiss_store import FaissVectorStore
    return FaissVectorStore(config.vector_dir)


def get_embedding_provider(config: MemoryConfig):
    """Get the configured embedding provider implementation."""
    if config.embedding_provider == "hash":
        from ..vector.embeddings import DeterministicHashEmbedding
        return DeterministicHashEmbedding()

    from ..vector.embeddings import SentenceTransformerEmbedding
    return SentenceTransformerEmbedding(config.embedding_model)


def ensure_data_directory(config: MemoryConfig):
    """Ensure the data directory exists."""
    Path(config.data_directory).mkdir(parents=True, exist_ok=True)


def debug_enabled():
    """Check if debug mode is enabled."""
    return os.getenv("DEBUG", "false").lower() == "true"
