"""
Shared fixtures: every store lives in its own temporary data directory.
"""

import pytest

from memory_local.core.orchestrator import MemoryOrchestrator


SAMPLE_MEMORIES = [
    {"text": "User prefers dark mode in all applications", "category": "preference", "importance": 0.9},
    {"text": "User lives in Winterthur, Switzerland", "category": "fact", "importance": 0.8},
    {"text": "Decided to use TypeScript for the Betty project", "category": "decision", "importance": 0.85},
    {"text": "Meeting with investors on Thursday at 14:04", "category": "conversation", "importance": 0.7},
    {"text": "Emma birthday party planning for next month", "category": "entity", "importance": 0.75},
]


@pytest.fixture
def data_dir(tmp_path):
    return tmp_path / "memory"


@pytest.fixture
def memory(data_dir):
    """Structured-only store (embeddings disabled)."""
    orchestrator = MemoryOrchestrator({"dataDirectory": str(data_dir), "enableEmbeddings": False})
    yield orchestrator
    orchestrator.close()


@pytest.fixture
def semantic_memory(data_dir):
    """Store with hash embeddings and the in-memory vector provider."""
    orchestrator = MemoryOrchestrator({
        "dataDirectory": str(data_dir),
        "enableEmbeddings": True,
        "embeddingProvider": "hash",
        "vectorProvider": "memory",
    })
    yield orchestrator
    orchestrator.close()


@pytest.fixture
def sample_memories():
    return [dict(m) for m in SAMPLE_MEMORIES]
