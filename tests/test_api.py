"""
Tests for the HTTP shim.
"""

import pytest
from fastapi.testclient import TestClient

from memory_local.api.main import create_app


@pytest.fixture
def client(data_dir):
    app = create_app({"dataDirectory": str(data_dir), "enableEmbeddings": False})
    with TestClient(app) as client:
        yield client


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["db_health"] is True
    assert data["vector_available"] is False
    assert data["memory_count"] == 0


def test_store_recall_forget(client):
    response = client.post("/memory/store", json={
        "text": "Decided to use TypeScript for the Betty project",
        "category": "decision",
        "importance": 0.85,
    })
    assert response.status_code == 200
    stored = response.json()
    assert stored["category"] == "decision"
    assert stored["hasEmbedding"] is False

    response = client.post("/memory/recall", json={"query": "TypeScript", "mode": "structured"})
    assert response.status_code == 200
    recalled = response.json()
    assert [r["id"] for r in recalled] == [stored["id"]]
    assert "score" not in recalled[0]

    response = client.post("/memory/forget", json={"memoryId": stored["id"]})
    assert response.json() == {"deleted": 1}
    response = client.post("/memory/forget", json={"memoryId": stored["id"]})
    assert response.json() == {"deleted": 0}


def test_stats(client):
    client.post("/memory/store", json={"text": "User prefers dark mode", "category": "preference"})
    client.post("/memory/store", json={"text": "User lives in Winterthur", "category": "fact"})

    response = client.get("/memory/stats")
    assert response.status_code == 200
    stats = response.json()
    assert stats["total"] == 2
    assert stats["byCategory"] == {"preference": 1, "fact": 1}
    assert stats["pendingEmbeddings"] == 0


def test_validation_errors_are_400(client):
    response = client.post("/memory/store", json={"text": "   "})
    assert response.status_code == 400
    assert response.json()["error"] == "validation_error"

    response = client.post("/memory/forget", json={})
    assert response.status_code == 400


def test_not_initialized_is_503(data_dir):
    # No lifespan: the plugin is never initialized
    client = TestClient(create_app({"dataDirectory": str(data_dir), "enableEmbeddings": False}))

    response = client.post("/memory/recall", json={"query": "tea"})
    assert response.status_code == 503
    assert response.json()["error"] == "not_initialized"

    response = client.get("/health")
    assert response.json()["status"] == "unhealthy"
