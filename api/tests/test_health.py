"""Tests for health endpoints."""

from fastapi.testclient import TestClient

from src.events import EventDispatcher


def test_liveness(client: TestClient) -> None:
    """Test the liveness endpoint."""
    response = client.get("/health/live")
    assert response.status_code == 200
    assert response.json() == {"status": "alive"}


def test_readiness_without_database(client: TestClient) -> None:
    """Readiness reports degraded until services are wired."""
    response = client.get("/health/ready")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "degraded"
    assert data["database"] is False
    assert data["events"] is False
    assert "environment" in data


def test_health(client: TestClient) -> None:
    """Test the general health endpoint."""
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["app_name"] == "learnhub"
    assert "version" in data
    assert "environment" in data


def test_event_stats(app, client: TestClient) -> None:
    """Dispatcher counters are exposed once a dispatcher exists."""
    assert client.get("/health/events").json() == {"running": False}

    app.state.event_dispatcher = EventDispatcher()
    data = client.get("/health/events").json()
    assert data["running"] is False
    assert data["events_emitted"] == 0


def test_root(client: TestClient) -> None:
    """Test the root endpoint."""
    response = client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert "LearnHub" in data["message"]
    assert "version" in data
