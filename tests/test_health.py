"""GET /health: unauthenticated liveness check of the context service."""

from fastapi.testclient import TestClient

from friendo.api.app import app

client = TestClient(app)


def test_health_returns_200():
    response = client.get("/health")
    assert response.status_code == 200


def test_health_returns_ok_status():
    response = client.get("/health")
    assert response.json() == {"status": "ok"}


def test_health_needs_no_admin_token(monkeypatch):
    monkeypatch.setenv("ADMIN_API_TOKEN", "s3cret")
    response = client.get("/health")
    assert response.status_code == 200
