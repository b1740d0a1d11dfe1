"""Tests for the FastAPI application wiring and lifespan."""

from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import async_sessionmaker

from video_notifier.main import app


def test_health_without_database(monkeypatch):
    monkeypatch.setattr("video_notifier.database.async_session_factory", None)

    with TestClient(app) as client:
        response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "service": "video-notifier", "workers": {}}


def test_lifespan_builds_registry_and_autostarts(monkeypatch):
    # Nothing is queried: the sweep is disabled outside production
    monkeypatch.setattr("video_notifier.database.async_session_factory", async_sessionmaker())
    monkeypatch.setenv("WORKERS_AUTOSTART", "subscription-check,unknown")

    with TestClient(app) as client:
        workers = client.get("/health").json()["workers"]
        assert workers == {
            "queue": "stopped",
            "email": "stopped",
            "subscription-check": "running",
            "hub-renewal": "stopped",
        }

    # Shutdown stopped the autostarted worker
    assert app.state.registry.status("subscription-check") == "stopped"
