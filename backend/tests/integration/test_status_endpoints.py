"""
Integration tests for status endpoints.

WHAT: Test /health and the root endpoint
WHY: Ops tooling polls these to decide whether the service is usable
HOW: FastAPI TestClient against an app wired to an in-memory store
"""

import pytest


@pytest.mark.integration
@pytest.mark.api
class TestHealthEndpoint:
    """Test GET /api/v1/health."""

    def test_healthy_with_memory_store(self, client):
        response = client.get("/api/v1/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["app_name"] == "Test Marketplace"
        assert data["version"] == "0.1.0-test"
        assert data["timestamp"] == "2026-10-18T09:00:00.000000+00:00"
        assert data["components"]["store"] == {"available": True, "backend": "memory", "error": None}

    def test_degraded_when_store_unavailable(self, client, memory_store, monkeypatch):
        monkeypatch.setattr(
            memory_store, "ping",
            lambda: {"available": False, "backend": "memory", "error": "disk gone"}
        )

        data = client.get("/api/v1/health").json()

        assert data["status"] == "degraded"
        assert data["components"]["store"]["error"] == "disk gone"

    def test_degraded_when_ping_raises(self, client, memory_store, monkeypatch):
        def broken_ping():
            raise RuntimeError("boom")

        monkeypatch.setattr(memory_store, "ping", broken_ping)

        response = client.get("/api/v1/health")

        assert response.status_code == 200
        assert response.json()["status"] == "degraded"
        assert response.json()["components"]["store"]["error"] == "boom"

    def test_timestamp_follows_clock(self, client, clock):
        clock.advance(hours=2)

        data = client.get("/api/v1/health").json()

        assert data["timestamp"] == "2026-10-18T11:00:00.000000+00:00"


@pytest.mark.integration
@pytest.mark.api
def test_root(client):
    response = client.get("/")

    assert response.status_code == 200
    assert response.json() == {"app": "Test Marketplace", "version": "0.1.0-test", "status": "running"}
