"""Tests for the health endpoint and request logging."""

import logging

import pytest


def test_health_returns_ok(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["app"] == "Dostify"


def test_responses_carry_request_id(client):
    response = client.get("/api/health")
    assert response.headers.get("X-Request-Id")


def test_unhandled_error_is_logged_with_request_id(client, auth_headers, caplog):
    from dostify.api.deps import get_orchestrator
    from dostify.main import app

    class BrokenOrchestrator:
        async def handle_turn(self, *args, **kwargs):
            raise RuntimeError("boom")

    app.dependency_overrides[get_orchestrator] = lambda: BrokenOrchestrator()

    with caplog.at_level(logging.ERROR, logger="dostify.main"):
        with pytest.raises(RuntimeError, match="boom"):
            client.post("/api/chat", json={"message": "hi", "sessionId": "s1"}, headers=auth_headers)

    records = [r for r in caplog.records if "unhandled error" in r.getMessage()]
    assert len(records) == 1
    assert "POST /api/chat" in records[0].getMessage()
    assert "[id=" in records[0].getMessage()
    assert records[0].exc_info is not None
