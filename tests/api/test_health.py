from __future__ import annotations

from fastapi.testclient import TestClient


def test_health_returns_ok(client: TestClient) -> None:
    resp = client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    # In tests no database is configured, the in-memory repos serve traffic
    assert data["checks"]["database"] == "not_configured"


def test_ready_returns_200(client: TestClient) -> None:
    resp = client.get("/ready")
    assert resp.status_code == 200


def test_metrics_exposes_badge_counters(client: TestClient) -> None:
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/plain")
    assert "badge_assignments_total" in resp.text
    assert "award_transactions_total" in resp.text


def test_response_carries_request_id(client: TestClient) -> None:
    resp = client.get("/health", headers={"X-Request-ID": "req-42"})
    assert resp.headers["X-Request-ID"] == "req-42"
