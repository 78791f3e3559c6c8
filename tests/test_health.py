"""
tests/test_health.py -- Integration tests for GET /api/health.

Covers:
  - 200 response with status, version, and components fields
  - each store reports 'ok'; the AI component reports its configuration
  - No authentication required
  - a failing store degrades the status instead of failing the request
"""

from __future__ import annotations

from sqlalchemy.exc import OperationalError

from api.main import app


def test_health_returns_200_with_components(api_client):
    """Health endpoint returns 200 with status, version, and components."""
    client, _, _ = api_client
    resp = client.get("/api/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    assert "version" in data
    assert data["components"]["risk_store"] == "ok"
    assert data["components"]["user_store"] == "ok"
    assert data["components"]["ai"] == "configured"


def test_health_no_auth_required(api_client):
    """Health endpoint is accessible without any authentication headers."""
    client, _, _ = api_client
    resp = client.get("/api/health", headers={})
    assert resp.status_code == 200


def test_health_reports_degraded_store(api_client, monkeypatch):
    """A store that cannot answer is reported, not raised."""
    client, _, _ = api_client

    def broken_ping():
        raise OperationalError("SELECT 1", {}, Exception("disk I/O error"))

    monkeypatch.setattr(app.state.risk_store, "ping", broken_ping)
    data = client.get("/api/health").json()
    assert data["status"] == "degraded"
    assert data["components"]["risk_store"] == "error"
    assert data["components"]["user_store"] == "ok"
