"""
tests/test_health.py -- Integration tests for GET /api/v1/health.

Covers:
  - 200 response wrapped in the standard envelope
  - No authentication required
"""

from __future__ import annotations


def test_health_returns_envelope(client):
    resp = client.get("/api/v1/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["statusCode"] == 200
    assert body["data"]["status"] == "ok"
    assert "version" in body["data"]


def test_health_no_auth_required(client):
    client.cookies.clear()
    resp = client.get("/api/v1/health", headers={})
    assert resp.status_code == 200
