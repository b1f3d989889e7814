"""
tests/test_health.py -- Integration tests for GET / and unmatched routes.

Covers:
  - GET / liveness body, no authentication required
  - Unknown paths return the RouteNotFoundError envelope with method and url
  - Unexpected exceptions become a generic 500 InternalServerError envelope
"""

from __future__ import annotations

from fastapi.testclient import TestClient

from api.main import app


def test_root_returns_ok(api_client):
    """Root endpoint returns 200 with the liveness message."""
    resp = api_client.client.get("/")
    assert resp.status_code == 200
    assert resp.json() == {"status": "OK", "message": "BCR API is up and running!"}


def test_root_no_auth_required(api_client):
    """Root endpoint ignores a garbage Authorization header."""
    resp = api_client.client.get("/", headers={"Authorization": "Bearer nonsense"})
    assert resp.status_code == 200


def test_unknown_route_returns_not_found_envelope(api_client):
    resp = api_client.client.get("/v1/nope")
    assert resp.status_code == 404
    error = resp.json()["error"]
    assert error["name"] == "RouteNotFoundError"
    assert error["message"] == "Not found!"
    assert error["details"]["method"] == "GET"
    assert error["details"]["url"].endswith("/v1/nope")


def test_unknown_route_reports_method(api_client):
    resp = api_client.client.post("/does/not/exist", json={})
    assert resp.status_code == 404
    assert resp.json()["error"]["details"]["method"] == "POST"


def test_unexpected_error_returns_generic_500(fresh_api_client, monkeypatch):
    """A failure outside the error taxonomy is rendered as a bare InternalServerError."""

    def broken_count(car_filter):
        raise RuntimeError("database is on fire")

    monkeypatch.setattr(fresh_api_client.rental_store, "count_cars", broken_count)
    client = TestClient(app, raise_server_exceptions=False)

    resp = client.get("/v1/cars")
    assert resp.status_code == 500
    assert resp.json() == {
        "error": {
            "name": "InternalServerError",
            "message": "An unexpected error occurred.",
            "details": None,
        }
    }
    assert "on fire" not in resp.text
