"""
test_middleware.py — Tests for request/response middleware

Verifies request ID generation and the error envelope produced by the
middleware and exception handlers in main.py.

Called by: pytest
Depends on: courierdesk/main.py (middleware), tests/conftest.py (client fixture)
"""

from unittest.mock import patch

from conftest import auth


def test_request_id_header_present(client):
    """Every response should include X-Request-ID."""
    resp = client.get("/health")
    assert "X-Request-ID" in resp.headers
    assert len(resp.headers["X-Request-ID"]) == 8  # uuid4()[:8]


def test_request_id_unique_per_request(client):
    id1 = client.get("/health").headers["X-Request-ID"]
    id2 = client.get("/health").headers["X-Request-ID"]
    assert id1 != id2


def test_404_still_gets_request_id(client):
    resp = client.get("/nonexistent-route-xyz")
    assert resp.status_code == 404
    assert resp.headers["X-Request-ID"] == resp.json()["request_id"]


def test_domain_error_envelope(client, customer):
    resp = client.get("/api/requests/nope", headers=auth(customer))
    body = resp.json()
    assert set(body) == {"error", "status_code", "code", "request_id", "detail"}
    assert body["request_id"] == resp.headers["X-Request-ID"]


def test_unhandled_error_is_generic_500(client, customer):
    """Store faults never leak their message to the caller."""
    with patch(
        "courierdesk.services.request_service.list_requests",
        side_effect=RuntimeError("db exploded: password=hunter2"),
    ):
        resp = client.get("/api/requests", headers=auth(customer))
    assert resp.status_code == 500
    body = resp.json()
    assert body["code"] == "internal_error"
    assert "hunter2" not in resp.text
