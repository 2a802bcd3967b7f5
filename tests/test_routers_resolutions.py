"""
test_routers_resolutions.py — HTTP tests for /api/resolutions

Called by: pytest
Depends on: courierdesk/routers/resolutions.py, courierdesk/routers/requests.py
"""

import pytest

from conftest import auth


@pytest.fixture()
def quoted(client, make_request, agent):
    """A claimed request with one pending resolution (total 45, internal note set)."""
    req = make_request(status="claimed", agent_id=agent.id)
    resp = client.post(
        "/api/resolutions",
        json={
            "request_id": req.id,
            "quote_breakdown": {"base_cost": 10, "weight_cost": 4, "distance_cost": 5, "total": 45},
            "estimated_delivery_days": 3,
            "notes": "Door to door",
            "internal_notes": "Margin 12%",
        },
        headers=auth(agent),
    )
    assert resp.status_code == 201
    return req, resp.json()


def test_agent_sees_internal_notes(quoted):
    _, res = quoted
    assert res["internal_notes"] == "Margin 12%"
    assert res["status"] == "pending"
    assert res["quote_breakdown"]["total"] == 45


def test_customer_never_sees_internal_notes(client, quoted, customer):
    req, res = quoted
    single = client.get(f"/api/resolutions/{res['id']}", headers=auth(customer)).json()
    assert "internal_notes" not in single
    listing = client.get(f"/api/requests/{req.id}/resolutions", headers=auth(customer)).json()
    assert listing["total"] == 1
    assert "internal_notes" not in listing["items"][0]


def test_admin_list_includes_internal_notes(client, quoted, admin):
    req, _ = quoted
    listing = client.get(f"/api/requests/{req.id}/resolutions", headers=auth(admin)).json()
    assert listing["items"][0]["internal_notes"] == "Margin 12%"


def test_reject_requires_ten_chars(client, quoted, customer):
    _, res = quoted
    resp = client.post(
        f"/api/resolutions/{res['id']}/reject", json={"customer_response_notes": "no"}, headers=auth(customer)
    )
    assert resp.status_code == 422


def test_reject_returns_request_to_claimed(client, quoted, customer, agent):
    req, res = quoted
    resp = client.post(
        f"/api/resolutions/{res['id']}/reject",
        json={"customer_response_notes": "too expensive"},
        headers=auth(customer),
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "rejected"
    parent = client.get(f"/api/requests/{req.id}", headers=auth(customer)).json()
    assert parent["status"] == "claimed"
    assert parent["claimed_by_agent_id"] == agent.id


def test_accept_moves_request_to_payment(client, quoted, customer):
    req, res = quoted
    resp = client.post(
        f"/api/resolutions/{res['id']}/accept", json={"customer_response_notes": "Great"}, headers=auth(customer)
    )
    assert resp.status_code == 200
    assert resp.json()["customer_response_notes"] == "Great"
    assert client.get(f"/api/requests/{req.id}", headers=auth(customer)).json()["status"] == "payment"

    again = client.post(f"/api/resolutions/{res['id']}/accept", json={}, headers=auth(customer))
    assert again.status_code == 409


def test_agent_cannot_accept(client, quoted, agent):
    _, res = quoted
    assert client.post(f"/api/resolutions/{res['id']}/accept", json={}, headers=auth(agent)).status_code == 403


def test_update_by_author(client, quoted, agent, agent_b):
    _, res = quoted
    resp = client.put(f"/api/resolutions/{res['id']}", json={"estimated_delivery_days": 6}, headers=auth(agent))
    assert resp.status_code == 200
    assert resp.json()["estimated_delivery_days"] == 6
    other = client.put(f"/api/resolutions/{res['id']}", json={"notes": "hijack"}, headers=auth(agent_b))
    assert other.status_code == 403


def test_second_quote_while_pending_is_rejected(client, quoted, agent):
    req, _ = quoted
    resp = client.post(
        "/api/resolutions",
        json={"request_id": req.id, "quote_breakdown": {"base_cost": 1}, "estimated_delivery_days": 1},
        headers=auth(agent),
    )
    assert resp.status_code == 409
    assert resp.json()["detail"] == {"current": "resolution_provided", "requested": "resolution_provided"}


def test_negative_costs_are_422(client, make_request, agent):
    req = make_request(status="claimed", agent_id=agent.id)
    resp = client.post(
        "/api/resolutions",
        json={"request_id": req.id, "quote_breakdown": {"base_cost": -5}, "estimated_delivery_days": 3},
        headers=auth(agent),
    )
    assert resp.status_code == 422
