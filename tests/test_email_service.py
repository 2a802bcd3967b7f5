"""
test_email_service.py — Tests for email templates and the outbox drain

Covers:
- render() for every template, HTML escaping, unknown template
- enqueue() writes a pending row
- deliver_pending(): sent, retrying, permanently failed, no API key
- LiveNotifier.send_email() writes the outbox in its own session

The outbound HTTP client is mocked; nothing leaves the process.

Called by: pytest
Depends on: courierdesk/email_service.py, courierdesk/services/notifier.py
"""

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from conftest import TestSessionLocal
from courierdesk import email_service
from courierdesk.config import settings
from courierdesk.models import Notification
from courierdesk.realtime import RoomHub
from courierdesk.services.notifier import LiveNotifier

_PATCH_HTTP = "courierdesk.email_service.http"

SAMPLE_DATA = {
    "request_created": {"customer_name": "Carla", "request_id": "r1", "product_name": "Lamp"},
    "request_claimed": {"customer_name": "Carla", "agent_name": "Anna", "request_id": "r1", "product_name": "Lamp"},
    "request_status_changed": {
        "name": "Carla",
        "request_id": "r1",
        "product_name": "Lamp",
        "old_status": "claimed",
        "new_status": "cancelled",
        "reason": "Changed my mind",
    },
    "resolution_provided": {
        "customer_name": "Carla",
        "request_id": "r1",
        "product_name": "Lamp",
        "total": 45,
        "estimated_delivery_days": 3,
        "notes": "Fragile",
    },
    "resolution_accepted": {"agent_name": "Anna", "request_id": "r1", "product_name": "Lamp", "total": 30},
    "resolution_rejected": {
        "agent_name": "Anna",
        "request_id": "r1",
        "product_name": "Lamp",
        "customer_notes": "too expensive",
    },
}


def _ok(*_args, **_kwargs):
    return httpx.Response(202, request=httpx.Request("POST", settings.email_api_url))


# ── Templates ────────────────────────────────────────────────────────


@pytest.mark.parametrize("template", email_service.TEMPLATES)
def test_render_every_template(template):
    subject, body = email_service.render(template, SAMPLE_DATA[template])
    assert "Lamp" in subject
    assert "/requests/r1" in body


def test_render_content():
    _, body = email_service.render("resolution_provided", SAMPLE_DATA["resolution_provided"])
    assert "$45.00" in body
    assert "3 days" in body
    _, body = email_service.render("resolution_rejected", SAMPLE_DATA["resolution_rejected"])
    assert "too expensive" in body
    _, body = email_service.render("request_status_changed", SAMPLE_DATA["request_status_changed"])
    assert "Changed my mind" in body


def test_render_escapes_user_text():
    data = {**SAMPLE_DATA["request_created"], "product_name": "<script>alert(1)</script>"}
    _, body = email_service.render("request_created", data)
    assert "<script>" not in body
    assert "&lt;script&gt;" in body


def test_render_unknown_template():
    with pytest.raises(ValueError):
        email_service.render("birthday_card", {})


def test_enqueue_writes_pending_row(db_session, customer):
    data = {**SAMPLE_DATA["request_created"], "user_id": customer.id}
    email_service.enqueue(db_session, "request_created", customer.email, data)
    db_session.commit()
    row = db_session.query(Notification).one()
    assert (row.status, row.recipient, row.template, row.user_id) == (
        "pending",
        customer.email,
        "request_created",
        customer.id,
    )
    assert row.context["product_name"] == "Lamp"


# ── Outbox drain ─────────────────────────────────────────────────────


def _queue(db, n=1):
    for _ in range(n):
        email_service.enqueue(db, "request_created", "carla@example.com", SAMPLE_DATA["request_created"])
    db.commit()


@pytest.mark.asyncio
async def test_deliver_without_api_key_leaves_rows(db_session):
    _queue(db_session)
    mock_http = AsyncMock()
    with patch.object(settings, "email_api_key", ""), patch(_PATCH_HTTP, mock_http):
        stats = await email_service.deliver_pending(db_session)
    assert stats == {"sent": 0, "failed": 0, "retrying": 0}
    mock_http.post.assert_not_called()
    assert db_session.query(Notification).one().status == "pending"


@pytest.mark.asyncio
async def test_deliver_sends_pending(db_session):
    _queue(db_session, 2)
    mock_http = AsyncMock()
    mock_http.post.side_effect = _ok
    with patch.object(settings, "email_api_key", "sg-key"), patch(_PATCH_HTTP, mock_http):
        stats = await email_service.deliver_pending(db_session)

    assert stats["sent"] == 2
    assert mock_http.post.await_count == 2
    kwargs = mock_http.post.call_args.kwargs
    assert kwargs["headers"]["Authorization"] == "Bearer sg-key"
    assert kwargs["json"]["personalizations"][0]["to"][0]["email"] == "carla@example.com"
    rows = db_session.query(Notification).all()
    assert all(r.status == "sent" and r.sent_at is not None for r in rows)


@pytest.mark.asyncio
async def test_deliver_retries_then_fails(db_session):
    _queue(db_session)
    mock_http = AsyncMock()
    mock_http.post.side_effect = httpx.ConnectError("connection refused")
    with patch.object(settings, "email_api_key", "sg-key"), patch(_PATCH_HTTP, mock_http), patch.object(
        settings, "outbox_max_retries", 2
    ):
        first = await email_service.deliver_pending(db_session)
        second = await email_service.deliver_pending(db_session)
        third = await email_service.deliver_pending(db_session)

    assert first["retrying"] == 1
    assert second["failed"] == 1
    assert third == {"sent": 0, "failed": 0, "retrying": 0}
    row = db_session.query(Notification).one()
    assert (row.status, row.retry_count) == ("failed", 2)
    assert "connection refused" in row.failed_reason


@pytest.mark.asyncio
async def test_deliver_http_error_status_counts_as_failure(db_session):
    _queue(db_session)
    mock_http = AsyncMock()
    mock_http.post.return_value = httpx.Response(500, request=httpx.Request("POST", settings.email_api_url))
    with patch.object(settings, "email_api_key", "sg-key"), patch(_PATCH_HTTP, mock_http):
        stats = await email_service.deliver_pending(db_session)
    assert stats["retrying"] == 1
    assert db_session.query(Notification).one().retry_count == 1


# ── LiveNotifier ─────────────────────────────────────────────────────


def test_live_notifier_writes_outbox(db_session):
    notifier = LiveNotifier(RoomHub(), TestSessionLocal)
    notifier.send_email("request_created", "carla@example.com", SAMPLE_DATA["request_created"])
    assert db_session.query(Notification).count() == 1


def test_live_notifier_swallows_render_errors(db_session):
    notifier = LiveNotifier(RoomHub(), TestSessionLocal)
    notifier.send_email("no_such_template", "carla@example.com", {})
    notifier.emit("role:agent", "request:new", {})
    assert db_session.query(Notification).count() == 0
