"""
test_routers_events.py — Tests for the live event stream

The SSE endpoint never ends on its own, so the generator is driven
directly with a fake request; only the auth check goes through HTTP.

Called by: pytest
Depends on: courierdesk/routers/events.py, courierdesk/realtime.py
"""

import json
from types import SimpleNamespace

import pytest
from sse_starlette.sse import EventSourceResponse

from conftest import TestSessionLocal, actor_of
from courierdesk.realtime import RoomHub
from courierdesk.routers.events import event_stream, rooms_for, stream_events


class _FakeRequest:
    def __init__(self):
        self.disconnected = False

    async def is_disconnected(self):
        return self.disconnected


def test_stream_requires_token(client):
    assert client.get("/api/events/stream").status_code == 401


def test_rooms_for_skips_invisible_requests(db_session, make_request, other_customer, agent, agent_b):
    visible = make_request(status="claimed", agent_id=agent.id)
    foreign = make_request(status="claimed", agent_id=agent_b.id)

    rooms = rooms_for(db_session, actor_of(agent), [visible.id, foreign.id, "missing"])
    assert rooms == [f"user:{agent.id}", "role:agent", f"request:{visible.id}"]

    rooms = rooms_for(db_session, actor_of(other_customer), [visible.id])
    assert rooms == [f"user:{other_customer.id}", "role:customer"]


@pytest.mark.asyncio
async def test_event_stream_delivers_and_cleans_up():
    hub = RoomHub()
    request = _FakeRequest()
    sub = hub.subscribe(["user:c1", "request:r1"])
    stream = event_stream(request, hub, sub, poll_seconds=0.05)

    ready = await stream.__anext__()
    assert ready["event"] == "ready"
    assert json.loads(ready["data"]) == {"rooms": ["request:r1", "user:c1"]}

    hub.publish("request:r1", "request:updated", {"event": "claimed", "request": {"id": "r1"}})
    message = await stream.__anext__()
    assert message["event"] == "request:updated"
    assert json.loads(message["data"]) == {"room": "request:r1", "event": "claimed", "request": {"id": "r1"}}

    request.disconnected = True
    with pytest.raises(StopAsyncIteration):
        await stream.__anext__()
    assert hub.room_size("user:c1") == 0
    assert hub.room_size("request:r1") == 0


@pytest.mark.asyncio
async def test_event_stream_idles_through_timeouts():
    hub = RoomHub()
    request = _FakeRequest()
    sub = hub.subscribe(["role:agent"])
    stream = event_stream(request, hub, sub, poll_seconds=0.01)
    await stream.__anext__()

    hub.publish("role:agent", "request:new", {"n": 1})
    assert (await stream.__anext__())["event"] == "request:new"
    await stream.aclose()
    assert hub.room_size("role:agent") == 0


@pytest.mark.asyncio
async def test_stream_hands_back_db_session(make_request, customer):
    req = make_request()
    hub = RoomHub()
    session = TestSessionLocal()
    request = SimpleNamespace(app=SimpleNamespace(state=SimpleNamespace(hub=hub)))

    resp = await stream_events(request, request_id=[req.id], actor=actor_of(customer), db=session)

    assert isinstance(resp, EventSourceResponse)
    assert not session.in_transaction()
    assert hub.room_size(f"request:{req.id}") == 1
    assert hub.room_size(f"user:{customer.id}") == 1
