"""
events.py — Live event stream (server-sent events)

One long-lived GET per browser tab. The connection joins user:{me} and
role:{my role} automatically, plus request:{id} for every request_id query
parameter the caller is allowed to see.

Business Rules:
- Requests the caller cannot see are skipped, not errors
- Messages are delivered best-effort; a disconnect drops the subscription
- Keep-alive pings every SSE_PING_SECONDS
- The DB session is released before streaming starts

Called by: main.py (router mount)
Depends on: realtime.RoomHub (app.state.hub), services/request_service
"""

import json

from fastapi import APIRouter, Depends, Query, Request
from loguru import logger
from sqlalchemy.orm import Session
from sse_starlette.sse import EventSourceResponse

from ..config import settings
from ..database import get_db
from ..dependencies import get_actor
from ..errors import ForbiddenError, NotFoundError
from ..permissions import Actor, authorize
from ..realtime import RoomHub, Subscription, request_room, role_room, user_room
from ..services import request_service

router = APIRouter(tags=["events"])


def rooms_for(db: Session, actor: Actor, request_ids: list[str]) -> list[str]:
    rooms = [user_room(actor.user_id), role_room(actor.role)]
    for rid in request_ids:
        try:
            req = request_service.get_request(db, actor, rid)
        except (ForbiddenError, NotFoundError):
            logger.info("Skipping live room for request {} (not visible to {})", rid, actor.user_id)
            continue
        rooms.append(request_room(req.id))
    return rooms


async def event_stream(request: Request, hub: RoomHub, sub: Subscription, poll_seconds: float = 1.0):
    """Yield SSE messages for one subscription until the client disconnects."""
    try:
        yield {"event": "ready", "data": json.dumps({"rooms": sorted(sub.rooms)})}
        while True:
            if await request.is_disconnected():
                break
            message = await sub.get(timeout=poll_seconds)
            if message is None:
                continue
            yield {
                "event": message["event"],
                "data": json.dumps({"room": message["room"], **message["data"]}),
            }
    finally:
        hub.unsubscribe(sub)


@router.get("/api/events/stream")
async def stream_events(
    request: Request,
    request_id: list[str] = Query(default=[]),
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    authorize(actor, "events.subscribe")
    hub: RoomHub = request.app.state.hub
    sub = hub.subscribe(rooms_for(db, actor, request_id))
    # get_db teardown only runs once the stream ends; hand the connection back now
    db.close()
    logger.info("Live stream opened for {} in {}", actor.user_id, sorted(sub.rooms))
    return EventSourceResponse(event_stream(request, hub, sub), ping=settings.sse_ping_seconds)
