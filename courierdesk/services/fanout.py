"""
fanout.py — Event fan-out router

route() is pure: given a lifecycle transition and the entity state after
it, it returns the (room, event, payload) deliveries. dispatch() hands them
to the notifier. Services call both after their transaction commits.

Business Rules:
- Every transition is mirrored once to role:admin
- Resolution transitions also notify the parties that the parent request moved
- A verdict reaches the authoring agent twice: the named verdict event
  (resolution:accepted / resolution:rejected) and resolution:updated
- Resolution payloads never carry internal_notes
- The agent room targeted is the agent holding the request before the
  transition (handled_by covers terminal transitions that cleared the claim)

Called by: services/request_service.py, services/resolution_service.py
Depends on: schemas (payload serialization), realtime (room names)
"""

import logging
from dataclasses import dataclass

from ..database import utcnow
from ..lifecycle import ADMIN, AGENT
from ..realtime import request_room, role_room, user_room
from ..schemas.requests import RequestOut
from ..schemas.resolutions import ResolutionOut

log = logging.getLogger("courierdesk.fanout")

CREATED = "created"
CLAIMED = "claimed"
UNCLAIMED = "unclaimed"
STATUS_UPDATED = "status_updated"
RESOLUTION_CREATED = "resolution_created"
RESOLUTION_ACCEPTED = "resolution_accepted"
RESOLUTION_REJECTED = "resolution_rejected"

TRANSITIONS = (
    CREATED,
    CLAIMED,
    UNCLAIMED,
    STATUS_UPDATED,
    RESOLUTION_CREATED,
    RESOLUTION_ACCEPTED,
    RESOLUTION_REJECTED,
)


@dataclass(frozen=True)
class Delivery:
    room: str
    event: str
    payload: dict


def request_payload(request) -> dict:
    return RequestOut.model_validate(request).model_dump(mode="json")


def resolution_payload(resolution) -> dict:
    return ResolutionOut.model_validate(resolution).model_dump(mode="json")


def _agent_of(request) -> str | None:
    return request.claimed_by_agent_id or request.handled_by_agent_id


def _status_set(request, payload: dict) -> list[tuple[str, str, dict]]:
    out = [(user_room(request.customer_id), "request:updated", payload)]
    agent_id = _agent_of(request)
    if agent_id:
        out.append((user_room(agent_id), "request:updated", payload))
    out.append((request_room(request.id), "request:updated", payload))
    return out


def route(transition: str, request, resolution=None) -> list[Delivery]:
    """Deliveries for one transition. Raises ValueError for unknown transitions."""
    if transition not in TRANSITIONS:
        raise ValueError(f"Unknown transition: {transition}")

    timestamp = utcnow().isoformat()
    req_body = {"request": request_payload(request), "event": transition, "timestamp": timestamp}
    planned: list[tuple[str, str, dict]] = []
    admin_event = "request:updated"
    admin_body = req_body

    if transition == CREATED:
        planned.append((role_room(AGENT), "request:new", req_body))
        admin_event = "request:new"

    elif transition == CLAIMED:
        planned.append((user_room(request.customer_id), "request:claimed", req_body))
        planned.append((request_room(request.id), "request:updated", req_body))
        planned.append((role_room(AGENT), "request:claimed", req_body))
        admin_event = "request:claimed"

    elif transition == UNCLAIMED:
        planned.append((role_room(AGENT), "request:available", req_body))
        planned.append((request_room(request.id), "request:updated", req_body))
        admin_event = "request:available"

    elif transition == STATUS_UPDATED:
        planned.extend(_status_set(request, req_body))

    else:
        if resolution is None:
            raise ValueError(f"{transition} needs the resolution")
        res_body = {
            "resolution": resolution_payload(resolution),
            "request_id": request.id,
            "event": transition,
            "timestamp": timestamp,
        }
        if transition == RESOLUTION_CREATED:
            planned.append((user_room(request.customer_id), "resolution:provided", res_body))
            planned.append((request_room(request.id), "resolution:new", res_body))
            admin_event = "resolution:new"
        else:
            verdict = "resolution:accepted" if transition == RESOLUTION_ACCEPTED else "resolution:rejected"
            planned.append((user_room(resolution.agent_id), verdict, res_body))
            planned.append((user_room(resolution.agent_id), "resolution:updated", res_body))
            planned.append((request_room(request.id), "resolution:updated", res_body))
            admin_event = "resolution:updated"
        planned.extend(_status_set(request, req_body))
        admin_body = res_body

    planned.append((role_room(ADMIN), admin_event, admin_body))

    seen: set[tuple[str, str]] = set()
    deliveries = []
    for room, event, payload in planned:
        if (room, event) in seen:
            continue
        seen.add((room, event))
        deliveries.append(Delivery(room, event, payload))
    return deliveries


def dispatch(notifier, deliveries: list[Delivery]) -> None:
    """Emit every delivery; one failing emit does not stop the rest."""
    for d in deliveries:
        try:
            notifier.emit(d.room, d.event, d.payload)
        except Exception:
            log.exception("Emit to %s (%s) failed", d.room, d.event)
