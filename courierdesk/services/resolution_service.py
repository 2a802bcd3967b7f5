"""
resolution_service.py — Resolution (quote) workflow

An agent holding a claimed request submits a quote; the customer accepts
or rejects it. Each step moves the parent request along the lifecycle in
the same transaction as the resolution change.

Business Rules:
- Create: only the claiming agent, only while the request is exactly claimed;
  request moves claimed -> resolution_provided
- Update: only the authoring agent, only while the resolution is pending
  and the request is still resolution_provided
- Accept: owning customer; resolution -> accepted, request -> payment
- Reject: owning customer, notes required; resolution -> rejected,
  request -> claimed (claim kept so the same agent can requote)
- Both compare-and-sets commit together or not at all
- Quote components are stored unrounded; only the total is rounded (2 dp)

Called by: routers/resolutions.py, routers/requests.py
Depends on: store.compare_and_set, services/request_service, services/fanout
"""

import logging

from sqlalchemy.orm import Session

from ..database import utcnow
from ..errors import ConflictError, ForbiddenError, InvalidTransitionError, NotFoundError, ValidationError
from ..lifecycle import CLAIMED, PAYMENT, RESOLUTION_PROVIDED
from ..models import DeliveryRequest, Resolution, User
from ..permissions import Actor, authorize
from ..store import compare_and_set
from . import fanout
from .request_service import _announce, _display_name, _email, load_request

log = logging.getLogger("courierdesk.resolutions")

PENDING = "pending"
ACCEPTED = "accepted"
REJECTED = "rejected"


def normalize_breakdown(qb: dict) -> dict:
    """Carry components unrounded; strike the total once."""
    base = float(qb.get("base_cost") or 0)
    weight = float(qb.get("weight_cost") or 0)
    distance = float(qb.get("distance_cost") or 0)
    multiplier = float(qb.get("type_multiplier") or 1)
    subtotal = qb.get("subtotal")
    subtotal = float(subtotal) if subtotal is not None else base + weight + distance
    total = qb.get("total")
    total = round(float(total), 2) if total is not None else round(subtotal * multiplier, 2)
    return {
        "base_cost": base,
        "weight_cost": weight,
        "distance_cost": distance,
        "type_multiplier": multiplier,
        "subtotal": subtotal,
        "total": total,
    }


def load_resolution(db: Session, resolution_id: str) -> Resolution:
    res = db.get(Resolution, resolution_id)
    if not res:
        raise NotFoundError("Resolution not found")
    return res


def _can_view_resolutions(actor: Actor, req: DeliveryRequest) -> bool:
    if actor.is_admin:
        return True
    if actor.is_customer:
        return req.customer_id == actor.user_id
    return actor.user_id in (req.claimed_by_agent_id, req.handled_by_agent_id)


def _rollback_conflict(db: Session, what: str, target_id: str, actor: Actor) -> ConflictError:
    db.rollback()
    log.warning("%s on %s lost a concurrent update (actor %s)", what, target_id, actor.user_id)
    return ConflictError("Resolution or request was modified concurrently; reload and retry")


# ── Queries ──────────────────────────────────────────────────────────


def list_for_request(db: Session, actor: Actor, request_id: str) -> list[Resolution]:
    authorize(actor, "resolution.read")
    req = load_request(db, request_id)
    if not _can_view_resolutions(actor, req):
        raise ForbiddenError("Not authorized for this request's resolutions")
    return (
        db.query(Resolution)
        .filter(Resolution.request_id == req.id)
        .order_by(Resolution.created_at.desc())
        .all()
    )


def get_resolution(db: Session, actor: Actor, resolution_id: str) -> Resolution:
    authorize(actor, "resolution.read")
    res = load_resolution(db, resolution_id)
    if actor.is_admin:
        return res
    if actor.is_agent and res.agent_id == actor.user_id:
        return res
    if actor.is_customer:
        req = db.get(DeliveryRequest, res.request_id)
        if req and req.customer_id == actor.user_id:
            return res
    raise ForbiddenError("Not authorized for this resolution")


# ── Commands ─────────────────────────────────────────────────────────


def create_resolution(db: Session, actor: Actor, payload: dict, notifier) -> Resolution:
    authorize(actor, "resolution.create")
    req = load_request(db, payload["request_id"])
    if req.claimed_by_agent_id != actor.user_id:
        raise ForbiddenError("Request is not claimed by you")
    if req.status != CLAIMED:
        raise InvalidTransitionError(req.status, RESOLUTION_PROVIDED)

    res = Resolution(
        request_id=req.id,
        agent_id=actor.user_id,
        quote_breakdown=normalize_breakdown(payload["quote_breakdown"]),
        estimated_delivery_days=payload["estimated_delivery_days"],
        notes=payload.get("notes"),
        internal_notes=payload.get("internal_notes"),
        status=PENDING,
    )
    db.add(res)
    db.flush()

    won = compare_and_set(
        db,
        DeliveryRequest,
        req.id,
        expected={"status": CLAIMED, "claimed_by_agent_id": actor.user_id},
        values={"status": RESOLUTION_PROVIDED},
    )
    if not won:
        raise _rollback_conflict(db, "create_resolution", req.id, actor)
    db.commit()
    db.refresh(req)
    db.refresh(res)
    log.info(
        "Resolution %s created for request %s by agent %s (claimed -> resolution_provided, total=%s)",
        res.id, req.id, actor.user_id, res.quote_breakdown["total"],
    )

    _email(
        notifier,
        "resolution_provided",
        req.customer,
        {
            "customer_name": _display_name(req.customer),
            "request_id": req.id,
            "product_name": req.product_name,
            "total": res.quote_breakdown["total"],
            "estimated_delivery_days": res.estimated_delivery_days,
            "notes": res.notes,
        },
    )
    _announce(notifier, fanout.RESOLUTION_CREATED, req, res)
    return res


def update_resolution(db: Session, actor: Actor, resolution_id: str, changes: dict) -> Resolution:
    authorize(actor, "resolution.update")
    res = load_resolution(db, resolution_id)
    if res.agent_id != actor.user_id:
        raise ForbiddenError("Only the authoring agent can update this resolution")
    if res.status != PENDING:
        raise InvalidTransitionError(res.status, res.status, "Only pending resolutions can be updated")
    req = load_request(db, res.request_id)
    if req.status != RESOLUTION_PROVIDED:
        raise InvalidTransitionError(req.status, RESOLUTION_PROVIDED, "The request is no longer awaiting this quote")

    values = {}
    for field in ("estimated_delivery_days", "notes", "internal_notes"):
        if changes.get(field) is not None:
            values[field] = changes[field]
    if changes.get("quote_breakdown") is not None:
        values["quote_breakdown"] = normalize_breakdown(changes["quote_breakdown"])
    if not values:
        return res

    won = compare_and_set(
        db, Resolution, res.id, expected={"status": PENDING, "agent_id": actor.user_id}, values=values
    )
    if not won:
        raise _rollback_conflict(db, "update_resolution", res.id, actor)
    db.commit()
    db.refresh(res)
    log.info("Resolution %s updated by agent %s: %s", res.id, actor.user_id, sorted(values))
    return res


def _respond(
    db: Session,
    actor: Actor,
    resolution_id: str,
    verdict: str,
    notes: str | None,
) -> tuple[Resolution, DeliveryRequest]:
    res = load_resolution(db, resolution_id)
    req = load_request(db, res.request_id)
    if req.customer_id != actor.user_id:
        raise ForbiddenError("Only the request's customer can respond to this resolution")
    if res.status != PENDING:
        raise InvalidTransitionError(res.status, verdict, f"Resolution has already been {res.status}")

    target = PAYMENT if verdict == ACCEPTED else CLAIMED
    if req.status != RESOLUTION_PROVIDED:
        raise InvalidTransitionError(req.status, target)

    res_won = compare_and_set(
        db,
        Resolution,
        res.id,
        expected={"status": PENDING},
        values={"status": verdict, "customer_response_notes": notes, "responded_at": utcnow()},
    )
    req_won = res_won and compare_and_set(
        db,
        DeliveryRequest,
        req.id,
        expected={"status": RESOLUTION_PROVIDED, "claimed_by_agent_id": req.claimed_by_agent_id},
        values={"status": target},
    )
    if not req_won:
        raise _rollback_conflict(db, f"{verdict} resolution", res.id, actor)
    db.commit()
    db.refresh(res)
    db.refresh(req)
    log.info(
        "Resolution %s %s by customer %s; request %s resolution_provided -> %s",
        res.id, verdict, actor.user_id, req.id, target,
    )
    return res, req


def accept_resolution(db: Session, actor: Actor, resolution_id: str, notes: str | None, notifier) -> Resolution:
    authorize(actor, "resolution.accept")
    res, req = _respond(db, actor, resolution_id, ACCEPTED, notes)

    agent = db.get(User, res.agent_id)
    _email(
        notifier,
        "resolution_accepted",
        agent,
        {
            "agent_name": _display_name(agent),
            "request_id": req.id,
            "product_name": req.product_name,
            "total": res.quote_breakdown.get("total"),
        },
    )
    _announce(notifier, fanout.RESOLUTION_ACCEPTED, req, res)
    return res


def reject_resolution(db: Session, actor: Actor, resolution_id: str, notes: str, notifier) -> Resolution:
    authorize(actor, "resolution.reject")
    if not notes or not notes.strip():
        raise ValidationError("A reason is required to reject a resolution")
    res, req = _respond(db, actor, resolution_id, REJECTED, notes.strip())

    agent = db.get(User, res.agent_id)
    _email(
        notifier,
        "resolution_rejected",
        agent,
        {
            "agent_name": _display_name(agent),
            "request_id": req.id,
            "product_name": req.product_name,
            "customer_notes": res.customer_response_notes,
        },
    )
    _announce(notifier, fanout.RESOLUTION_REJECTED, req, res)
    return res
