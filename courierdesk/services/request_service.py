"""
request_service.py — Request lifecycle engine

Creates requests and drives them through the status graph in lifecycle.py.
Claim exclusivity lives in the store: every status / claim write is a
compare-and-set on the values this call observed, so two agents racing for
the same request get exactly one winner and one ConflictError.

Business Rules:
- Customers see their own requests; agents see pending ones plus the ones
  they hold (or handled); admins see everything. Applied in SQL.
- Claim: pending and unclaimed only; re-claiming your own request conflicts
- Unclaim: only the holder, only while exactly claimed
- update_status cannot drive edges owned by claim/unclaim/resolutions
- Terminal statuses stamp completed_at and release the claim; a pending
  resolution is rejected in the same transaction
- Attribute edits and soft delete only while pending and unclaimed
- Required attributes can be edited but not cleared (ValidationError)
- Notifications go out after commit and never affect the outcome

Called by: routers/requests.py, services/resolution_service.py
Depends on: store.compare_and_set, lifecycle, permissions, services/fanout
"""

import logging

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..config import settings
from ..database import utcnow
from ..errors import ConflictError, ForbiddenError, InvalidTransitionError, NotFoundError, ValidationError
from ..lifecycle import (
    CANCELLED,
    CLAIMED,
    COMMAND_EDGES,
    PENDING,
    TERMINAL_STATUSES,
    can_transition,
    roles_for_edge,
)
from ..models import DeliveryRequest, Resolution, User
from ..permissions import Actor, authorize
from ..store import compare_and_set
from . import fanout

log = logging.getLogger("courierdesk.requests")

_CREATE_FIELDS = (
    "type",
    "source",
    "product_name",
    "product_description",
    "product_url",
    "product_images",
    "weight",
    "quantity",
    "shipping_type",
    "pickup_location",
    "delivery_location",
    "preferred_contact_method",
    "customer_phone",
    "notes",
)

_EDITABLE_FIELDS = frozenset(_CREATE_FIELDS) - {"type", "shipping_type", "source"}
_REQUIRED_FIELDS = frozenset(
    {"product_name", "product_images", "quantity", "pickup_location", "delivery_location", "preferred_contact_method"}
)


# ── Loading & visibility ─────────────────────────────────────────────


def load_request(db: Session, request_id: str) -> DeliveryRequest:
    """Fetch a live (not soft-deleted) request or raise NotFoundError."""
    req = (
        db.query(DeliveryRequest)
        .filter(DeliveryRequest.id == request_id, DeliveryRequest.deleted_at.is_(None))
        .first()
    )
    if not req:
        raise NotFoundError("Request not found")
    return req


def visible_query(db: Session, actor: Actor):
    q = db.query(DeliveryRequest).filter(DeliveryRequest.deleted_at.is_(None))
    if actor.is_customer:
        q = q.filter(DeliveryRequest.customer_id == actor.user_id)
    elif actor.is_agent:
        q = q.filter(
            or_(
                DeliveryRequest.status == PENDING,
                DeliveryRequest.claimed_by_agent_id == actor.user_id,
                DeliveryRequest.handled_by_agent_id == actor.user_id,
            )
        )
    return q


def can_view(actor: Actor, req: DeliveryRequest) -> bool:
    if actor.is_admin:
        return True
    if actor.is_customer:
        return req.customer_id == actor.user_id
    return actor.user_id in (req.claimed_by_agent_id, req.handled_by_agent_id) or (
        req.status == PENDING and req.claimed_by_agent_id is None
    )


def get_request(db: Session, actor: Actor, request_id: str) -> DeliveryRequest:
    authorize(actor, "request.read")
    req = load_request(db, request_id)
    if not can_view(actor, req):
        raise ForbiddenError("Not authorized for this request")
    return req


def list_requests(
    db: Session,
    actor: Actor,
    *,
    status: str | None = None,
    type: str | None = None,
    shipping_type: str | None = None,
    page: int = 1,
    limit: int | None = None,
) -> tuple[list[DeliveryRequest], int]:
    """Role-scoped, newest-first page of requests plus the total match count."""
    authorize(actor, "request.read")
    limit = min(limit or settings.default_page_size, settings.max_page_size)
    page = max(page, 1)

    q = visible_query(db, actor)
    if status:
        q = q.filter(DeliveryRequest.status == status)
    if type:
        q = q.filter(DeliveryRequest.type == type)
    if shipping_type:
        q = q.filter(DeliveryRequest.shipping_type == shipping_type)

    total = q.count()
    items = (
        q.order_by(DeliveryRequest.created_at.desc(), DeliveryRequest.id)
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return items, total


# ── Notification helpers ─────────────────────────────────────────────


def _display_name(user: User | None) -> str:
    if not user:
        return ""
    return user.name or user.email


def _email(notifier, template: str, user: User | None, data: dict) -> None:
    if not user or not user.email:
        return
    try:
        notifier.send_email(template, user.email, {**data, "user_id": user.id})
    except Exception:
        log.exception("Email %s to %s failed", template, user.email)


def _announce(notifier, transition: str, req: DeliveryRequest, resolution=None) -> None:
    try:
        fanout.dispatch(notifier, fanout.route(transition, req, resolution))
    except Exception:
        log.exception("Fan-out of %s for request %s failed", transition, req.id)


def _lost_race(db: Session, req_id: str, action: str, actor: Actor):
    db.rollback()
    log.warning("%s on request %s lost a concurrent update (actor %s)", action, req_id, actor.user_id)
    return ConflictError("Request was modified concurrently; reload and retry")


# ── Commands ─────────────────────────────────────────────────────────


def create_request(db: Session, actor: Actor, attrs: dict, notifier) -> DeliveryRequest:
    authorize(actor, "request.create")
    customer = db.get(User, actor.user_id)
    if not customer or not customer.is_active:
        raise NotFoundError("Customer account not found")

    req = DeliveryRequest(
        customer_id=customer.id,
        status=PENDING,
        claimed_by_agent_id=None,
        **{k: attrs[k] for k in _CREATE_FIELDS if attrs.get(k) is not None},
    )
    db.add(req)
    db.commit()
    db.refresh(req)
    log.info("Request %s created by customer %s", req.id, customer.id)

    _email(
        notifier,
        "request_created",
        customer,
        {"customer_name": _display_name(customer), "request_id": req.id, "product_name": req.product_name},
    )
    _announce(notifier, fanout.CREATED, req)
    return req


def claim_request(db: Session, actor: Actor, request_id: str, notifier) -> DeliveryRequest:
    authorize(actor, "request.claim")
    req = load_request(db, request_id)
    if req.status != PENDING or req.claimed_by_agent_id is not None:
        raise ConflictError("Request is no longer available to claim")

    won = compare_and_set(
        db,
        DeliveryRequest,
        req.id,
        expected={"status": PENDING, "claimed_by_agent_id": None},
        values={
            "status": CLAIMED,
            "claimed_by_agent_id": actor.user_id,
            "handled_by_agent_id": actor.user_id,
            "claimed_at": utcnow(),
        },
    )
    if not won:
        raise _lost_race(db, req.id, "claim", actor)
    db.commit()
    db.refresh(req)
    log.info("Request %s claimed by agent %s (pending -> claimed)", req.id, actor.user_id)

    agent = db.get(User, actor.user_id)
    _email(
        notifier,
        "request_claimed",
        req.customer,
        {
            "customer_name": _display_name(req.customer),
            "agent_name": _display_name(agent),
            "request_id": req.id,
            "product_name": req.product_name,
        },
    )
    _announce(notifier, fanout.CLAIMED, req)
    return req


def unclaim_request(db: Session, actor: Actor, request_id: str, notifier) -> DeliveryRequest:
    authorize(actor, "request.unclaim")
    req = load_request(db, request_id)
    if req.claimed_by_agent_id != actor.user_id:
        raise ForbiddenError("Only the agent holding the claim can release it")
    if req.status != CLAIMED:
        raise InvalidTransitionError(req.status, PENDING)

    won = compare_and_set(
        db,
        DeliveryRequest,
        req.id,
        expected={"status": CLAIMED, "claimed_by_agent_id": actor.user_id},
        values={
            "status": PENDING,
            "claimed_by_agent_id": None,
            "handled_by_agent_id": None,
            "claimed_at": None,
        },
    )
    if not won:
        raise _lost_race(db, req.id, "unclaim", actor)
    db.commit()
    db.refresh(req)
    log.info("Request %s released by agent %s (claimed -> pending)", req.id, actor.user_id)

    _announce(notifier, fanout.UNCLAIMED, req)
    return req


def _check_ownership(actor: Actor, req: DeliveryRequest) -> None:
    if actor.is_customer and req.customer_id != actor.user_id:
        raise ForbiddenError("Not your request")
    if actor.is_agent and req.claimed_by_agent_id != actor.user_id:
        raise ForbiddenError("Request is not claimed by you")


def update_status(
    db: Session,
    actor: Actor,
    request_id: str,
    new_status: str,
    notifier,
    reason: str | None = None,
) -> DeliveryRequest:
    authorize(actor, "request.update_status")
    req = load_request(db, request_id)
    _check_ownership(actor, req)

    current = req.status
    if (current, new_status) in COMMAND_EDGES or not can_transition(current, new_status):
        raise InvalidTransitionError(current, new_status)
    if actor.role not in roles_for_edge(current, new_status):
        raise ForbiddenError(f"Role '{actor.role}' cannot move a request from {current} to {new_status}")

    previous_agent_id = req.claimed_by_agent_id
    values: dict = {"status": new_status}
    if new_status in TERMINAL_STATUSES:
        values["completed_at"] = utcnow()
        values["claimed_by_agent_id"] = None
    if new_status == CANCELLED:
        values["cancelled_reason"] = reason

    won = compare_and_set(
        db,
        DeliveryRequest,
        req.id,
        expected={"status": current, "claimed_by_agent_id": previous_agent_id},
        values=values,
    )
    if not won:
        raise _lost_race(db, req.id, "update_status", actor)
    if new_status in TERMINAL_STATUSES:
        # a quote left pending on a closed request is withdrawn with it
        withdrawn = (
            db.query(Resolution)
            .filter(Resolution.request_id == req.id, Resolution.status == "pending")
            .update({"status": "rejected", "responded_at": utcnow()}, synchronize_session=False)
        )
        if withdrawn:
            log.info("Request %s closed as %s; %d pending resolution(s) rejected", req.id, new_status, withdrawn)
    db.commit()
    db.refresh(req)
    log.info("Request %s: %s -> %s by %s %s", req.id, current, new_status, actor.role, actor.user_id)

    data = {
        "request_id": req.id,
        "product_name": req.product_name,
        "old_status": current,
        "new_status": new_status,
        "reason": reason,
    }
    if actor.user_id != req.customer_id:
        _email(notifier, "request_status_changed", req.customer, {**data, "name": _display_name(req.customer)})
    if previous_agent_id and actor.user_id != previous_agent_id:
        agent = db.get(User, previous_agent_id)
        _email(notifier, "request_status_changed", agent, {**data, "name": _display_name(agent)})
    _announce(notifier, fanout.STATUS_UPDATED, req)
    return req


def update_request(db: Session, actor: Actor, request_id: str, changes: dict) -> DeliveryRequest:
    """Edit descriptive attributes while the request is still pending and unclaimed."""
    authorize(actor, "request.update")
    req = load_request(db, request_id)
    if actor.is_customer and req.customer_id != actor.user_id:
        raise ForbiddenError("Not your request")
    if req.status != PENDING or req.claimed_by_agent_id is not None:
        raise ConflictError("Request can only be edited before it is claimed")

    values = {k: v for k, v in changes.items() if k in _EDITABLE_FIELDS}
    nulled = sorted(k for k, v in values.items() if v is None and k in _REQUIRED_FIELDS)
    if nulled:
        raise ValidationError(f"Required attributes cannot be cleared: {', '.join(nulled)}")
    if not values:
        return req
    won = compare_and_set(
        db,
        DeliveryRequest,
        req.id,
        expected={"status": PENDING, "claimed_by_agent_id": None},
        values=values,
    )
    if not won:
        raise _lost_race(db, req.id, "update", actor)
    db.commit()
    db.refresh(req)
    log.info("Request %s attributes updated by %s: %s", req.id, actor.user_id, sorted(values))
    return req


def delete_request(db: Session, actor: Actor, request_id: str) -> None:
    """Soft delete. Only the owning customer or an admin, only while pending and unclaimed."""
    authorize(actor, "request.delete")
    req = load_request(db, request_id)
    if actor.is_customer and req.customer_id != actor.user_id:
        raise ForbiddenError("Not your request")
    if req.status != PENDING or req.claimed_by_agent_id is not None:
        raise ConflictError("Only pending, unclaimed requests can be deleted")

    won = compare_and_set(
        db,
        DeliveryRequest,
        req.id,
        expected={"status": PENDING, "claimed_by_agent_id": None},
        values={"deleted_at": utcnow()},
    )
    if not won:
        raise _lost_race(db, req.id, "delete", actor)
    db.commit()
    log.info("Request %s deleted by %s %s", req.id, actor.role, actor.user_id)
