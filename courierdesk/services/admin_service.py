"""Admin service — dashboard counters over users, requests and resolutions."""

import logging
from datetime import datetime, timedelta

from sqlalchemy import func as sqlfunc
from sqlalchemy.orm import Session

from ..config import settings
from ..database import utcnow
from ..lifecycle import AGENT, CUSTOMER, REQUEST_STATUSES
from ..models import DeliveryRequest, Resolution, User
from ..permissions import Actor, authorize

log = logging.getLogger("courierdesk.admin")


def _count(q) -> int:
    return q.scalar() or 0


def dashboard_stats(db: Session, actor: Actor, now: datetime | None = None) -> dict:
    """Counts for the admin dashboard. Soft-deleted requests are left out."""
    authorize(actor, "admin.dashboard")
    since = (now or utcnow()) - timedelta(days=settings.dashboard_recent_days)

    users_by_role = dict(db.query(User.role, sqlfunc.count(User.id)).group_by(User.role).all())
    users = {
        "total": sum(users_by_role.values()),
        "customers": users_by_role.get(CUSTOMER, 0),
        "agents": users_by_role.get(AGENT, 0),
        "active_agents": _count(
            db.query(sqlfunc.count(User.id)).filter(User.role == AGENT, User.is_active.is_(True))
        ),
        "recent_signups": _count(db.query(sqlfunc.count(User.id)).filter(User.created_at >= since)),
    }

    live = DeliveryRequest.deleted_at.is_(None)
    by_status = dict.fromkeys(REQUEST_STATUSES, 0)
    by_status.update(
        db.query(DeliveryRequest.status, sqlfunc.count(DeliveryRequest.id))
        .filter(live)
        .group_by(DeliveryRequest.status)
        .all()
    )
    requests = {
        "total": sum(by_status.values()),
        "by_status": by_status,
        "recent": _count(
            db.query(sqlfunc.count(DeliveryRequest.id)).filter(live, DeliveryRequest.created_at >= since)
        ),
    }

    resolutions = {
        "total": _count(db.query(sqlfunc.count(Resolution.id))),
        "pending": _count(db.query(sqlfunc.count(Resolution.id)).filter(Resolution.status == "pending")),
    }

    log.info("Dashboard stats for admin %s: %d requests, %d users", actor.user_id, requests["total"], users["total"])
    return {
        "users": users,
        "requests": requests,
        "resolutions": resolutions,
        "recent_days": settings.dashboard_recent_days,
    }
