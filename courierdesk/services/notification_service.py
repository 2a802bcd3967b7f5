"""
notification_service.py — Read and retry a user's email outbox rows

The notifications table is the channel of record for every email the
lifecycle sends. This module lets the addressee page through their own
rows, see the delivery counts, and put a failed row back in the queue.

Business Rules:
- Users only ever see rows addressed to them; another user's row is 404
- Newest first; filters on status and template
- Retry: only failed rows; status -> pending, retry_count -> 0, reason cleared
- Retry is a compare-and-set on status, so a concurrent drain or retry
  surfaces as ConflictError

Called by: routers/notifications.py
Depends on: models.Notification, store.compare_and_set, email_service (outbox drain)
"""

import logging

from sqlalchemy import func as sqlfunc
from sqlalchemy.orm import Session

from ..config import settings
from ..errors import ConflictError, InvalidTransitionError, NotFoundError
from ..models import Notification
from ..permissions import Actor, authorize
from ..store import compare_and_set

log = logging.getLogger("courierdesk.notifications")

PENDING = "pending"
SENT = "sent"
FAILED = "failed"
NOTIFICATION_STATUSES = (PENDING, SENT, FAILED)


def _own(db: Session, actor: Actor):
    return db.query(Notification).filter(Notification.user_id == actor.user_id)


def list_notifications(
    db: Session,
    actor: Actor,
    *,
    status: str | None = None,
    template: str | None = None,
    page: int = 1,
    limit: int | None = None,
) -> tuple[list[Notification], int]:
    authorize(actor, "notification.read")
    limit = min(limit or settings.default_page_size, settings.max_page_size)
    page = max(page, 1)

    q = _own(db, actor)
    if status:
        q = q.filter(Notification.status == status)
    if template:
        q = q.filter(Notification.template == template)

    total = q.count()
    items = (
        q.order_by(Notification.created_at.desc(), Notification.id)
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return items, total


def get_notification(db: Session, actor: Actor, notification_id: str) -> Notification:
    authorize(actor, "notification.read")
    row = _own(db, actor).filter(Notification.id == notification_id).first()
    if not row:
        raise NotFoundError("Notification not found")
    return row


def notification_stats(db: Session, actor: Actor) -> dict:
    authorize(actor, "notification.read")
    counts = dict.fromkeys(NOTIFICATION_STATUSES, 0)
    counts.update(
        db.query(Notification.status, sqlfunc.count(Notification.id))
        .filter(Notification.user_id == actor.user_id)
        .group_by(Notification.status)
        .all()
    )
    return {"total": sum(counts.values()), **counts}


def retry_notification(db: Session, actor: Actor, notification_id: str) -> Notification:
    """Put one of the caller's failed rows back in the outbox."""
    authorize(actor, "notification.retry")
    row = get_notification(db, actor, notification_id)
    if row.status != FAILED:
        raise InvalidTransitionError(row.status, PENDING, "Only failed notifications can be retried")

    won = compare_and_set(
        db,
        Notification,
        row.id,
        expected={"status": FAILED},
        values={"status": PENDING, "retry_count": 0, "failed_reason": None},
    )
    if not won:
        db.rollback()
        log.warning("Retry of notification %s lost a concurrent update (user %s)", row.id, actor.user_id)
        raise ConflictError("Notification was modified concurrently; reload and retry")
    db.commit()
    db.refresh(row)
    log.info("Notification %s (%s) queued for retry by %s", row.id, row.template, actor.user_id)
    return row
