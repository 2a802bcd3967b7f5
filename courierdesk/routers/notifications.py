"""
notifications.py — Notification History Router

The caller's own email outbox rows: paged history, delivery counts,
one row in full, and retry of a failed row.

Business Rules:
- Rows addressed to someone else answer 404, not 403
- Only failed rows can be retried (409 otherwise)

Called by: main.py (router mount)
Depends on: services/notification_service
"""

from typing import Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..config import settings
from ..database import get_db
from ..dependencies import get_actor
from ..permissions import Actor
from ..schemas.notifications import (
    NotificationDetailOut,
    NotificationListResponse,
    NotificationOut,
    NotificationStats,
)
from ..services import notification_service

router = APIRouter(tags=["notifications"])


@router.get("/api/notifications", response_model=NotificationListResponse)
async def list_notifications(
    status: Literal["pending", "sent", "failed"] | None = Query(None),
    template: str | None = Query(None, max_length=50),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=100),
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    items, total = notification_service.list_notifications(
        db, actor, status=status, template=template, page=page, limit=limit
    )
    return {
        "items": [NotificationOut.model_validate(i) for i in items],
        "total": total,
        "page": page,
        "limit": limit,
    }


@router.get("/api/notifications/stats", response_model=NotificationStats)
async def notification_stats(actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    return notification_service.notification_stats(db, actor)


@router.get("/api/notifications/{notification_id}", response_model=NotificationDetailOut)
async def get_notification(notification_id: str, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    return notification_service.get_notification(db, actor, notification_id)


@router.post("/api/notifications/{notification_id}/retry", response_model=NotificationOut)
async def retry_notification(
    notification_id: str, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)
):
    return notification_service.retry_notification(db, actor, notification_id)
