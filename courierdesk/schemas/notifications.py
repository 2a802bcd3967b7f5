"""Pydantic models for the notification history endpoints."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class NotificationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    recipient: str
    template: str
    subject: str
    status: str
    retry_count: int
    failed_reason: str | None = None
    sent_at: datetime | None = None
    created_at: datetime | None = None


class NotificationDetailOut(NotificationOut):
    body: str


class NotificationListResponse(BaseModel):
    items: list[NotificationOut]
    total: int
    page: int
    limit: int


class NotificationStats(BaseModel):
    total: int
    pending: int
    sent: int
    failed: int
