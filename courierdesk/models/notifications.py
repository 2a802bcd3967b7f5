"""Email outbox — the durable channel of record for customer/agent notices."""

from sqlalchemy import JSON, Column, ForeignKey, Index, Integer, String, Text

from ..database import UTCDateTime, utcnow
from .auth import new_id
from .base import Base


class Notification(Base):
    __tablename__ = "notifications"
    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"))
    recipient = Column(String(255), nullable=False)
    template = Column(String(50), nullable=False)
    subject = Column(String(255), nullable=False)
    body = Column(Text, nullable=False)
    status = Column(String(20), nullable=False, default="pending")  # pending | sent | failed
    retry_count = Column(Integer, nullable=False, default=0)
    failed_reason = Column(Text)
    context = Column(JSON, default=dict)
    sent_at = Column(UTCDateTime)
    created_at = Column(UTCDateTime, default=utcnow)

    __table_args__ = (
        Index("ix_notifications_status_created", "status", "created_at"),
        Index("ix_notifications_user", "user_id"),
    )
