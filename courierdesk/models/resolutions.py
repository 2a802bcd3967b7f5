"""Resolution model — an agent's quote for one request."""

from sqlalchemy import JSON, Column, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from ..database import UTCDateTime, utcnow
from .auth import new_id
from .base import Base


class Resolution(Base):
    __tablename__ = "resolutions"
    id = Column(String(36), primary_key=True, default=new_id)
    request_id = Column(
        String(36), ForeignKey("requests.id", ondelete="CASCADE"), nullable=False
    )
    agent_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    # base_cost, weight_cost, distance_cost, type_multiplier, subtotal, total
    quote_breakdown = Column(JSON, nullable=False)
    estimated_delivery_days = Column(Integer, nullable=False)
    notes = Column(Text)
    internal_notes = Column(Text)

    status = Column(String(20), nullable=False, default="pending")  # pending | accepted | rejected
    customer_response_notes = Column(Text)
    responded_at = Column(UTCDateTime)

    created_at = Column(UTCDateTime, default=utcnow)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow)

    request = relationship("DeliveryRequest", back_populates="resolutions")
    agent = relationship("User", foreign_keys=[agent_id])

    __table_args__ = (
        Index("ix_resolutions_request", "request_id"),
        Index("ix_resolutions_agent", "agent_id"),
        Index("ix_resolutions_status", "status"),
    )
