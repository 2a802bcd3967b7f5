"""Delivery request model — the entity the lifecycle engine owns."""

from sqlalchemy import JSON, Column, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from ..database import UTCDateTime, utcnow
from .auth import new_id
from .base import Base


class DeliveryRequest(Base):
    """Customer delivery/purchase request, claimed and quoted by one agent."""

    __tablename__ = "requests"
    id = Column(String(36), primary_key=True, default=new_id)
    customer_id = Column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    # Written only through store.compare_and_set
    claimed_by_agent_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"))
    handled_by_agent_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"))

    type = Column(String(30), nullable=False)  # product_delivery | document | package | custom
    source = Column(String(30), nullable=False, default="other")
    product_name = Column(String(500), nullable=False)
    product_description = Column(Text)
    product_url = Column(String(1000))
    product_images = Column(JSON, nullable=False, default=list)
    weight = Column(Numeric(10, 2))
    quantity = Column(Integer, nullable=False, default=1)
    shipping_type = Column(String(20), nullable=False)  # national | international
    pickup_location = Column(JSON, nullable=False)
    delivery_location = Column(JSON, nullable=False)
    preferred_contact_method = Column(String(20), nullable=False, default="email")
    customer_phone = Column(String(20))
    notes = Column(Text)

    status = Column(String(30), nullable=False, default="pending")
    # pending | claimed | resolution_provided | payment | verification | confirmed | completed | cancelled
    claimed_at = Column(UTCDateTime)
    completed_at = Column(UTCDateTime)
    cancelled_reason = Column(Text)

    created_at = Column(UTCDateTime, default=utcnow)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow)
    deleted_at = Column(UTCDateTime)

    customer = relationship("User", back_populates="requests", foreign_keys=[customer_id])
    agent = relationship("User", foreign_keys=[claimed_by_agent_id])
    resolutions = relationship(
        "Resolution", back_populates="request", order_by="Resolution.created_at.desc()"
    )

    __table_args__ = (
        Index("ix_requests_customer", "customer_id"),
        Index("ix_requests_agent", "claimed_by_agent_id"),
        Index("ix_requests_handled_by", "handled_by_agent_id"),
        Index("ix_requests_status", "status"),
        Index("ix_requests_type", "type"),
        Index("ix_requests_shipping_type", "shipping_type"),
        Index("ix_requests_status_created", "status", "created_at"),
    )
