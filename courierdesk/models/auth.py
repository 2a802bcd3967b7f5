"""Auth & user models."""

import uuid

from sqlalchemy import Boolean, Column, String
from sqlalchemy.orm import relationship

from ..database import UTCDateTime, utcnow
from .base import Base


def new_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"
    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String(255), unique=True, nullable=False)
    name = Column(String(255))
    role = Column(String(20), nullable=False, default="customer")  # customer | agent | admin
    phone = Column(String(20))
    preferred_contact_method = Column(String(20), default="email")  # email | whatsapp | both
    is_active = Column(Boolean, default=True)
    created_at = Column(UTCDateTime, default=utcnow)

    requests = relationship(
        "DeliveryRequest", back_populates="customer", foreign_keys="DeliveryRequest.customer_id"
    )
