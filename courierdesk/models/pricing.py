"""Pricing rule model — read by the pricing oracle, managed by admins."""

from sqlalchemy import JSON, Boolean, Column, Float, ForeignKey, Index, String

from ..database import UTCDateTime, utcnow
from .auth import new_id
from .base import Base

DEFAULT_WEIGHT_TIERS = [
    {"min_weight": 0, "max_weight": 5, "price_per_kg": 2.0},
    {"min_weight": 5, "max_weight": 20, "price_per_kg": 1.5},
    {"min_weight": 20, "max_weight": None, "price_per_kg": 1.0},
]

DEFAULT_DISTANCE_ZONES = [
    {"name": "Local", "min_distance": 0, "max_distance": 50, "multiplier": 1.0},
    {"name": "Regional", "min_distance": 50, "max_distance": 200, "multiplier": 1.5},
    {"name": "Long Distance", "min_distance": 200, "max_distance": None, "multiplier": 2.0},
]

DEFAULT_TYPE_MULTIPLIERS = {
    "product_delivery": 1.0,
    "document": 0.8,
    "package": 1.2,
    "custom": 1.5,
}


class PricingRule(Base):
    __tablename__ = "pricing_rules"
    id = Column(String(36), primary_key=True, default=new_id)
    base_rate_national = Column(Float, nullable=False, default=10.0)
    base_rate_international = Column(Float, nullable=False, default=50.0)
    weight_tiers = Column(JSON, nullable=False, default=lambda: list(DEFAULT_WEIGHT_TIERS))
    distance_zones = Column(JSON, nullable=False, default=lambda: list(DEFAULT_DISTANCE_ZONES))
    type_multipliers = Column(JSON, nullable=False, default=lambda: dict(DEFAULT_TYPE_MULTIPLIERS))
    is_active = Column(Boolean, default=False)
    created_by = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"))
    created_at = Column(UTCDateTime, default=utcnow)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("ix_pricing_rules_active", "is_active"),
    )
