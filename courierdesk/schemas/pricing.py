"""
schemas/pricing.py — Pydantic models for the pricing oracle and rule admin

Called by: routers/pricing.py
Depends on: pydantic
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from .requests import RequestType, ShippingType


class CostCalculation(BaseModel):
    weight: float = Field(ge=0.1, le=10000)
    distance: float = Field(ge=0.1, le=50000)
    shipping_type: ShippingType
    request_type: RequestType
    quantity: int = Field(default=1, ge=1, le=100)


class CostBreakdownOut(BaseModel):
    base_cost: float
    weight_cost: float
    distance_cost: float
    type_multiplier: float
    subtotal: float
    total: float


class WeightTier(BaseModel):
    min_weight: float = Field(ge=0)
    max_weight: float | None = None
    price_per_kg: float = Field(ge=0)


class DistanceZone(BaseModel):
    name: str = ""
    min_distance: float = Field(ge=0)
    max_distance: float | None = None
    multiplier: float = Field(gt=0)


class PricingRuleCreate(BaseModel):
    base_rate_national: float = Field(default=10.0, ge=0)
    base_rate_international: float = Field(default=50.0, ge=0)
    weight_tiers: list[WeightTier] = Field(default_factory=list)
    distance_zones: list[DistanceZone] = Field(default_factory=list)
    type_multipliers: dict[str, float] = Field(default_factory=dict)
    is_active: bool = False


class PricingRuleUpdate(BaseModel):
    base_rate_national: float | None = Field(default=None, ge=0)
    base_rate_international: float | None = Field(default=None, ge=0)
    weight_tiers: list[WeightTier] | None = None
    distance_zones: list[DistanceZone] | None = None
    type_multipliers: dict[str, float] | None = None
    is_active: bool | None = None


class PricingRuleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    base_rate_national: float
    base_rate_international: float
    weight_tiers: list[dict]
    distance_zones: list[dict]
    type_multipliers: dict[str, float]
    is_active: bool
    created_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
