"""
schemas/resolutions.py — Pydantic models for resolution (quote) endpoints

Business Rules:
- Cost components are non-negative; total is optional (computed when omitted)
- estimated_delivery_days 1..365
- Rejecting requires a reason of 10..500 characters
- internal_notes only appear in ResolutionAgentOut (agents/admins)

Called by: routers/resolutions.py, routers/requests.py, services/fanout.py
Depends on: pydantic
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class QuoteBreakdown(BaseModel):
    base_cost: float = Field(ge=0)
    weight_cost: float = Field(default=0, ge=0)
    distance_cost: float = Field(default=0, ge=0)
    type_multiplier: float = Field(default=1, gt=0)
    subtotal: float | None = Field(default=None, ge=0)
    total: float | None = Field(default=None, ge=0)


class ResolutionCreate(BaseModel):
    request_id: str
    quote_breakdown: QuoteBreakdown
    estimated_delivery_days: int = Field(ge=1, le=365)
    notes: str | None = Field(default=None, max_length=1000)
    internal_notes: str | None = Field(default=None, max_length=1000)


class ResolutionUpdate(BaseModel):
    quote_breakdown: QuoteBreakdown | None = None
    estimated_delivery_days: int | None = Field(default=None, ge=1, le=365)
    notes: str | None = Field(default=None, max_length=1000)
    internal_notes: str | None = Field(default=None, max_length=1000)


class ResolutionAccept(BaseModel):
    customer_response_notes: str | None = Field(default=None, max_length=500)


class ResolutionReject(BaseModel):
    customer_response_notes: str = Field(min_length=10, max_length=500)


class ResolutionOut(BaseModel):
    """Customer-safe view of a resolution."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    request_id: str
    agent_id: str
    quote_breakdown: dict
    estimated_delivery_days: int
    notes: str | None = None
    status: str
    customer_response_notes: str | None = None
    responded_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ResolutionAgentOut(ResolutionOut):
    internal_notes: str | None = None
