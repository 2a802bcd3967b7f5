"""
schemas/requests.py — Pydantic models for delivery request endpoints

Validates request bodies and documents response shapes for OpenAPI.

Business Rules:
- product_name 2..255 chars, notes up to 1000, description up to 2000
- weight 0.1..10000 kg, quantity 1..100
- Addresses need address (5..500), city and country (2..100)
- Status filters and status changes only accept known lifecycle statuses
- Edits may omit a required attribute but never null it

Called by: routers/requests.py
Depends on: pydantic, lifecycle
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..lifecycle import REQUEST_STATUSES

RequestType = Literal["product_delivery", "document", "package", "custom"]
RequestSource = Literal["amazon", "ebay", "national_store", "international_store", "other"]
ShippingType = Literal["national", "international"]
ContactMethod = Literal["email", "whatsapp", "both"]


# ── Locations ────────────────────────────────────────────────────────


class Location(BaseModel):
    address: str = Field(min_length=5, max_length=500)
    city: str = Field(min_length=2, max_length=100)
    state: str | None = None
    country: str = Field(min_length=2, max_length=100)
    zip_code: str | None = None
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)

    @field_validator("address", "city", "country")
    @classmethod
    def strip_text(cls, v: str) -> str:
        return v.strip()


# ── Commands ─────────────────────────────────────────────────────────


class RequestCreate(BaseModel):
    product_name: str = Field(min_length=2, max_length=255)
    product_description: str | None = Field(default=None, max_length=2000)
    product_url: str | None = Field(default=None, max_length=1000)
    product_images: list[str] = Field(default_factory=list, max_length=10)
    type: RequestType
    source: RequestSource = "other"
    weight: float | None = Field(default=None, ge=0.1, le=10000)
    quantity: int = Field(default=1, ge=1, le=100)
    shipping_type: ShippingType
    pickup_location: Location
    delivery_location: Location
    preferred_contact_method: ContactMethod = "email"
    customer_phone: str | None = Field(default=None, max_length=20)
    notes: str | None = Field(default=None, max_length=1000)

    @field_validator("product_name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 2:
            raise ValueError("product_name must be at least 2 characters")
        return v

    @field_validator("product_url")
    @classmethod
    def url_has_scheme(cls, v: str | None) -> str | None:
        if v and not v.startswith(("http://", "https://")):
            raise ValueError("product_url must be an http(s) URL")
        return v


class RequestUpdate(BaseModel):
    product_name: str | None = Field(default=None, min_length=2, max_length=255)
    product_description: str | None = Field(default=None, max_length=2000)
    product_url: str | None = Field(default=None, max_length=1000)
    product_images: list[str] | None = Field(default=None, max_length=10)
    weight: float | None = Field(default=None, ge=0.1, le=10000)
    quantity: int | None = Field(default=None, ge=1, le=100)
    pickup_location: Location | None = None
    delivery_location: Location | None = None
    preferred_contact_method: ContactMethod | None = None
    customer_phone: str | None = Field(default=None, max_length=20)
    notes: str | None = Field(default=None, max_length=1000)

    @field_validator(
        "product_name",
        "product_images",
        "quantity",
        "pickup_location",
        "delivery_location",
        "preferred_contact_method",
    )
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("may be omitted but not null")
        return v


class StatusUpdate(BaseModel):
    status: str
    reason: str | None = Field(default=None, max_length=1000)

    @field_validator("status")
    @classmethod
    def known_status(cls, v: str) -> str:
        if v not in REQUEST_STATUSES:
            raise ValueError(f"status must be one of {', '.join(REQUEST_STATUSES)}")
        return v


# ── Responses ────────────────────────────────────────────────────────


class RequestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    customer_id: str
    claimed_by_agent_id: str | None = None
    handled_by_agent_id: str | None = None
    type: str
    source: str
    product_name: str
    product_description: str | None = None
    product_url: str | None = None
    product_images: list[str] = Field(default_factory=list)
    weight: float | None = None
    quantity: int
    shipping_type: str
    pickup_location: dict
    delivery_location: dict
    preferred_contact_method: str
    customer_phone: str | None = None
    notes: str | None = None
    status: str
    claimed_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_reason: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class RequestListResponse(BaseModel):
    items: list[RequestOut]
    total: int
    page: int
    limit: int
