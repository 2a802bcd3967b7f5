"""Pydantic models for the admin dashboard."""

from pydantic import BaseModel


class UserCounts(BaseModel):
    total: int
    customers: int
    agents: int
    active_agents: int
    recent_signups: int


class RequestCounts(BaseModel):
    total: int
    by_status: dict[str, int]
    recent: int


class ResolutionCounts(BaseModel):
    total: int
    pending: int


class DashboardStats(BaseModel):
    users: UserCounts
    requests: RequestCounts
    resolutions: ResolutionCounts
    recent_days: int
