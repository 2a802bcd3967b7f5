"""Admin API — dashboard counters."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import get_actor
from ..permissions import Actor
from ..schemas.admin import DashboardStats
from ..services import admin_service

router = APIRouter(tags=["admin"])


@router.get("/api/admin/dashboard", response_model=DashboardStats)
async def dashboard(actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    return admin_service.dashboard_stats(db, actor)
