"""
resolutions.py — Resolution (quote) Router

Agents create and revise quotes; customers accept or reject them.

Business Rules:
- internal_notes are only returned to agents and admins
- Rejecting requires customer_response_notes of 10..500 characters

Called by: main.py (router mount), routers/requests.py (resolution_out)
Depends on: services/resolution_service
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import get_actor
from ..permissions import Actor
from ..schemas.resolutions import (
    ResolutionAccept,
    ResolutionAgentOut,
    ResolutionCreate,
    ResolutionOut,
    ResolutionReject,
    ResolutionUpdate,
)
from ..services import resolution_service
from ..services.notifier import get_notifier

router = APIRouter(tags=["resolutions"])


def resolution_out(resolution, actor: Actor) -> dict:
    """Serialize for the caller; customers never see internal_notes."""
    schema = ResolutionOut if actor.is_customer else ResolutionAgentOut
    return schema.model_validate(resolution).model_dump(mode="json")


@router.post("/api/resolutions", status_code=201)
async def create_resolution(
    payload: ResolutionCreate,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
    notifier=Depends(get_notifier),
):
    res = resolution_service.create_resolution(db, actor, payload.model_dump(), notifier)
    return resolution_out(res, actor)


@router.get("/api/resolutions/{resolution_id}")
async def get_resolution(resolution_id: str, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    return resolution_out(resolution_service.get_resolution(db, actor, resolution_id), actor)


@router.put("/api/resolutions/{resolution_id}")
async def update_resolution(
    resolution_id: str,
    payload: ResolutionUpdate,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    changes = payload.model_dump(exclude_unset=True)
    return resolution_out(resolution_service.update_resolution(db, actor, resolution_id, changes), actor)


@router.post("/api/resolutions/{resolution_id}/accept")
async def accept_resolution(
    resolution_id: str,
    payload: ResolutionAccept,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
    notifier=Depends(get_notifier),
):
    res = resolution_service.accept_resolution(db, actor, resolution_id, payload.customer_response_notes, notifier)
    return resolution_out(res, actor)


@router.post("/api/resolutions/{resolution_id}/reject")
async def reject_resolution(
    resolution_id: str,
    payload: ResolutionReject,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
    notifier=Depends(get_notifier),
):
    res = resolution_service.reject_resolution(db, actor, resolution_id, payload.customer_response_notes, notifier)
    return resolution_out(res, actor)
