"""
requests.py — Delivery Request Router

Create, read, edit and delete requests; claim / unclaim; generic status
changes; and the resolutions attached to a request.

Business Rules:
- Every route needs a bearer token (see dependencies.require_user)
- Listing is role-scoped in SQL; limit capped at 100
- Claim is rate limited per client
- Business-rule failures surface as CourierDeskError -> ErrorResponse

Called by: main.py (router mount)
Depends on: services/request_service, services/resolution_service
"""

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from ..config import settings
from ..database import get_db
from ..dependencies import get_actor
from ..permissions import Actor
from ..rate_limit import limiter
from ..schemas.requests import RequestCreate, RequestListResponse, RequestOut, RequestUpdate, StatusUpdate
from ..services import request_service, resolution_service
from ..services.notifier import get_notifier
from .resolutions import resolution_out

router = APIRouter(tags=["requests"])


@router.post("/api/requests", response_model=RequestOut, status_code=201)
async def create_request(
    payload: RequestCreate,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
    notifier=Depends(get_notifier),
):
    return request_service.create_request(db, actor, payload.model_dump(mode="json"), notifier)


@router.get("/api/requests", response_model=RequestListResponse)
async def list_requests(
    status: str | None = Query(None),
    type: str | None = Query(None),
    shipping_type: str | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=100),
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    items, total = request_service.list_requests(
        db, actor, status=status, type=type, shipping_type=shipping_type, page=page, limit=limit
    )
    return {
        "items": [RequestOut.model_validate(i) for i in items],
        "total": total,
        "page": page,
        "limit": limit,
    }


@router.get("/api/requests/{request_id}", response_model=RequestOut)
async def get_request(request_id: str, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    return request_service.get_request(db, actor, request_id)


@router.put("/api/requests/{request_id}", response_model=RequestOut)
async def update_request(
    request_id: str,
    payload: RequestUpdate,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    changes = payload.model_dump(mode="json", exclude_unset=True)
    return request_service.update_request(db, actor, request_id, changes)


@router.delete("/api/requests/{request_id}")
async def delete_request(request_id: str, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    request_service.delete_request(db, actor, request_id)
    return {"ok": True}


@router.post("/api/requests/{request_id}/claim", response_model=RequestOut)
@limiter.limit(settings.rate_limit_claim)
async def claim_request(
    request_id: str,
    request: Request,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
    notifier=Depends(get_notifier),
):
    return request_service.claim_request(db, actor, request_id, notifier)


@router.post("/api/requests/{request_id}/unclaim", response_model=RequestOut)
async def unclaim_request(
    request_id: str,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
    notifier=Depends(get_notifier),
):
    return request_service.unclaim_request(db, actor, request_id, notifier)


@router.patch("/api/requests/{request_id}/status", response_model=RequestOut)
async def update_status(
    request_id: str,
    payload: StatusUpdate,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
    notifier=Depends(get_notifier),
):
    return request_service.update_status(db, actor, request_id, payload.status, notifier, reason=payload.reason)


@router.get("/api/requests/{request_id}/resolutions")
async def list_resolutions(request_id: str, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    resolutions = resolution_service.list_for_request(db, actor, request_id)
    return {"items": [resolution_out(r, actor) for r in resolutions], "total": len(resolutions)}
