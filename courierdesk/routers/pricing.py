"""
pricing.py — Pricing Router

Cost quotes from the active rule (any signed-in user) and pricing rule
administration (admins).

Called by: main.py (router mount)
Depends on: services/pricing_service
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import get_actor
from ..permissions import Actor
from ..schemas.pricing import (
    CostBreakdownOut,
    CostCalculation,
    PricingRuleCreate,
    PricingRuleOut,
    PricingRuleUpdate,
)
from ..services import pricing_service

router = APIRouter(tags=["pricing"])


@router.post("/api/pricing/calculate", response_model=CostBreakdownOut)
async def calculate(payload: CostCalculation, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    return pricing_service.quote(db, actor, **payload.model_dump())


@router.get("/api/pricing/rules", response_model=list[PricingRuleOut])
async def list_rules(actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    return pricing_service.list_rules(db, actor)


@router.post("/api/pricing/rules", response_model=PricingRuleOut, status_code=201)
async def create_rule(payload: PricingRuleCreate, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    return pricing_service.create_rule(db, actor, payload.model_dump())


@router.put("/api/pricing/rules/{rule_id}", response_model=PricingRuleOut)
async def update_rule(
    rule_id: str,
    payload: PricingRuleUpdate,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    return pricing_service.update_rule(db, actor, rule_id, payload.model_dump(exclude_unset=True))


@router.delete("/api/pricing/rules/{rule_id}")
async def delete_rule(rule_id: str, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    pricing_service.delete_rule(db, actor, rule_id)
    return {"ok": True}
