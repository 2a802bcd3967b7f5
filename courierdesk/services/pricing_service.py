"""Pricing oracle — shipping cost from the active pricing rule.

Cost model:
  base      = national or international base rate
  weight    = price_per_kg of the first matching tier * weight * quantity (0 when no tier matches)
  distance  = base * zone multiplier - base (0 when no zone matches)
  subtotal  = base + weight + distance
  total     = round(subtotal * type multiplier, 2)

Tier and zone bounds are inclusive on both ends; a null max is open-ended.

Usage:
    breakdown = quote(db, actor, weight=3, distance=120, shipping_type="national",
                      request_type="package")
"""

import logging

from sqlalchemy.orm import Session

from ..database import utcnow
from ..errors import ConflictError, NotFoundError
from ..models import PricingRule
from ..models.pricing import DEFAULT_DISTANCE_ZONES, DEFAULT_TYPE_MULTIPLIERS, DEFAULT_WEIGHT_TIERS
from ..permissions import Actor, authorize

log = logging.getLogger("courierdesk.pricing")


def _in_band(value: float, low, high) -> bool:
    return value >= (low or 0) and (high is None or value <= high)


def calculate_cost(
    rule,
    *,
    weight: float,
    distance: float,
    shipping_type: str,
    request_type: str,
    quantity: int = 1,
) -> dict:
    """Pure cost breakdown for one shipment under `rule`."""
    base = float(rule.base_rate_national if shipping_type == "national" else rule.base_rate_international)

    weight_cost = 0.0
    for tier in rule.weight_tiers or []:
        if _in_band(weight, tier.get("min_weight"), tier.get("max_weight")):
            weight_cost = float(tier["price_per_kg"]) * weight * quantity
            break

    distance_cost = 0.0
    for zone in rule.distance_zones or []:
        if _in_band(distance, zone.get("min_distance"), zone.get("max_distance")):
            distance_cost = base * float(zone["multiplier"]) - base
            break

    type_multiplier = float((rule.type_multipliers or {}).get(request_type, 1) or 1)
    subtotal = base + weight_cost + distance_cost
    return {
        "base_cost": base,
        "weight_cost": weight_cost,
        "distance_cost": distance_cost,
        "type_multiplier": type_multiplier,
        "subtotal": subtotal,
        "total": round(subtotal * type_multiplier, 2),
    }


def get_active_rule(db: Session) -> PricingRule:
    rule = (
        db.query(PricingRule)
        .filter(PricingRule.is_active.is_(True))
        .order_by(PricingRule.created_at.desc())
        .first()
    )
    if not rule:
        raise NotFoundError("No active pricing rule found")
    return rule


def quote(db: Session, actor: Actor, **shipment) -> dict:
    authorize(actor, "pricing.calculate")
    breakdown = calculate_cost(get_active_rule(db), **shipment)
    log.info("Pricing calculated for %s: total=%s", actor.user_id, breakdown["total"])
    return breakdown


# ── Rule administration ──────────────────────────────────────────────


def _deactivate_others(db: Session, keep_id: str | None = None) -> None:
    q = db.query(PricingRule).filter(PricingRule.is_active.is_(True))
    if keep_id:
        q = q.filter(PricingRule.id != keep_id)
    q.update({PricingRule.is_active: False}, synchronize_session="fetch")


def list_rules(db: Session, actor: Actor) -> list[PricingRule]:
    authorize(actor, "pricing.manage")
    return db.query(PricingRule).order_by(PricingRule.created_at.desc()).all()


def create_rule(db: Session, actor: Actor, data: dict) -> PricingRule:
    authorize(actor, "pricing.manage")
    if data.get("is_active"):
        _deactivate_others(db)
    rule = PricingRule(
        base_rate_national=data.get("base_rate_national", 10.0),
        base_rate_international=data.get("base_rate_international", 50.0),
        weight_tiers=data.get("weight_tiers") or [],
        distance_zones=data.get("distance_zones") or [],
        type_multipliers=data.get("type_multipliers") or {},
        is_active=bool(data.get("is_active", False)),
        created_by=actor.user_id,
    )
    db.add(rule)
    db.commit()
    db.refresh(rule)
    log.info("Pricing rule %s created by %s (active=%s)", rule.id, actor.user_id, rule.is_active)
    return rule


def update_rule(db: Session, actor: Actor, rule_id: str, changes: dict) -> PricingRule:
    authorize(actor, "pricing.manage")
    rule = db.get(PricingRule, rule_id)
    if not rule:
        raise NotFoundError("Pricing rule not found")
    if changes.get("is_active") and not rule.is_active:
        _deactivate_others(db, keep_id=rule.id)
    for field in (
        "base_rate_national",
        "base_rate_international",
        "weight_tiers",
        "distance_zones",
        "type_multipliers",
        "is_active",
    ):
        if changes.get(field) is not None:
            setattr(rule, field, changes[field])
    rule.updated_at = utcnow()
    db.commit()
    db.refresh(rule)
    log.info("Pricing rule %s updated by %s", rule.id, actor.user_id)
    return rule


def delete_rule(db: Session, actor: Actor, rule_id: str) -> None:
    authorize(actor, "pricing.manage")
    rule = db.get(PricingRule, rule_id)
    if not rule:
        raise NotFoundError("Pricing rule not found")
    if rule.is_active:
        raise ConflictError("Cannot delete the active pricing rule; activate another rule first")
    db.delete(rule)
    db.commit()
    log.info("Pricing rule %s deleted by %s", rule_id, actor.user_id)


def seed_default_rule(db: Session) -> PricingRule | None:
    """Insert the default active rule when the table is empty. Returns the new rule or None."""
    if db.query(PricingRule.id).first():
        return None
    rule = PricingRule(
        base_rate_national=10.0,
        base_rate_international=50.0,
        weight_tiers=[dict(t) for t in DEFAULT_WEIGHT_TIERS],
        distance_zones=[dict(z) for z in DEFAULT_DISTANCE_ZONES],
        type_multipliers=dict(DEFAULT_TYPE_MULTIPLIERS),
        is_active=True,
    )
    db.add(rule)
    db.commit()
    log.info("Seeded default pricing rule %s", rule.id)
    return rule
